"""
Configuration for rag-library.

Split into one config per concern so each stage module only receives
what it needs. LibraryConfig bundles them all for convenience.

Every config is a pydantic-settings class, so any field can come from
the environment (or a .env file) using the prefix listed on the class:

    EMBEDDING_MODEL_NAME=BAAI/bge-m3
    QDRANT_URL=http://qdrant:6333
    CROSS_ENCODER_WEIGHT=0.6

Explicit constructor arguments always win over the environment.

Usage:
    # Full config, everything from env/defaults
    config = LibraryConfig()

    # Override specific parts
    config = LibraryConfig(
        chunking=ChunkingConfig(chunk_size=500, chunk_overlap=50),
        reranker=RerankerConfig(weight=0.5),
    )

    # Standalone, use just one piece
    store_config = VectorStoreConfig(url="http://localhost:6333")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from the project root (walks up from this file to find it).
# This runs once at import time, so anything importing rag_library.config
# sees the env vars before a config object is built.
_env_path = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_env_path)


def _settings(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        extra="ignore",
        case_sensitive=False,
        protected_namespaces=(),
    )


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class LLMProvider(str, Enum):
    """
    Supported chat-model providers.

    DeepSeek and Ollama both expose OpenAI-compatible endpoints, so they
    reuse the OpenAI chat class with a different base URL.
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"
    OLLAMA = "ollama"


# ---------------------------------------------------------------------------
# Per-concern configs
# ---------------------------------------------------------------------------

class LLMConfig(BaseSettings):
    """
    Chat model configuration.

    Used by: utils/helpers.py, generation/client.py

    This is the process-wide default. Per-user ModelSettings, when given
    to the answer generator, take precedence over it.
    """

    model_config = _settings("LLM_")

    provider: LLMProvider = Field(
        default=LLMProvider.OPENAI,
        description="Which LLM provider to use",
    )
    model_name: str = Field(
        default="gpt-4o-mini",
        description="Model identifier (e.g. 'gpt-4o-mini', 'claude-sonnet-4-5-20250929')",
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature. 0 = deterministic, higher = more creative",
    )
    max_tokens: int = Field(
        default=512,
        gt=0,
        description="Maximum tokens in the LLM response",
    )
    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key; falls back to the provider's own env var when unset",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Override the provider endpoint (OpenAI-compatible servers)",
    )


class EmbeddingConfig(BaseSettings):
    """
    Embedding model configuration.

    Used by: indexing/embeddings.py

    Provider is an open string (not an enum). The factory in
    indexing/embeddings.py maps known provider strings to LangChain
    classes and raises a clear error for unknown ones.

    The default is a local sentence-transformers model loaded from
    cache_dir only (local_files_only=True), so indexing never reaches out
    to the network unless explicitly allowed.
    """

    model_config = _settings("EMBEDDING_")

    provider: str = Field(
        default="huggingface",
        description="Embedding provider: 'huggingface', 'openai', 'cohere'",
    )
    model_name: str = Field(
        default="BAAI/bge-m3",
        description="Embedding model identifier",
    )
    model_file: Optional[str] = Field(
        default="sentence_transformers_int8",
        description="ONNX weight file name, used when the backend is 'onnx'",
    )
    quantized: bool = Field(
        default=False,
        description="Load the quantized ONNX weights instead of the full ones",
    )
    local_files_only: bool = Field(
        default=True,
        description="Never download weights; only use what is in cache_dir",
    )
    cache_dir: str = Field(
        default=".cache/transformers",
        description="Directory holding downloaded model weights",
    )
    normalize: bool = Field(
        default=True,
        description="L2-normalize output vectors (cosine distance expects this)",
    )
    model_kwargs: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra kwargs passed to the embedding model constructor (e.g. device)",
    )


class ChunkingConfig(BaseSettings):
    """
    Fixed-window chunking configuration.

    Used by: indexing/chunking.py

    Windows of chunk_size characters advance by chunk_size - chunk_overlap,
    so consecutive chunks share up to chunk_overlap characters.
    """

    model_config = _settings("CHUNKING_")

    chunk_size: int = Field(
        default=800,
        gt=0,
        description="Window size in characters",
    )
    chunk_overlap: int = Field(
        default=200,
        ge=0,
        description="Overlap between consecutive chunks",
    )

    @model_validator(mode="after")
    def validate_overlap(self) -> "ChunkingConfig":
        """Overlap must be smaller than chunk size, otherwise chunks would never advance."""
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"chunk_overlap ({self.chunk_overlap}) must be less than "
                f"chunk_size ({self.chunk_size})"
            )
        return self


class VectorStoreConfig(BaseSettings):
    """
    Qdrant connection and collection settings.

    Used by: indexing/vectorstore.py, registry.py
    """

    model_config = _settings("QDRANT_")

    url: str = Field(
        default="http://127.0.0.1:6333",
        description="Qdrant REST endpoint",
    )
    api_key: Optional[SecretStr] = Field(default=None, description="Qdrant API key")
    collection: str = Field(
        default="ragify_library_documents",
        description="Collection holding every library chunk",
    )
    upsert_batch_size: int = Field(
        default=32,
        gt=0,
        description="Points sent per upsert request",
    )
    timeout: int = Field(default=30, gt=0, description="Request timeout in seconds")


class IndexingConfig(BaseSettings):
    """Indexer knobs. Used by: indexing/indexer.py"""

    model_config = _settings("INDEXING_")

    embedding_batch_size: int = Field(
        default=12,
        gt=0,
        description="Chunks embedded per call; progress is checkpointed after each batch",
    )


class RetrieverConfig(BaseSettings):
    """
    Retrieval configuration.

    Used by: retrieval/search.py

    limit is the candidate pool handed to the reranker. Requests outside
    1..50 are clamped, never rejected.
    """

    model_config = _settings("RETRIEVER_")

    limit: int = Field(default=10, description="Nearest points fetched per query")

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return int(_clamp(v, 1, 50))


class RerankerConfig(BaseSettings):
    """
    Cross-encoder reranker configuration.

    Used by: retrieval/cross_encoder.py, retrieval/reranking.py

    Model resolution order:
        1. model_path, when set (must contain tokenizer.json)
        2. the first of [model_name, *fallback_dirs] cached under cache_dir
        3. model_name as a hub id

    weight is the share of the fused score that comes from the
    cross-encoder; the rest comes from vector similarity. It is clamped
    to [0, 1].
    """

    model_config = _settings("CROSS_ENCODER_")

    model_name: str = Field(
        default="cross-encoder/ms-marco-MiniLM-L-6-v2",
        description="Hub id of the pairwise relevance model",
    )
    model_path: Optional[str] = Field(
        default=None,
        description="Explicit model directory (absolute, or relative to cache_dir)",
    )
    fallback_dirs: list[str] = Field(
        default_factory=lambda: [
            "Xenova/cross-encoder-ms-marco-MiniLM-L-6-v2",
            "cross-encoder/ms-marco-MiniLM-L-6-v2",
        ],
        description="Alternate cache directory names tried before the hub id",
    )
    cache_dir: str = Field(default=".cache/transformers")
    local_files_only: bool = Field(default=True)
    allow_remote: Optional[bool] = Field(
        default=None,
        description="Allow downloading weights for this load. None = not local_files_only",
    )
    weight: float = Field(default=0.7, description="Cross-encoder share of the fused score")
    limit: int = Field(default=3, description="Results returned after reranking")
    max_length: int = Field(default=512, gt=0, description="Tokenizer truncation length")

    @field_validator("weight")
    @classmethod
    def clamp_weight(cls, v: float) -> float:
        return _clamp(v, 0.0, 1.0)

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, v: int) -> int:
        return int(_clamp(v, 1, 10))

    @property
    def remote_allowed(self) -> bool:
        if self.allow_remote is None:
            return not self.local_files_only
        return self.allow_remote


class AnswerConfig(BaseSettings):
    """
    Answer generation configuration.

    Used by: generation/generate.py, library.py

    min_cross_score is the relevance gate: reranked chunks whose
    cross-encoder probability falls below it are dropped, and when none
    survive the chat flow answers directly instead of citing noise.
    """

    model_config = _settings("ANSWER_")

    min_cross_score: float = Field(default=0.35, ge=0.0, le=1.0)
    max_chat_turns: int = Field(default=8, gt=0)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    max_tokens: int = Field(default=512, gt=0)


class DatabaseConfig(BaseSettings):
    """Document repository settings. Used by: persistence/sql.py"""

    model_config = _settings("DATABASE_")

    url: str = Field(default="sqlite+aiosqlite:///./rag_library.db")
    echo: bool = Field(default=False)


# ---------------------------------------------------------------------------
# Top-level config: bundles everything
# ---------------------------------------------------------------------------

class LibraryConfig(BaseSettings):
    """
    Complete configuration.

    LibraryService receives this and passes slices to each stage:
        FixedWindowChunker(config.chunking), DocumentIndexer(..., config=config.indexing)
        LibrarySearcher(embedder, vector_store, config.retriever)
        CrossEncoderReranker(registry, config.reranker)

    All sub-configs have sensible defaults, so LibraryConfig() with
    no arguments gives a working local setup.
    """

    model_config = _settings("RAG_LIBRARY_")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    retriever: RetrieverConfig = Field(default_factory=RetrieverConfig)
    reranker: RerankerConfig = Field(default_factory=RerankerConfig)
    answer: AnswerConfig = Field(default_factory=AnswerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

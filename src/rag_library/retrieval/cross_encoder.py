"""
Cross-encoder model adapter (transformers + torch).

Loads a sequence-classification model and its tokenizer, then scores one
(question, passage) pair at a time. The adapter returns raw logits tagged
by head shape (SingleLogit / MultiLogit); turning them into a relevance
probability is the reranker's job.

Where the weights come from, in order:
    1. CROSS_ENCODER_MODEL_PATH, if set (must contain tokenizer.json)
    2. The first of [model_name, *fallback_dirs] found under cache_dir
    3. model_name as a hub id (downloaded only if remote is allowed)

Usage:
    from rag_library.retrieval.cross_encoder import load_cross_encoder

    encoder = load_cross_encoder(RerankerConfig())   # blocking, run in a thread
    logits = await encoder.score("refund policy", chunk.content)
"""

import asyncio
import logging
import os
import re
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from rag_library.base.reranker import BaseCrossEncoder, Logits, MultiLogit, SingleLogit
from rag_library.config import RerankerConfig
from rag_library.errors import DependencyMissing, ModelUnavailable, RagLibraryError

logger = logging.getLogger(__name__)

_OFFLINE_VALUES = {"1", "true", "yes", "on"}
_FETCH_FAILED = re.compile(r"failed to fetch|connection error|max retries exceeded|timed out", re.IGNORECASE)
_NOT_CACHED = re.compile(
    r"local_files_only|cannot find the requested files|offline mode|does not appear to have a file",
    re.IGNORECASE,
)


def _download_hint(config: RerankerConfig) -> str:
    repo_id = config.fallback_dirs[0] if config.fallback_dirs else config.model_name
    return (
        f"`huggingface-cli download {repo_id} --local-dir {config.cache_dir}/{repo_id}`"
    )


def wrap_cross_encoder_error(error: Exception, config: RerankerConfig) -> Exception:
    """Turn a load/inference failure into DependencyMissing or ModelUnavailable."""
    if isinstance(error, RagLibraryError):
        return error

    if isinstance(error, ImportError):
        return DependencyMissing(
            "The transformers and torch packages are required for cross-encoder reranking. "
            "Install with: pip install transformers torch"
        )

    message = str(error)

    if _NOT_CACHED.search(message):
        return ModelUnavailable(
            "Cross-encoder weights were not found in the local cache. Download them with "
            f"{_download_hint(config)} or set CROSS_ENCODER_LOCAL_FILES_ONLY=false "
            "(or CROSS_ENCODER_ALLOW_REMOTE=true) to allow remote downloads."
        )

    if _FETCH_FAILED.search(message):
        return ModelUnavailable(
            f"Failed to download cross-encoder weights. Run {_download_hint(config)} "
            "or set CROSS_ENCODER_ALLOW_REMOTE=true with network access."
        )

    return ModelUnavailable(f"Cross-encoder failed: {message or type(error).__name__}")


# ---------------------------------------------------------------------------
# Model resolution
# ---------------------------------------------------------------------------

def has_cached_model(directory: Path) -> bool:
    return (directory / "tokenizer.json").is_file()


def resolve_model_identifier(config: RerankerConfig) -> str:
    """
    Pick the directory (or hub id) to load from.

    Raises:
        ModelUnavailable: model_path is set but has no tokenizer.json.
    """
    cache_dir = Path(config.cache_dir)
    manual = (config.model_path or "").strip()

    if manual:
        candidate = Path(manual)
        if not candidate.is_absolute() and not manual.startswith(("./", "../")):
            candidate = cache_dir / manual
        candidate = candidate.resolve()
        if has_cached_model(candidate):
            return str(candidate)
        raise ModelUnavailable(
            f"Configured CROSS_ENCODER_MODEL_PATH ({manual}) does not contain tokenizer.json "
            f"(looked in {candidate})."
        )

    for repo_id in [config.model_name, *config.fallback_dirs]:
        directory = cache_dir / repo_id
        if has_cached_model(directory):
            logger.debug("Using cached cross-encoder at %s", directory)
            return str(directory)

    return config.model_name


@contextmanager
def remote_downloads(allowed: bool) -> Iterator[None]:
    """
    Lift offline mode for the duration of one load when remote is allowed.

    huggingface_hub reads HF_HUB_OFFLINE once, at import, into
    huggingface_hub.constants (and older transformers copy it again into
    transformers.utils.hub), so the module flags are switched along with
    the env var. Everything is restored on exit, even if the load fails.
    """
    if not allowed:
        yield
        return

    from huggingface_hub import constants as hub_constants

    previous_env = os.environ.get("HF_HUB_OFFLINE")
    env_offline = previous_env is not None and previous_env.strip().lower() in _OFFLINE_VALUES
    previous_hub = hub_constants.HF_HUB_OFFLINE
    if not (env_offline or previous_hub):
        yield
        return

    transformers_hub = sys.modules.get("transformers.utils.hub")
    previous_transformers = getattr(transformers_hub, "_is_offline_mode", None)

    logger.info("Allowing remote model downloads for this load")
    os.environ["HF_HUB_OFFLINE"] = "0"
    hub_constants.HF_HUB_OFFLINE = False
    if previous_transformers is not None:
        transformers_hub._is_offline_mode = False
    try:
        yield
    finally:
        if previous_env is None:
            os.environ.pop("HF_HUB_OFFLINE", None)
        else:
            os.environ["HF_HUB_OFFLINE"] = previous_env
        hub_constants.HF_HUB_OFFLINE = previous_hub
        if previous_transformers is not None:
            transformers_hub._is_offline_mode = previous_transformers


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

def logits_from_values(values: list[float]) -> Logits:
    """Tag one row of classifier output by its width."""
    if not values:
        raise ModelUnavailable("Cross-encoder produced no logits for the input pair.")
    if len(values) == 1:
        return SingleLogit(value=values[0])
    return MultiLogit(values=values)


class TransformersCrossEncoder(BaseCrossEncoder):
    """
    BaseCrossEncoder over a loaded AutoTokenizer + AutoModelForSequenceClassification.

    Inference is blocking, so score() runs it in a worker thread.
    """

    def __init__(self, tokenizer: Any, model: Any, config: RerankerConfig):
        self._tokenizer = tokenizer
        self._model = model
        self._config = config

    def _score_sync(self, question: str, passage: str) -> Logits:
        import torch

        inputs = self._tokenizer(
            question,
            text_pair=passage,
            padding=True,
            truncation=True,
            max_length=self._config.max_length,
            return_tensors="pt",
        )
        with torch.no_grad():
            outputs = self._model(**inputs)

        row = outputs.logits[0].tolist()
        return logits_from_values([float(value) for value in row])

    async def score(self, question: str, passage: str) -> Logits:
        try:
            return await asyncio.to_thread(self._score_sync, question, passage)
        except Exception as exc:
            raise wrap_cross_encoder_error(exc, self._config) from exc


def load_cross_encoder(config: RerankerConfig) -> TransformersCrossEncoder:
    """
    Load tokenizer and model. Blocking; the registry calls this in a thread once.

    Raises:
        DependencyMissing: transformers/torch not installed.
        ModelUnavailable: Weights missing from cache or download failed.
    """
    try:
        from transformers import AutoModelForSequenceClassification, AutoTokenizer
    except ImportError as exc:
        raise wrap_cross_encoder_error(exc, config) from exc

    local_only = not config.remote_allowed
    cache_dir = str(Path(config.cache_dir))

    try:
        identifier = resolve_model_identifier(config)
        logger.info("Loading cross-encoder %s (local_files_only=%s)", identifier, local_only)

        with remote_downloads(config.remote_allowed):
            tokenizer = AutoTokenizer.from_pretrained(
                identifier,
                cache_dir=cache_dir,
                local_files_only=local_only,
            )
            model = AutoModelForSequenceClassification.from_pretrained(
                identifier,
                cache_dir=cache_dir,
                local_files_only=local_only,
            )
        model.eval()
    except Exception as exc:
        raise wrap_cross_encoder_error(exc, config) from exc

    return TransformersCrossEncoder(tokenizer, model, config)

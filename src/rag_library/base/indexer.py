"""
Abstract base classes for text extraction and chunking.

Why separate BaseTextHandler and BaseChunker?
    Extraction depends on the file format; chunking depends only on the
    text. Keeping them apart means a new format (say, RTF) is one new
    handler and nothing else changes:
        handler = get_handler_for_extension("pdf")
        chunks = chunker.chunk(sanitize_content(await handler.extract(path)))
"""

from abc import ABC, abstractmethod

from rag_library.config import ChunkingConfig
from rag_library.models.document import Chunk


class BaseTextHandler(ABC):
    """
    Contract for per-format text extractors.

    A handler declares the extensions it understands (lowercase, no dot)
    and turns a stored file into raw text. It does NOT clean or chunk the
    text; sanitize_content() and the chunker do that.

    Handlers import their optional parsing library lazily, inside
    extract(), and translate a missing library into DependencyMissing.
    """

    id: str = ""
    supported_extensions: frozenset[str] = frozenset()

    def matches(self, extension: str) -> bool:
        return extension.lower() in self.supported_extensions

    @abstractmethod
    async def extract(self, file_path: str) -> str:
        """
        Read the file and return its raw text.

        Args:
            file_path: Absolute path to the stored file.

        Returns:
            The extracted text, not yet sanitized.
        """
        ...


class BaseChunker(ABC):
    """
    Contract for chunkers.

    A chunker takes sanitized text and splits it into Chunk objects
    suitable for embedding. Every chunker receives a ChunkingConfig so the
    caller controls chunk_size and overlap.
    """

    def __init__(self, config: ChunkingConfig):
        self.config = config

    @abstractmethod
    def chunk(self, text: str) -> list[Chunk]:
        """
        Split text into chunks.

        Args:
            text: Sanitized document text.

        Returns:
            Chunks with sequential string ids and character offsets.
        """
        ...

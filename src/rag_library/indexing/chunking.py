"""
Fixed-window text chunking.

Takes sanitized document text and splits it into overlapping windows of
chunk_size characters. This is the only chunking strategy the indexer
uses: it is deterministic, needs no model, and its character offsets map
straight back into the normalized text.

How the window moves:

    text:   |-------- 2500 chars --------|
    chunk0: [0, 800)
    chunk1:       [600, 1400)          start = previous end - overlap
    chunk2:             [1200, 2000)
    chunk3:                   [1800, 2500)   stops once a window hits the end

Usage:
    from rag_library.indexing.chunking import chunk_text, FixedWindowChunker

    chunks = chunk_text(text, chunk_size=800, chunk_overlap=200)

    chunker = FixedWindowChunker(ChunkingConfig(chunk_size=500, chunk_overlap=50))
    chunks = chunker.chunk(text)
"""

import re
from typing import Optional

from rag_library.base.indexer import BaseChunker
from rag_library.config import ChunkingConfig
from rag_library.errors import InvalidArgument
from rag_library.models.document import Chunk

DEFAULT_CHUNK_SIZE = 800
DEFAULT_CHUNK_OVERLAP = 200

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse every whitespace run to one space and trim."""
    return _WHITESPACE.sub(" ", text).strip()


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
) -> list[Chunk]:
    """
    Split text into overlapping fixed-size windows.

    Pure and deterministic: the same arguments always produce the same
    chunks. Arguments are validated before any work is done, so invalid
    input never yields partial output.

    Args:
        text: Raw or sanitized text. Whitespace is normalized first.
        chunk_size: Window length in characters, > 0.
        chunk_overlap: Characters shared by consecutive windows,
            0 <= chunk_overlap < chunk_size.

    Returns:
        Chunks with sequential ids "0", "1", ... and offsets into the
        normalized text. Empty text gives an empty list.

    Raises:
        InvalidArgument: If chunk_size or chunk_overlap is out of range.
    """
    if chunk_size <= 0:
        raise InvalidArgument("chunk_size must be greater than 0")
    if chunk_overlap < 0:
        raise InvalidArgument("chunk_overlap must not be negative")
    if chunk_overlap >= chunk_size:
        # the window would never advance
        raise InvalidArgument(
            f"chunk_overlap ({chunk_overlap}) must be less than chunk_size ({chunk_size})"
        )

    normalized = normalize_text(text)
    if not normalized:
        return []

    length = len(normalized)
    chunks: list[Chunk] = []
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        content = normalized[start:end].strip()

        if content:
            chunks.append(Chunk(id=str(len(chunks)), content=content, start=start, end=end))

        if end == length:
            break

        start = max(0, end - chunk_overlap)

    return chunks


class FixedWindowChunker(BaseChunker):
    """
    BaseChunker wrapper around chunk_text().

    Lets the indexer receive a chunker object (and tests inject another)
    while the algorithm itself stays a plain function.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None):
        super().__init__(config or ChunkingConfig())

    def chunk(self, text: str) -> list[Chunk]:
        return chunk_text(
            text,
            chunk_size=self.config.chunk_size,
            chunk_overlap=self.config.chunk_overlap,
        )

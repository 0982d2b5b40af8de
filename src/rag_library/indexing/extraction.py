"""
Text extraction entry point.

Dispatches a stored file to its handler by extension, then cleans the
result with sanitize_content() before it reaches the chunker.

Usage:
    from rag_library.indexing.extraction import extract_text_content, sanitize_content

    raw = await extract_text_content("/srv/library/report.pdf")
    text = sanitize_content(raw)
"""

import re
from pathlib import Path

from rag_library.errors import UnsupportedFormat
from rag_library.indexing.handlers import SUPPORTED_EXTENSIONS, get_handler_for_extension

_LINE_ENDINGS = re.compile(r"\r\n?")
_INLINE_BREAKS = re.compile(r"[\t\f\v]+")


def file_extension(file_path: str) -> str:
    return Path(file_path).suffix.lstrip(".").lower()


def is_supported_extension(extension: str) -> bool:
    return extension.lower().lstrip(".") in SUPPORTED_EXTENSIONS


async def extract_text_content(file_path: str) -> str:
    """
    Extract raw text from a stored file.

    Args:
        file_path: Absolute path; its extension picks the handler.

    Returns:
        Unsanitized text as the handler produced it.

    Raises:
        UnsupportedFormat: No extension, or no handler for it.
        DependencyMissing: The handler's parsing library isn't installed.
    """
    extension = file_extension(file_path)
    if not extension:
        raise UnsupportedFormat("Unrecognized file format.")

    handler = get_handler_for_extension(extension)
    if handler is None:
        raise UnsupportedFormat(f"Unsupported file type: {extension}")

    return await handler.extract(file_path)


def sanitize_content(content: str) -> str:
    """
    Normalize line endings to \\n, turn tab/form-feed/vertical-tab runs
    into one space, and trim.
    """
    content = _LINE_ENDINGS.sub("\n", content)
    content = _INLINE_BREAKS.sub(" ", content)
    return content.strip()

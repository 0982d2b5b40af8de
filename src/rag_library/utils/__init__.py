"""
Utility functions.

Usage:
    from rag_library.utils import get_llm, configure_logging
"""

from .helpers import clamp_limit, get_llm
from .logger import configure_logging

__all__ = ["get_llm", "clamp_limit", "configure_logging"]

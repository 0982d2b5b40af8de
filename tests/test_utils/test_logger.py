"""Tests for logging setup."""

import logging

from rich.logging import RichHandler

from rag_library.utils.logger import NOISY_LOGGERS, configure_logging


def test_installs_rich_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        configure_logging("DEBUG", force=True)

        assert any(isinstance(h, RichHandler) for h in root.handlers)
        assert root.level == logging.DEBUG
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

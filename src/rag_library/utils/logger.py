"""
Logging setup.

Library modules only ever do `logger = logging.getLogger(__name__)`;
nothing is configured on import. Applications (scripts, servers, the
examples) call configure_logging() once at startup to get rich console
output and quieter third-party loggers.
"""

import logging
from typing import Union

from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "transformers",
    "sentence_transformers",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
)


def configure_logging(level: Union[int, str] = logging.INFO, force: bool = False) -> None:
    """
    Install a RichHandler on the root logger.

    Args:
        level: Root log level, as a logging constant or name ("DEBUG").
        force: Replace handlers that are already installed.
    """
    console = Console(stderr=True)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                tracebacks_show_locals=False,
                show_path=True,
            )
        ],
        force=force,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
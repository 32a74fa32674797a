"""Logging setup for the podshelf CLI."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
    level: str = "WARNING",
) -> logging.Logger:
    """Configure the ``podshelf`` logger.

    Console output goes to stderr through rich so it never mixes with
    command output such as ``--json`` listings.

    Args:
        verbose: Force DEBUG level
        log_file: Optional file that also receives every record
        level: Level name used when not verbose

    Returns:
        The configured package logger
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.WARNING)

    logger = logging.getLogger("podshelf")
    logger.setLevel(log_level)

    # Repeated calls (e.g. from tests) must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(log_level)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)
        # File receives everything
        logger.setLevel(logging.DEBUG)

    return logger

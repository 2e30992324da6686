"""Logging setup for the scibot package.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed here by entry points such as the CLI.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "scibot"


def configure_logging(level: str = "WARNING", console: Console | None = None) -> logging.Logger:
    """Attach a Rich handler to the package logger.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR)
        console: Console to write to (default: stderr)

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    # Replace handlers so repeated calls do not duplicate output
    logger.handlers.clear()
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger

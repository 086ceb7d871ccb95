"""
Logging configuration for footprint.

Diagnostics go to stderr through rich so the report on stdout stays clean.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


PACKAGE_LOGGER = "footprint"


def setup_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """
    Configure logging with a rich handler.

    Args:
        verbose: Enable DEBUG level logging
        quiet: Suppress all but ERROR level logging

    Returns:
        The package logger
    """
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        markup=False,
        show_time=verbose,
        show_path=verbose,
    )

    # Third-party chatter (httpx request lines) stays at WARNING unless verbose.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    return logger

"""Logging configuration using loguru.

Library modules import ``logger`` from here and only emit records; sinks are
configured once by the entry point through ``configure_logging``.
"""

from __future__ import annotations

import sys

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(verbose: bool = False, sink=sys.stderr) -> int:
    """Replace loguru's default handler with a single console sink.

    Args:
        verbose: Emit per-frame DEBUG messages when True, INFO and above otherwise
        sink: Destination for log records (stderr by default)

    Returns:
        Handler id of the added sink
    """
    logger.remove()
    return logger.add(
        sink,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=sink is sys.stderr,
    )


__all__ = ["logger", "configure_logging"]

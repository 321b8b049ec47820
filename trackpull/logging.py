"""
trackpull.logging - Centralized logging configuration.

Provides a simple logging setup with optional verbose mode for debugging.
Engine diagnostic lines are relayed on the ``trackpull.engine`` logger at
DEBUG level, so ``--verbose`` shows everything ffmpeg prints.
"""

from __future__ import annotations

import logging

logger = logging.getLogger("trackpull")


def configure_logging(verbose: bool = False) -> None:
    """Configure logging for the trackpull package.

    Args:
        verbose: If True, enable DEBUG level logging; otherwise WARNING level
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )
    logger.setLevel(level)

"""
trackpull.utils - Shared utility functions.

Contains common functions used across multiple modules to avoid duplication.
"""

from __future__ import annotations

import re

DEFAULT_INPUT_EXTENSION = ".mp4"

_EXTENSION_RE = re.compile(r"\.[^./\\]+$")


def get_extension(filename: str, default: str = DEFAULT_INPUT_EXTENSION) -> str:
    """Return the last extension of filename including the dot.

    Args:
        filename: File name (not a path)
        default: Returned when the name has no extension

    Returns:
        Extension such as ".mov", or default
    """
    match = _EXTENSION_RE.search(filename)
    return match.group(0) if match else default


def replace_extension(filename: str, extension: str) -> str:
    """Replace the last extension of filename, or append one if it has none."""
    if _EXTENSION_RE.search(filename):
        return _EXTENSION_RE.sub(extension, filename)
    return f"{filename.rstrip('.')}{extension}"


def format_size(size: float) -> str:
    """Format a byte count in human-readable form."""
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_ms(milliseconds: float) -> str:
    """Format milliseconds as '850ms' or '12.3s'."""
    if milliseconds < 1000:
        return f"{milliseconds:.0f}ms"
    return f"{milliseconds / 1000:.1f}s"

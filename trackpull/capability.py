"""
trackpull.capability - Pre-flight host capability checks.

Decides whether extraction should be attempted at all. The engine runtime
(the ffmpeg executable) is required; a single-CPU host is only a slower
mode and never blocks extraction.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass

from trackpull.config import DEFAULT_EXTRACTION_THRESHOLD_BYTES
from trackpull.exceptions import CapabilityUnsupportedError

logger = logging.getLogger(__name__)

INSTALL_HINT = "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)"


@dataclass(frozen=True)
class HostCapabilities:
    engine_runtime: bool
    multithreading: bool
    engine_path: str | None = None


def detect_capabilities(binary: str | None = None) -> HostCapabilities:
    """Read host capability flags. No processes are started.

    Args:
        binary: ffmpeg executable name or path; "ffmpeg" on PATH when None
    """
    engine_path = shutil.which(binary or "ffmpeg")
    cpu_count = os.cpu_count() or 1
    return HostCapabilities(
        engine_runtime=engine_path is not None,
        multithreading=cpu_count > 1,
        engine_path=engine_path,
    )


def is_supported(capabilities: HostCapabilities | None = None) -> bool:
    """Return True if extraction can run on this host."""
    caps = capabilities or detect_capabilities()
    if not caps.engine_runtime:
        logger.warning("FFmpeg runtime not available, audio extraction disabled")
        return False
    if not caps.multithreading:
        logger.info("Single CPU available, engine will run in single-threaded mode")
    return True


def require_supported(capabilities: HostCapabilities | None = None) -> HostCapabilities:
    """Like is_supported, but raise instead of returning False.

    Raises:
        CapabilityUnsupportedError: If the engine runtime is missing
    """
    caps = capabilities or detect_capabilities()
    if not is_supported(caps):
        raise CapabilityUnsupportedError("ffmpeg", "FFmpeg not found in PATH", INSTALL_HINT)
    return caps


def engine_threads(capabilities: HostCapabilities) -> int | None:
    """Thread count to force on the engine, or None to let it decide."""
    return None if capabilities.multithreading else 1


def should_extract(
    size_bytes: int, threshold_bytes: int = DEFAULT_EXTRACTION_THRESHOLD_BYTES
) -> bool:
    """Return True if a file is large enough for extraction to pay off.

    Files at or below the threshold are cheaper to upload unmodified.
    """
    return size_bytes > threshold_bytes


def engine_version(binary: str | None = None) -> str:
    """Return the ffmpeg version string, or "unknown".

    Raises:
        CapabilityUnsupportedError: If ffmpeg is not found
    """
    engine_path = shutil.which(binary or "ffmpeg")
    if not engine_path:
        raise CapabilityUnsupportedError("ffmpeg", "FFmpeg not found in PATH", INSTALL_HINT)

    try:
        proc = subprocess.run(
            [engine_path, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        return version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError, OSError):
        return "unknown"

"""
trackpull.extract - Audio extraction from video files.

Probes the input's audio codec, stream-copies AAC/MP3 audio as-is and
re-encodes anything else to 16kHz mono MP3 for transcription.
"""

from __future__ import annotations

from trackpull.extract.pipeline import (
    extract_audio,
    extract_audio_file,
    is_engine_loaded,
    preload_engine,
    probe_request,
)

__all__ = [
    "extract_audio",
    "extract_audio_file",
    "is_engine_loaded",
    "preload_engine",
    "probe_request",
]

"""
trackpull.engine - Transcoding engine boundary and its loader.
"""

from __future__ import annotations

from trackpull.engine.base import Engine
from trackpull.engine.ffmpeg import FFmpegEngine
from trackpull.engine.loader import EngineLoader, get_default_loader, reset_default_loader

__all__ = [
    "Engine",
    "EngineLoader",
    "FFmpegEngine",
    "get_default_loader",
    "reset_default_loader",
]

"""
trackpull.exceptions - Custom exception classes.

All trackpull-specific exceptions inherit from TrackpullError.
"""

from __future__ import annotations


class TrackpullError(Exception):
    """Base exception for all trackpull errors."""

    pass


class ConfigError(TrackpullError):
    """Configuration loading or validation error."""

    pass


class CapabilityUnsupportedError(TrackpullError):
    """Host cannot run the transcoding engine at all."""

    def __init__(self, capability: str, message: str, install_hint: str | None = None):
        self.capability = capability
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{capability}: {message}")


class EngineError(TrackpullError):
    """Engine boundary failure (process spawn, sandbox file I/O)."""

    pass


class EngineLoadError(TrackpullError):
    """Engine could not be loaded. A later acquire() may succeed."""

    pass


class ProbeInconclusiveError(TrackpullError):
    """Probe produced nothing to classify. Never leaves the probe."""

    pass


class NoAudioTrackError(TrackpullError):
    """Input has no audio stream to extract."""

    def __init__(self, filename: str | None = None):
        self.filename = filename
        target = f"'{filename}'" if filename else "input"
        super().__init__(f"No audio track found in {target}")


class ExtractionError(TrackpullError):
    """Audio extraction error."""

    def __init__(
        self,
        underlying_message: str,
        codec: str | None = None,
        mode: str | None = None,
    ):
        self.underlying_message = underlying_message
        self.codec = codec
        self.mode = mode
        context = ", ".join(
            f"{key}={value}" for key, value in (("codec", codec), ("mode", mode)) if value
        )
        prefix = f"Audio extraction failed ({context})" if context else "Audio extraction failed"
        super().__init__(f"{prefix}: {underlying_message}")


class ArtifactAssemblyError(TrackpullError):
    """Engine output could not be turned into an audio artifact."""

    pass

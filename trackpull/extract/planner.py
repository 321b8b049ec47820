"""
trackpull.extract.planner - Stream-copy vs re-encode decision.

Stream-copy keeps the original compressed audio and is near-instant
regardless of input size. Everything else is decoded and re-encoded to a
small mono MP3 tuned for speech transcription.
"""

from __future__ import annotations

from trackpull.config import ReencodeSettings
from trackpull.exceptions import NoAudioTrackError
from trackpull.models import CodecInfo, ExtractionMode, ExtractionPlan, OutputContainer

COPY_ARGS = ("-vn", "-acodec", "copy")


def reencode_args(settings: ReencodeSettings) -> tuple[str, ...]:
    return (
        "-vn",
        "-acodec",
        settings.encoder,
        "-b:a",
        f"{settings.bitrate_kbps}k",
        "-ar",
        str(settings.sample_rate_hz),
        "-ac",
        str(settings.channels),
    )


def plan(
    codec_info: CodecInfo,
    settings: ReencodeSettings | None = None,
    filename: str | None = None,
) -> ExtractionPlan:
    """Derive the engine invocation for a probed input.

    Args:
        codec_info: Probe classification
        settings: Re-encode parameters (speech defaults when None)
        filename: Original filename, only used in error messages

    Raises:
        NoAudioTrackError: If the input has no audio stream
    """
    if not codec_info.has_audio:
        raise NoAudioTrackError(filename)

    if codec_info.can_stream_copy:
        return ExtractionPlan(
            mode=ExtractionMode.COPY,
            codec_args=COPY_ARGS,
            container=codec_info.container,
        )

    return ExtractionPlan(
        mode=ExtractionMode.REENCODE,
        codec_args=reencode_args(settings or ReencodeSettings()),
        container=OutputContainer.MP3,
    )

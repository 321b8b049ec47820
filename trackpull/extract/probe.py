"""
trackpull.extract.probe - Audio codec detection.

Runs the engine with only an input (which makes ffmpeg print the stream
layout and then fail) and classifies the audio codec from the captured
diagnostic lines. The string matching lives in pure helpers so a structured
metadata source can replace it without touching the planner or executor.
"""

from __future__ import annotations

import logging
import re

from trackpull.engine.base import Engine
from trackpull.exceptions import EngineError, ProbeInconclusiveError
from trackpull.models import CodecInfo, OutputContainer

logger = logging.getLogger(__name__)

_INPUT_RE = re.compile(r"^Input #\d+,.*from '(?P<name>.*)':")
_SECTION_RE = re.compile(r"^(Input|Output) #\d+")
_AUDIO_RE = re.compile(r"Audio:\s*(\w+)", re.IGNORECASE)

UNKNOWN_CODEC = "unknown"


def find_input_block(lines: list[str], input_name: str | None = None) -> list[str] | None:
    """Lines belonging to the 'Input #N ... from <input_name>' block.

    Without input_name the first Input block is used. Returns None when
    ffmpeg never listed the input, e.g. because it could not open it.
    """
    for index, line in enumerate(lines):
        match = _INPUT_RE.match(line.strip())
        if match and (not input_name or match.group("name").endswith(input_name)):
            block = []
            for following in lines[index + 1 :]:
                if _SECTION_RE.match(following.strip()):
                    break
                block.append(following)
            return block
    return None


def _lines_for_input(lines: list[str], input_name: str | None) -> list[str]:
    block = find_input_block(lines, input_name)
    return lines if block is None else block


def find_audio_stream_line(lines: list[str], input_name: str | None = None) -> str | None:
    """Return the first 'Stream ... Audio: <codec>' line, if any."""
    for line in _lines_for_input(lines, input_name):
        if "Stream" in line and _AUDIO_RE.search(line):
            return line.strip()
    return None


def classify_codec(codec: str) -> CodecInfo:
    """Map a codec token to its output strategy."""
    codec = codec.lower()
    if codec == "aac":
        return CodecInfo(codec="aac", can_stream_copy=True, container=OutputContainer.M4A)
    if codec == "mp3":
        return CodecInfo(codec="mp3", can_stream_copy=True, container=OutputContainer.MP3)
    return CodecInfo(codec=codec, can_stream_copy=False, container=OutputContainer.MP3)


def parse_probe_output(lines: list[str], input_name: str | None = None) -> CodecInfo:
    """Classify the audio codec from captured engine log lines.

    The input is only reported as having no audio when ffmpeg listed its
    streams and none of them was audio.

    Raises:
        ProbeInconclusiveError: If there is nothing to classify, or the
            input's stream listing is missing
    """
    if not any(line.strip() for line in lines):
        raise ProbeInconclusiveError("Engine produced no diagnostic output")

    audio_line = find_audio_stream_line(lines, input_name)
    if audio_line is None:
        if find_input_block(lines, input_name) is None:
            detail = next(line.strip() for line in reversed(lines) if line.strip())
            raise ProbeInconclusiveError(f"Engine did not list the input's streams: {detail}")
        return CodecInfo(
            codec=UNKNOWN_CODEC,
            can_stream_copy=False,
            container=OutputContainer.MP3,
            has_audio=False,
        )

    match = _AUDIO_RE.search(audio_line)
    return classify_codec(match.group(1))


async def probe(engine: Engine, input_name: str) -> CodecInfo:
    """Detect the audio codec of a virtual file already written to the engine.

    Never raises for unreadable or ambiguous input: an inconclusive probe is
    classified as an unknown codec, which the planner re-encodes.
    """
    lines: list[str] = []

    def capture(payload: dict) -> None:
        lines.append(str(payload.get("message", "")))

    async with engine.exclusive():
        with engine.listening("log", capture):
            try:
                # Expected to fail: no output file is given
                await engine.exec(["-i", input_name])
            except EngineError as e:
                logger.debug(f"Probe invocation failed: {e}")

    try:
        codec_info = parse_probe_output(lines, input_name)
    except ProbeInconclusiveError as e:
        logger.warning(f"Probe inconclusive for {input_name}, will re-encode: {e}")
        return CodecInfo(
            codec=UNKNOWN_CODEC, can_stream_copy=False, container=OutputContainer.MP3
        )

    logger.info(
        f"Probe result for {input_name}: codec={codec_info.codec}, "
        f"copy={codec_info.can_stream_copy}, audio={codec_info.has_audio}"
    )
    return codec_info

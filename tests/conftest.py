"""
Test configuration and shared fixtures.

FakeEngine stands in for ffmpeg: it keeps virtual files in a dict, prints
ffmpeg-style stream listings when probed, and replays a scripted sequence of
progress fractions when extracting.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from trackpull.capability import HostCapabilities
from trackpull.engine.base import Engine
from trackpull.engine.loader import EngineLoader

AUDIO_DESCRIPTIONS = {
    "aac": "aac (LC) (mp4a / 0x6134706D), 48000 Hz, stereo, fltp, 128 kb/s (default)",
    "mp3": "mp3 (mp4a / 0x6134706D), 44100 Hz, stereo, fltp, 192 kb/s (default)",
    "pcm_s16le": "pcm_s16le (sowt / 0x74776F73), 48000 Hz, stereo, s16, 1536 kb/s (default)",
    "opus": "opus, 48000 Hz, stereo, fltp (default)",
}


def ffmpeg_probe_lines(input_name: str, audio_codec: str | None) -> list[str]:
    """Lines ffmpeg prints for 'ffmpeg -i <input>'."""
    lines = [
        f"Input #0, mov,mp4,m4a,3gp,3g2,mj2, from '{input_name}':",
        "  Metadata:",
        "    major_brand     : isom",
        "  Duration: 00:00:30.00, start: 0.000000, bitrate: 13981 kb/s",
        "  Stream #0:0[0x1](und): Video: h264 (High) (avc1 / 0x31637661), "
        "yuv420p, 1920x1080, 13850 kb/s, 30 fps (default)",
    ]
    if audio_codec:
        description = AUDIO_DESCRIPTIONS.get(audio_codec, f"{audio_codec}, 48000 Hz, stereo")
        lines.append(f"  Stream #0:1[0x2](und): Audio: {description}")
    lines.append("At least one output file must be specified")
    return lines


class FakeEngine(Engine):
    def __init__(
        self,
        audio_codec: str | None = "aac",
        probe_lines: list[str] | None = None,
        progress: tuple[float, ...] = (0.1, 0.25, 0.25, 0.5, 0.49, 1.0),
        output: Any = b"\x00audio-bytes",
        exec_exit_code: int = 0,
        exec_error: Exception | None = None,
        write_output: bool = True,
        load_error: Exception | None = None,
        load_ticks: int = 3,
    ) -> None:
        super().__init__()
        self.audio_codec = audio_codec
        self.probe_lines = probe_lines
        self.progress = progress
        self.output = output
        self.exec_exit_code = exec_exit_code
        self.exec_error = exec_error
        self.write_output = write_output
        self.load_error = load_error
        self.load_ticks = load_ticks
        self.files: dict[str, Any] = {}
        self.written: list[str] = []
        self.deleted: list[str] = []
        self.exec_calls: list[list[str]] = []
        self.load_calls = 0
        self.closed = False
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded and not self.closed

    async def load(self) -> None:
        self.load_calls += 1
        for _ in range(self.load_ticks):
            await asyncio.sleep(0)
        if self.load_error:
            raise self.load_error
        self._loaded = True

    async def write_file(self, name: str, data: bytes) -> None:
        await asyncio.sleep(0)
        self.files[name] = data
        self.written.append(name)

    async def exec(self, args: list[str]) -> int:
        self.exec_calls.append(list(args))
        await asyncio.sleep(0)

        if len(args) == 2 and args[0] == "-i":
            lines = self.probe_lines
            if lines is None:
                lines = ffmpeg_probe_lines(args[1], self.audio_codec)
            for line in lines:
                self.emit("log", {"message": line})
            return 1

        if self.exec_error:
            raise self.exec_error

        output_name = args[-1]
        for fraction in self.progress:
            self.emit("progress", {"progress": fraction, "time": 0})
            await asyncio.sleep(0)

        if self.write_output:
            # ffmpeg leaves a partial file behind even when it fails
            self.files[output_name] = self.output
        return self.exec_exit_code

    async def read_file(self, name: str) -> Any:
        await asyncio.sleep(0)
        if name not in self.files:
            raise FileNotFoundError(name)
        return self.files[name]

    async def delete_file(self, name: str) -> None:
        if name not in self.files:
            raise FileNotFoundError(name)
        del self.files[name]
        self.deleted.append(name)

    async def list_files(self) -> list[str]:
        return sorted(self.files)

    async def close(self) -> None:
        self.closed = True

    def handler_count(self, event: str) -> int:
        return len(self._handlers[event])


@pytest.fixture
def make_engine() -> Callable[..., FakeEngine]:
    """Factory for FakeEngine instances."""
    return FakeEngine


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def loaded_engine() -> FakeEngine:
    """A FakeEngine that is already loaded."""
    engine = FakeEngine()
    asyncio.run(engine.load())
    return engine


@pytest.fixture
def make_loader() -> Callable[[FakeEngine], EngineLoader]:
    """Loader that hands out the given engine."""

    def build(engine: FakeEngine) -> EngineLoader:
        return EngineLoader(lambda: engine)

    return build


@pytest.fixture
def capable_host() -> HostCapabilities:
    return HostCapabilities(engine_runtime=True, multithreading=True, engine_path="/usr/bin/ffmpeg")


@pytest.fixture
def incapable_host() -> HostCapabilities:
    return HostCapabilities(engine_runtime=False, multithreading=False, engine_path=None)

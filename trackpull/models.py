"""
trackpull.models - Request, codec, plan and result types.

Every type here is created per request and discarded when the request
completes. Only the engine handle outlives a request.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from trackpull.utils import get_extension

STREAM_COPY_CODECS = frozenset({"aac", "mp3"})


class OutputContainer(str, Enum):
    """Audio containers the pipeline can produce."""

    M4A = "m4a"
    MP3 = "mp3"

    @property
    def extension(self) -> str:
        return f".{self.value}"

    @property
    def mime_type(self) -> str:
        return "audio/mp4" if self is OutputContainer.M4A else "audio/mpeg"


class ExtractionMode(str, Enum):
    COPY = "copy"
    REENCODE = "reencode"


@dataclass(frozen=True)
class ExtractionRequest:
    """Input media plus its original filename.

    request_id namespaces the virtual files this request creates inside the
    shared engine.
    """

    data: bytes
    filename: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self):
        if not self.filename or not self.filename.strip():
            raise ValueError("Request filename cannot be empty.")

    @classmethod
    def from_path(cls, path: Path) -> ExtractionRequest:
        return cls(data=path.read_bytes(), filename=path.name)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return get_extension(self.filename)


@dataclass(frozen=True)
class CodecInfo:
    """Audio codec classification derived from the probe."""

    codec: str
    can_stream_copy: bool
    container: OutputContainer
    has_audio: bool = True

    def __post_init__(self):
        if self.can_stream_copy and self.codec not in STREAM_COPY_CODECS:
            raise ValueError(f"Codec '{self.codec}' cannot be stream-copied.")

    @property
    def output_extension(self) -> str:
        return self.container.extension

    @property
    def output_mime_type(self) -> str:
        return self.container.mime_type


@dataclass(frozen=True)
class ExtractionPlan:
    """Concrete engine invocation for one request."""

    mode: ExtractionMode
    codec_args: tuple[str, ...]
    container: OutputContainer

    def arguments(self, input_name: str, output_name: str) -> list[str]:
        return ["-i", input_name, *self.codec_args, output_name]


TIMING_STAGES = ("engine_load", "write_input", "probe", "extract", "read_output", "total")


@dataclass
class ExtractionTimings:
    """Wall-clock milliseconds per stage. Each stage is recorded once."""

    engine_load: float = 0.0
    write_input: float = 0.0
    probe: float = 0.0
    extract: float = 0.0
    read_output: float = 0.0
    total: float = 0.0
    _recorded: set[str] = field(default_factory=set, repr=False, compare=False)

    def record(self, stage: str, elapsed_ms: float) -> None:
        if stage not in TIMING_STAGES:
            raise ValueError(f"Unknown timing stage: {stage}")
        if stage in self._recorded:
            raise ValueError(f"Timing for '{stage}' already recorded")
        self._recorded.add(stage)
        setattr(self, stage, elapsed_ms)

    @contextmanager
    def measure(self, stage: str) -> Iterator[None]:
        """Record the wall-clock time of the block, even if it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(stage, (time.perf_counter() - start) * 1000)

    def as_dict(self) -> dict[str, float]:
        return {f"{stage}_ms": round(getattr(self, stage), 1) for stage in TIMING_STAGES}

    def summary(self) -> str:
        return ", ".join(f"{stage}={getattr(self, stage):.0f}ms" for stage in TIMING_STAGES)


@dataclass
class ExtractionResult:
    """Finished audio artifact. Owned by the caller."""

    data: bytes
    filename: str
    mime_type: str
    mode: ExtractionMode
    codec: str
    original_filename: str
    timings: ExtractionTimings

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def save(self, directory: Path) -> Path:
        """Write the artifact into directory and return its path."""
        from trackpull.io import write_bytes

        path = directory / self.filename
        write_bytes(path, self.data)
        return path

    def to_dict(self) -> dict:
        return {
            "filename": self.filename,
            "original_filename": self.original_filename,
            "mime_type": self.mime_type,
            "mode": self.mode.value,
            "codec": self.codec,
            "size_bytes": self.size_bytes,
            "timings": self.timings.as_dict(),
        }

"""
trackpull.extract.artifact - Request-scoped virtual files and the final artifact.

The engine is shared by every request, so each request names its virtual
files after its own request id and deletes exactly those files on every
exit path.
"""

from __future__ import annotations

import logging
from typing import Any

from trackpull.engine.base import Engine
from trackpull.exceptions import ArtifactAssemblyError
from trackpull.models import CodecInfo, ExtractionMode, ExtractionResult, ExtractionTimings
from trackpull.utils import replace_extension

logger = logging.getLogger(__name__)


class VirtualFileScope:
    """Tracks the virtual files one request creates and releases them.

    Use as an async context manager; release() may also be called directly
    and is idempotent.
    """

    def __init__(self, engine: Engine, request_id: str) -> None:
        self.engine = engine
        self.request_id = request_id
        self._names: list[str] = []

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def input_name(self, extension: str) -> str:
        return self.track(f"{self.request_id}_input{extension}")

    def output_name(self, extension: str) -> str:
        return self.track(f"{self.request_id}_output{extension}")

    def track(self, name: str) -> str:
        if name not in self._names:
            self._names.append(name)
        return name

    async def release(self) -> None:
        """Delete every tracked file. Missing files are skipped."""
        while self._names:
            name = self._names.pop()
            try:
                await self.engine.delete_file(name)
                logger.debug(f"Deleted virtual file {name}")
            except FileNotFoundError:
                pass
            except Exception as e:
                logger.error(f"Failed to delete virtual file {name}: {e}")

    async def __aenter__(self) -> VirtualFileScope:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


def normalize_output(raw: Any) -> bytes:
    """Coerce engine output into bytes.

    Raises:
        ArtifactAssemblyError: If the output is empty or of an unknown type
    """
    if isinstance(raw, str):
        data = raw.encode("utf-8")
    elif isinstance(raw, (bytes, bytearray, memoryview)):
        data = bytes(raw)
    else:
        raise ArtifactAssemblyError(f"Unexpected engine output type: {type(raw).__name__}")

    if not data:
        raise ArtifactAssemblyError("Engine produced an empty audio file")
    return data


async def finalize(
    scope: VirtualFileScope,
    raw_output: Any,
    codec_info: CodecInfo,
    original_filename: str,
    mode: ExtractionMode,
    timings: ExtractionTimings,
) -> ExtractionResult:
    """Build the ExtractionResult and release the request's virtual files.

    Raises:
        ArtifactAssemblyError: If the engine output is unusable
    """
    try:
        data = normalize_output(raw_output)
        filename = replace_extension(original_filename, codec_info.output_extension)
        return ExtractionResult(
            data=data,
            filename=filename,
            mime_type=codec_info.output_mime_type,
            mode=mode,
            codec=codec_info.codec,
            original_filename=original_filename,
            timings=timings,
        )
    finally:
        await scope.release()

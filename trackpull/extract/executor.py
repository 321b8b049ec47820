"""
trackpull.extract.executor - Drives the engine through an extraction plan.

States run strictly in order:
idle -> writing-input -> extracting -> reading-output -> done | failed.
Raw engine progress payloads are converted to ProgressEvents here and never
leave this module.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from trackpull.engine.base import Engine
from trackpull.exceptions import EngineError, ExtractionError
from trackpull.extract.artifact import VirtualFileScope
from trackpull.models import (
    CodecInfo,
    ExtractionMode,
    ExtractionPlan,
    ExtractionRequest,
    ExtractionTimings,
)
from trackpull.progress import (
    ProgressCallback,
    ProgressEvent,
    ProgressStage,
    fraction_to_percent,
)

logger = logging.getLogger(__name__)


class ExecutorState(str, Enum):
    IDLE = "idle"
    WRITING_INPUT = "writing-input"
    EXTRACTING = "extracting"
    READING_OUTPUT = "reading-output"
    DONE = "done"
    FAILED = "failed"


class ExtractionExecutor:
    """Runs one request's engine work. Not reusable across requests."""

    def __init__(
        self,
        engine: Engine,
        scope: VirtualFileScope,
        timings: ExtractionTimings,
    ) -> None:
        self.engine = engine
        self.scope = scope
        self.timings = timings
        self.state = ExecutorState.IDLE
        self.input_name: Optional[str] = None
        self.output_name: Optional[str] = None

    def _advance(self, expected: ExecutorState, new: ExecutorState) -> None:
        if self.state is not expected:
            raise RuntimeError(
                f"Executor cannot move to '{new.value}' from '{self.state.value}'"
            )
        self.state = new

    async def write_input(self, request: ExtractionRequest) -> str:
        """Copy the request's media into the engine and return its virtual name."""
        self._advance(ExecutorState.IDLE, ExecutorState.WRITING_INPUT)
        self.input_name = self.scope.input_name(request.extension)
        try:
            with self.timings.measure("write_input"):
                await self.engine.write_file(self.input_name, request.data)
        except EngineError as e:
            self.state = ExecutorState.FAILED
            raise ExtractionError(f"Could not load input into engine: {e}") from e
        logger.debug(
            f"Wrote {request.size_bytes} bytes of '{request.filename}' as {self.input_name}"
        )
        return self.input_name

    async def execute(
        self,
        plan: ExtractionPlan,
        codec_info: CodecInfo,
        on_progress: Optional[ProgressCallback] = None,
    ) -> bytes | str:
        """Run the plan and return the raw engine output.

        Raises:
            ExtractionError: If the invocation fails or leaves no output
        """
        self._advance(ExecutorState.WRITING_INPUT, ExecutorState.EXTRACTING)
        self.output_name = self.scope.output_name(plan.container.extension)
        args = plan.arguments(self.input_name, self.output_name)

        label = (
            "Extracting audio (copy mode)"
            if plan.mode is ExtractionMode.COPY
            else "Converting audio"
        )
        last_percent = 0

        def report(percent: int) -> None:
            if on_progress:
                on_progress(
                    ProgressEvent(ProgressStage.EXTRACTING, percent, f"{label}... {percent}%")
                )

        def on_engine_progress(payload: dict) -> None:
            nonlocal last_percent
            percent = fraction_to_percent(payload.get("progress", 0))
            if percent > last_percent:
                last_percent = percent
                report(percent)

        report(0)
        logger.info(f"Using {plan.mode.value} mode for codec {codec_info.codec}")

        try:
            with self.timings.measure("extract"):
                async with self.engine.exclusive():
                    with self.engine.listening("progress", on_engine_progress):
                        exit_code = await self.engine.exec(args)
        except EngineError as e:
            raise self._failure(str(e), plan, codec_info) from e

        if exit_code != 0:
            raise self._failure(f"engine exited with code {exit_code}", plan, codec_info)

        if last_percent < 100:
            report(100)

        self._advance(ExecutorState.EXTRACTING, ExecutorState.READING_OUTPUT)
        try:
            with self.timings.measure("read_output"):
                raw = await self.engine.read_file(self.output_name)
        except (FileNotFoundError, EngineError) as e:
            raise self._failure(f"output file unavailable: {e}", plan, codec_info) from e

        self.state = ExecutorState.DONE
        return raw

    def _failure(
        self, message: str, plan: ExtractionPlan, codec_info: CodecInfo
    ) -> ExtractionError:
        self.state = ExecutorState.FAILED
        logger.error(f"Extraction failed ({codec_info.codec}, {plan.mode.value}): {message}")
        return ExtractionError(message, codec=codec_info.codec, mode=plan.mode.value)

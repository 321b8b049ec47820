"""Tests for trackpull.extract.executor module."""

from __future__ import annotations

import asyncio

import pytest

from trackpull.exceptions import EngineError, ExtractionError
from trackpull.extract.artifact import VirtualFileScope
from trackpull.extract.executor import ExecutorState, ExtractionExecutor
from trackpull.extract.planner import plan
from trackpull.extract.probe import classify_codec
from trackpull.models import ExtractionRequest, ExtractionTimings
from trackpull.progress import ProgressEvent, ProgressStage


def run_executor(engine, codec="aac", events=None, executor_out=None):
    request = ExtractionRequest(b"video-bytes", "talk.mp4", request_id="req1")
    codec_info = classify_codec(codec)
    extraction_plan = plan(codec_info)

    async def run():
        async with VirtualFileScope(engine, request.request_id) as scope:
            executor = ExtractionExecutor(engine, scope, ExtractionTimings())
            if executor_out is not None:
                executor_out.append(executor)
            await executor.write_input(request)
            return await executor.execute(
                extraction_plan, codec_info, events.append if events is not None else None
            )

    return asyncio.run(run())


class TestExecuteSuccess:
    def test_returns_raw_output(self, loaded_engine) -> None:
        assert run_executor(loaded_engine) == b"\x00audio-bytes"

    def test_invocation_uses_request_scoped_names(self, loaded_engine) -> None:
        run_executor(loaded_engine)
        assert loaded_engine.exec_calls[-1] == [
            "-i",
            "req1_input.mp4",
            "-vn",
            "-acodec",
            "copy",
            "req1_output.m4a",
        ]

    def test_progress_is_deduplicated_and_monotonic(self, loaded_engine) -> None:
        events: list[ProgressEvent] = []
        run_executor(loaded_engine, events=events)

        assert all(e.stage is ProgressStage.EXTRACTING for e in events)
        assert [e.percent for e in events] == [0, 10, 25, 50, 100]

    def test_reports_100_when_engine_stops_short(self, make_engine) -> None:
        engine = make_engine(progress=(0.3, 0.6))
        asyncio.run(engine.load())
        events: list[ProgressEvent] = []
        run_executor(engine, events=events)
        assert [e.percent for e in events] == [0, 30, 60, 100]

    def test_message_names_mode(self, loaded_engine) -> None:
        events: list[ProgressEvent] = []
        run_executor(loaded_engine, codec="pcm_s16le", events=events)
        assert events[-1].message.startswith("Converting audio")

    def test_state_reaches_done(self, loaded_engine) -> None:
        executors: list[ExtractionExecutor] = []
        run_executor(loaded_engine, executor_out=executors)
        assert executors[0].state is ExecutorState.DONE

    def test_records_timings(self, loaded_engine) -> None:
        executors: list[ExtractionExecutor] = []
        run_executor(loaded_engine, executor_out=executors)
        timings = executors[0].timings
        assert {"write_input", "extract", "read_output"} <= timings._recorded

    def test_progress_handler_detached(self, loaded_engine) -> None:
        run_executor(loaded_engine)
        assert loaded_engine.handler_count("progress") == 0


class TestExecuteFailure:
    def test_nonzero_exit_raises_extraction_error(self, make_engine) -> None:
        engine = make_engine(audio_codec="opus", exec_exit_code=1)
        asyncio.run(engine.load())
        with pytest.raises(ExtractionError) as exc_info:
            run_executor(engine, codec="opus")
        error = exc_info.value
        assert error.codec == "opus"
        assert error.mode == "reencode"
        assert "exited with code 1" in error.underlying_message

    def test_engine_error_is_wrapped(self, make_engine) -> None:
        engine = make_engine(exec_error=EngineError("worker crashed"))
        asyncio.run(engine.load())
        with pytest.raises(ExtractionError) as exc_info:
            run_executor(engine)
        assert exc_info.value.mode == "copy"
        assert "worker crashed" in str(exc_info.value)

    def test_missing_output_raises(self, make_engine) -> None:
        engine = make_engine(write_output=False)
        asyncio.run(engine.load())
        with pytest.raises(ExtractionError):
            run_executor(engine)

    def test_failure_cleans_up(self, make_engine) -> None:
        engine = make_engine(exec_exit_code=1)
        asyncio.run(engine.load())
        with pytest.raises(ExtractionError):
            run_executor(engine)
        assert engine.files == {}

    def test_failure_sets_failed_state(self, make_engine) -> None:
        engine = make_engine(exec_exit_code=1)
        asyncio.run(engine.load())
        executors: list[ExtractionExecutor] = []
        with pytest.raises(ExtractionError):
            run_executor(engine, executor_out=executors)
        assert executors[0].state is ExecutorState.FAILED


class TestStateMachine:
    def test_execute_before_write_raises(self, loaded_engine) -> None:
        codec_info = classify_codec("aac")

        async def run():
            scope = VirtualFileScope(loaded_engine, "req")
            executor = ExtractionExecutor(loaded_engine, scope, ExtractionTimings())
            await executor.execute(plan(codec_info), codec_info)

        with pytest.raises(RuntimeError):
            asyncio.run(run())

    def test_write_twice_raises(self, loaded_engine) -> None:
        request = ExtractionRequest(b"x", "a.mp4")

        async def run():
            scope = VirtualFileScope(loaded_engine, request.request_id)
            executor = ExtractionExecutor(loaded_engine, scope, ExtractionTimings())
            await executor.write_input(request)
            await executor.write_input(request)

        with pytest.raises(RuntimeError):
            asyncio.run(run())

    def test_write_failure_raises_extraction_error(self, loaded_engine) -> None:
        async def broken_write(name, data):
            raise EngineError("sandbox full")

        loaded_engine.write_file = broken_write
        request = ExtractionRequest(b"x", "a.mp4")

        async def run():
            scope = VirtualFileScope(loaded_engine, request.request_id)
            executor = ExtractionExecutor(loaded_engine, scope, ExtractionTimings())
            await executor.write_input(request)

        with pytest.raises(ExtractionError):
            asyncio.run(run())

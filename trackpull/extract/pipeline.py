"""
trackpull.extract.pipeline - End-to-end audio extraction for one file.

capability gate -> engine load -> write input -> probe -> plan -> extract
-> finalize. Every stage fails with a typed error, and the request's virtual
files are released before any error reaches the caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from trackpull.capability import HostCapabilities, detect_capabilities, require_supported
from trackpull.config import TrackpullConfig
from trackpull.engine.loader import EngineLoader, get_default_loader
from trackpull.exceptions import NoAudioTrackError
from trackpull.extract.artifact import VirtualFileScope, finalize
from trackpull.extract.executor import ExtractionExecutor
from trackpull.extract.planner import plan
from trackpull.extract.probe import probe
from trackpull.models import (
    CodecInfo,
    ExtractionPlan,
    ExtractionRequest,
    ExtractionResult,
    ExtractionTimings,
)
from trackpull.progress import ProgressCallback, ProgressEmitter, ProgressStage
from trackpull.utils import format_size

logger = logging.getLogger(__name__)


async def extract_audio(
    request: ExtractionRequest,
    *,
    on_progress: Optional[ProgressCallback] = None,
    loader: Optional[EngineLoader] = None,
    config: Optional[TrackpullConfig] = None,
    capabilities: Optional[HostCapabilities] = None,
) -> ExtractionResult:
    """Extract the audio track of request into a compact artifact.

    Args:
        request: Input media and its original filename
        on_progress: Receives ProgressEvents in strictly increasing order
        loader: Engine loader; the process-wide loader when None
        config: Pipeline configuration; defaults when None
        capabilities: Host capabilities; detected when None

    Returns:
        ExtractionResult with the audio bytes, filename, MIME type and timings

    Raises:
        CapabilityUnsupportedError: If the host cannot run the engine
        EngineLoadError: If the engine fails to load (retryable)
        NoAudioTrackError: If the input has no audio stream
        ExtractionError: If the engine invocation fails
        ArtifactAssemblyError: If the engine output is unusable
    """
    cfg = config or TrackpullConfig()
    require_supported(capabilities or detect_capabilities(cfg.resolved_ffmpeg_binary))
    loader = loader or get_default_loader(cfg)

    emit = ProgressEmitter(on_progress)
    timings = ExtractionTimings()
    total_start = time.perf_counter()
    logger.info(
        f"Starting extraction for: {request.filename} ({format_size(request.size_bytes)})"
    )

    with timings.measure("engine_load"):
        engine = await loader.acquire(emit)

    async with VirtualFileScope(engine, request.request_id) as scope:
        executor = ExtractionExecutor(engine, scope, timings)

        emit.report(ProgressStage.PROBING, 0, "Analyzing video file...")
        input_name = await executor.write_input(request)
        with timings.measure("probe"):
            codec_info = await probe(engine, input_name)
        emit.report(ProgressStage.PROBING, 100, f"Detected audio codec: {codec_info.codec}")

        extraction_plan = plan(codec_info, cfg.reencode, request.filename)
        raw_output = await executor.execute(extraction_plan, codec_info, emit)

        emit.report(ProgressStage.FINALIZING, 0, "Finalizing audio file...")
        result = await finalize(
            scope,
            raw_output,
            codec_info,
            request.filename,
            extraction_plan.mode,
            timings,
        )

    timings.record("total", (time.perf_counter() - total_start) * 1000)
    logger.info(
        f"Extracted audio: {result.filename} ({format_size(result.size_bytes)}), "
        f"mode={result.mode.value}"
    )
    logger.info(f"Timings: {timings.summary()}")

    emit.report(ProgressStage.FINALIZING, 100, "Audio extraction complete")
    return result


async def probe_request(
    request: ExtractionRequest,
    *,
    loader: Optional[EngineLoader] = None,
    config: Optional[TrackpullConfig] = None,
    capabilities: Optional[HostCapabilities] = None,
) -> tuple[CodecInfo, Optional[ExtractionPlan]]:
    """Probe a request and plan it without extracting anything.

    The plan is None when the input has no audio track.
    """
    cfg = config or TrackpullConfig()
    require_supported(capabilities or detect_capabilities(cfg.resolved_ffmpeg_binary))
    engine = await (loader or get_default_loader(cfg)).acquire()

    async with VirtualFileScope(engine, request.request_id) as scope:
        executor = ExtractionExecutor(engine, scope, ExtractionTimings())
        input_name = await executor.write_input(request)
        codec_info = await probe(engine, input_name)

    try:
        return codec_info, plan(codec_info, cfg.reencode, request.filename)
    except NoAudioTrackError:
        return codec_info, None


def extract_audio_file(
    path: Path,
    *,
    on_progress: Optional[ProgressCallback] = None,
    loader: Optional[EngineLoader] = None,
    config: Optional[TrackpullConfig] = None,
    capabilities: Optional[HostCapabilities] = None,
) -> ExtractionResult:
    """Blocking wrapper around extract_audio for a file on disk."""
    request = ExtractionRequest.from_path(path)
    return asyncio.run(
        extract_audio(
            request,
            on_progress=on_progress,
            loader=loader,
            config=config,
            capabilities=capabilities,
        )
    )


async def preload_engine(loader: Optional[EngineLoader] = None) -> bool:
    """Load the engine ahead of the first extraction. Never raises."""
    return await (loader or get_default_loader()).preload()


def is_engine_loaded(loader: Optional[EngineLoader] = None) -> bool:
    return (loader or get_default_loader()).is_loaded

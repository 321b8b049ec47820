"""
trackpull.engine.loader - Lazy, single-flight engine loading.

One engine instance per loader. Concurrent acquire() calls made while a
load is in flight all await that same load; a failed load is never cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from trackpull.engine.base import Engine
from trackpull.exceptions import EngineLoadError
from trackpull.progress import ProgressCallback, ProgressEvent, ProgressStage

logger = logging.getLogger(__name__)


class EngineLoader:
    """Owns the lifecycle of one engine handle."""

    def __init__(self, factory: Callable[[], Engine]) -> None:
        self.factory = factory
        self._engine: Optional[Engine] = None
        self._loading: Optional[asyncio.Task] = None
        self.load_count = 0

    @property
    def is_loaded(self) -> bool:
        return self._engine is not None and self._engine.loaded

    async def acquire(self, on_progress: Optional[ProgressCallback] = None) -> Engine:
        """Return the loaded engine, loading it first if needed.

        Raises:
            EngineLoadError: If loading fails; the next call retries
        """
        if self.is_loaded:
            return self._engine

        if self._loading is None:
            self._loading = asyncio.ensure_future(self._load(on_progress))

        # shield: a cancelled waiter must not cancel the shared load
        return await asyncio.shield(self._loading)

    async def _load(self, on_progress: Optional[ProgressCallback]) -> Engine:
        self.load_count += 1
        logger.info("Loading transcoding engine...")
        try:
            if on_progress:
                on_progress(
                    ProgressEvent(ProgressStage.LOADING, 0, "Loading audio processor...")
                )
            engine = self.factory()
            await engine.load()
        except Exception as e:
            logger.error(f"Failed to load transcoding engine: {e}")
            self._loading = None
            raise EngineLoadError(f"Failed to load audio processor: {e}") from e

        self._engine = engine
        self._loading = None
        logger.info("Transcoding engine loaded")
        if on_progress:
            on_progress(ProgressEvent(ProgressStage.LOADING, 100, "Audio processor ready"))
        return engine

    async def preload(self) -> bool:
        """Warm the engine up ahead of use. Failures are logged, not raised."""
        try:
            await self.acquire()
        except EngineLoadError as e:
            logger.warning(f"Engine preload failed (will retry on use): {e}")
            return False
        return True

    async def discard(self) -> None:
        """Drop the current handle so the next acquire() loads a fresh one."""
        engine, self._engine = self._engine, None
        if engine is not None:
            await engine.close()
            logger.info("Transcoding engine discarded")


_default_loader: Optional[EngineLoader] = None


def get_default_loader(config=None) -> EngineLoader:
    """Process-wide loader, created on first use from config."""
    global _default_loader
    if _default_loader is None:
        from trackpull.capability import detect_capabilities, engine_threads
        from trackpull.config import TrackpullConfig
        from trackpull.engine.ffmpeg import FFmpegEngine

        cfg = config or TrackpullConfig()
        binary = cfg.resolved_ffmpeg_binary
        threads = cfg.threads or engine_threads(detect_capabilities(binary))
        _default_loader = EngineLoader(
            lambda: FFmpegEngine(binary=binary, sandbox_parent=cfg.sandbox_dir, threads=threads)
        )
    return _default_loader


def reset_default_loader() -> None:
    global _default_loader
    _default_loader = None

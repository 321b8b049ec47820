"""
trackpull.engine.base - Contract for the transcoding engine.

The pipeline only ever talks to an engine through this surface: write a
virtual file, run an argument list, read a virtual file back, delete it,
and listen to the "log" and "progress" event streams.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Callable, Iterator

EngineEventHandler = Callable[[dict[str, Any]], None]

ENGINE_EVENTS = ("log", "progress")


class Engine(ABC):
    """A loaded (or loadable) transcoding engine instance.

    Event payloads are plain dicts: ``{"message": str}`` for "log" and
    ``{"progress": float, "time": int}`` for "progress". The streams are
    shared by every invocation, so callers that listen to them should hold
    ``exclusive()`` around listening and ``exec``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EngineEventHandler]] = {
            event: [] for event in ENGINE_EVENTS
        }
        self._exclusive = asyncio.Lock()

    @property
    @abstractmethod
    def loaded(self) -> bool:
        pass

    @abstractmethod
    async def load(self) -> None:
        """Prepare the engine runtime. Raises on failure."""
        pass

    @abstractmethod
    async def write_file(self, name: str, data: bytes) -> None:
        pass

    @abstractmethod
    async def exec(self, args: list[str]) -> int:
        """Run one invocation and return its exit code.

        Raises:
            EngineError: If the invocation could not be started at all
        """
        pass

    @abstractmethod
    async def read_file(self, name: str) -> bytes | str:
        pass

    @abstractmethod
    async def delete_file(self, name: str) -> None:
        """Delete a virtual file.

        Raises:
            FileNotFoundError: If no such file exists
        """
        pass

    @abstractmethod
    async def list_files(self) -> list[str]:
        pass

    async def close(self) -> None:
        """Release engine resources. The instance is unusable afterwards."""
        pass

    def on(self, event: str, handler: EngineEventHandler) -> None:
        self._check_event(event)
        self._handlers[event].append(handler)

    def off(self, event: str, handler: EngineEventHandler) -> None:
        self._check_event(event)
        if handler in self._handlers[event]:
            self._handlers[event].remove(handler)

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        self._check_event(event)
        for handler in list(self._handlers[event]):
            handler(payload)

    @contextmanager
    def listening(self, event: str, handler: EngineEventHandler) -> Iterator[None]:
        self.on(event, handler)
        try:
            yield
        finally:
            self.off(event, handler)

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[Engine]:
        """Hold sole use of the event streams and the invocation slot."""
        async with self._exclusive:
            yield self

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in ENGINE_EVENTS:
            raise ValueError(f"Unknown engine event: {event}")

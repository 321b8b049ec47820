"""
trackpull.progress - Progress events for the extraction pipeline.

A request moves through four stages in a fixed order. The engine only
reports progress while extracting; the other stages are reported at their
boundaries (0% on entry, 100% on exit).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressStage(str, Enum):
    LOADING = "loading"
    PROBING = "probing"
    EXTRACTING = "extracting"
    FINALIZING = "finalizing"

    @property
    def order(self) -> int:
        return _STAGE_ORDER[self]


_STAGE_ORDER = {stage: index for index, stage in enumerate(ProgressStage)}


@dataclass(frozen=True)
class ProgressEvent:
    stage: ProgressStage
    percent: int
    message: str = ""

    def __post_init__(self):
        if not 0 <= self.percent <= 100:
            raise ValueError(f"percent must be within 0..100, got {self.percent}")

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.stage.order, self.percent)


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressEmitter:
    """Forwards events to a callback in strictly increasing (stage, percent) order.

    Events that would move backwards or repeat an already reported
    (stage, percent) pair are dropped. One emitter serves one request.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self.callback = callback
        self.last: Optional[ProgressEvent] = None

    def __call__(self, event: ProgressEvent) -> None:
        if self.last is not None and event.sort_key <= self.last.sort_key:
            logger.debug(f"Dropping out-of-order progress event {event}")
            return
        self.last = event
        if self.callback:
            self.callback(event)

    def report(self, stage: ProgressStage, percent: int, message: str = "") -> None:
        self(ProgressEvent(stage=stage, percent=percent, message=message))


def fraction_to_percent(fraction: float) -> int:
    """Convert a raw engine progress fraction to a clamped integer percent."""
    try:
        percent = round(float(fraction) * 100)
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, percent))

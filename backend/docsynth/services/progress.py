"""
Progress reporting — fire-and-forget event sink.

The pipeline never knows how events are delivered. It holds a
ProgressEmitter wrapping a plain callable; the HTTP layer plugs in a
ProgressChannel (bounded asyncio.Queue) and drains it into an SSE response.

Delivery guarantees:
  - emit() never raises and never blocks. A failing sink is logged and
    ignored; a full channel drops the event with a warning.
  - Events are delivered in emission order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from docsynth.schemas.progress import EventType, ProgressEvent, Stage, TokenUsage

logger = logging.getLogger(__name__)

ProgressSink = Callable[[ProgressEvent], Any]


class ProgressEmitter:
    """Typed helpers over a single sink callable."""

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink = sink

    def emit(self, event: ProgressEvent) -> None:
        if self._sink is None:
            return
        try:
            self._sink(event)
        except Exception as exc:
            logger.warning("ProgressEmitter | sink failed, event dropped type=%s: %s", event.type, exc)

    # ------------------------------------------------------------------
    # Convenience builders
    # ------------------------------------------------------------------

    def status(self, message: str, *, stage: Stage | None = None, file: str | None = None, **extra: Any) -> None:
        self.emit(ProgressEvent(type=EventType.STATUS, stage=stage, file=file, message=message, **extra))

    def progress(self, message: str, *, stage: Stage = Stage.DOC_INTEL, file: str | None = None, **extra: Any) -> None:
        self.emit(ProgressEvent(type=EventType.PROGRESS, stage=stage, file=file, message=message, **extra))

    def file_error(self, file: str, message: str, *, stage: Stage = Stage.DOC_INTEL) -> None:
        """Per-document, recoverable."""
        self.emit(ProgressEvent(type=EventType.ERROR, stage=stage, file=file, message=message))

    def fatal(self, error: str, *, stage: Stage | None = None) -> None:
        """Terminal: the stream closes after this event."""
        self.emit(ProgressEvent(type=EventType.ERROR, stage=stage, error=error))

    def result(self, analysis: str, token_usage: TokenUsage | None = None) -> None:
        self.emit(ProgressEvent(type=EventType.RESULT, analysis=analysis, token_usage=token_usage))


# ---------------------------------------------------------------------------
# Bounded channel between the pipeline task and the SSE generator
# ---------------------------------------------------------------------------

class ProgressChannel:
    """Non-blocking producer side, async consumer side."""

    def __init__(self, maxsize: int = 1_000) -> None:
        self._queue: asyncio.Queue[ProgressEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def __call__(self, event: ProgressEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("ProgressChannel | full, dropping event type=%s dropped=%d", event.type, self.dropped)

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    def get_nowait(self) -> ProgressEvent | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def empty(self) -> bool:
        return self._queue.empty()


def encode_sse(event: ProgressEvent) -> str:
    """``data: <json>\\n\\n`` — one event per line group, no event: field."""
    return f"data: {event.to_wire()}\n\n"

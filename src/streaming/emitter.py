# src/streaming/emitter.py — v1
"""Event emitter boundary: push StreamEvents to the caller, in order.

A write to a closed channel raises StreamWriteError; the orchestrator treats
that as cancellation. After a terminal (error/complete) event the channel
accepts nothing more.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable

from insightstream.core.errors import StreamWriteError
from insightstream.core.events import StreamEvent

logger = logging.getLogger(__name__)


class BaseEventEmitter(ABC):
    """One-way, ordered push channel for one job."""

    def __init__(self) -> None:
        self._closed = False
        self._terminated = False
        self._count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        """True once an error/complete event was written."""
        return self._terminated

    @property
    def events_written(self) -> int:
        return self._count

    async def emit(self, event: StreamEvent) -> None:
        """Write one event.

        Raises:
            StreamWriteError: If the channel is closed or already terminated.
        """
        if self._closed:
            raise StreamWriteError("Client channel is closed")
        if self._terminated:
            raise StreamWriteError("Stream already terminated")
        try:
            await self._write(event)
        except StreamWriteError:
            self._closed = True
            raise
        except (ConnectionError, OSError) as e:
            self._closed = True
            raise StreamWriteError(f"Transport write failed: {e}") from e
        self._count += 1
        if event.is_terminal:
            self._terminated = True

    def close(self) -> None:
        """Mark the channel closed (client went away)."""
        if not self._closed:
            logger.debug("Event channel closed after %d events", self._count)
        self._closed = True

    @abstractmethod
    async def _write(self, event: StreamEvent) -> None:
        """Deliver one event to the transport."""


class CallbackEventEmitter(BaseEventEmitter):
    """Emitter that hands each event to an async callback (CLI, tests)."""

    def __init__(self, callback: Callable[[StreamEvent], Awaitable[None]]) -> None:
        super().__init__()
        self._callback = callback

    async def _write(self, event: StreamEvent) -> None:
        await self._callback(event)


class QueueEventEmitter(BaseEventEmitter):
    """Emitter bridging the pipeline task to an HTTP streaming response.

    The queue is bounded, so a slow client suspends the pipeline at its next
    write instead of letting events pile up in memory.
    """

    def __init__(self, maxsize: int = 64) -> None:
        super().__init__()
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=maxsize)

    async def _write(self, event: StreamEvent) -> None:
        await self._queue.put(event)

    async def sse_lines(self) -> AsyncIterator[str]:
        """Yield SSE-framed events until the terminal event has been sent.

        Closing this iterator early (client disconnect) closes the channel.
        """
        try:
            while True:
                event = await self._queue.get()
                yield event.to_sse()
                if event.is_terminal:
                    return
        finally:
            self.close()

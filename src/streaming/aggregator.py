# src/streaming/aggregator.py — v1
"""Content aggregator: buffer model deltas into readable, near-real-time slices.

Deltas are appended to a pending buffer. The buffer is flushed (returned as
one slice and cleared) when any of these holds:
  - pending reaches ``flush_size`` characters,
  - ``flush_interval_ms`` elapsed since the last flush,
  - pending contains a paragraph, sentence-end or heading boundary
    ("\\n\\n", ".\\n", ":\\n"),
  - the attempt ended (``force_flush``).
Flushing only changes when content is pushed, never what or in which order.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from insightstream.config.settings import Settings

_BOUNDARIES = ("\n\n", ".\n", ":\n")


class ContentAggregator:
    """Per-attempt content buffer.

    Args:
        flush_size: Size threshold in characters.
        flush_interval_ms: Latency threshold in milliseconds.
        clock: Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        flush_size: int = 500,
        flush_interval_ms: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if flush_size <= 0:
            raise ValueError("flush_size must be > 0")
        self._flush_size = flush_size
        self._flush_interval_s = flush_interval_ms / 1000.0
        self._clock = clock
        self._pending = ""
        self._parts: list[str] = []
        self._last_flush_at = clock()

    @classmethod
    def from_settings(cls, settings: Settings, clock: Callable[[], float] = time.monotonic) -> ContentAggregator:
        return cls(
            flush_size=settings.flush_size,
            flush_interval_ms=settings.flush_interval_ms,
            clock=clock,
        )

    @property
    def pending(self) -> str:
        return self._pending

    @property
    def text(self) -> str:
        """Everything fed to this aggregator so far, flushed or not."""
        return "".join(self._parts)

    def feed(self, delta: str) -> list[str]:
        """Append a delta; return the slices to push now (zero or one)."""
        if not delta:
            return []
        self._pending += delta
        self._parts.append(delta)
        if self._should_flush():
            return self._flush()
        return []

    def force_flush(self) -> list[str]:
        """Flush whatever is pending; used when the attempt ends."""
        return self._flush()

    def discard(self) -> str:
        """Drop pending content of a failed attempt; return what was dropped."""
        dropped = self._pending
        self._pending = ""
        return dropped

    def _should_flush(self) -> bool:
        if len(self._pending) >= self._flush_size:
            return True
        if self._clock() - self._last_flush_at >= self._flush_interval_s:
            return True
        return any(b in self._pending for b in _BOUNDARIES)

    def _flush(self) -> list[str]:
        if not self._pending:
            return []
        out = self._pending
        self._pending = ""
        self._last_flush_at = self._clock()
        return [out]

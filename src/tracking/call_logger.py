# src/tracking/call_logger.py — v2
"""Inference call logging: records every attempt made for one job."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from insightstream.core.models import ModelAttempt
from insightstream.tracking.models import InferenceCallRecord

logger = logging.getLogger(__name__)


class CallLogger:
    """Accumulates inference attempt records during one job."""

    def __init__(self) -> None:
        self._records: list[InferenceCallRecord] = []

    def record(
        self,
        step: str,
        attempt: ModelAttempt,
        latency_ms: int,
        status: str = "succeeded",
        error_type: str | None = None,
    ) -> InferenceCallRecord:
        """Record one attempt.

        Args:
            step: Step identifier (e.g. "part_2", "reconciliation").
            attempt: The attempt, after it finished.
            latency_ms: Wall time from request to last delta.
            status: succeeded, failed or cancelled.
            error_type: Failure classification, when failed.
        """
        record = InferenceCallRecord(
            call_id=str(uuid.uuid4()),
            timestamp=datetime.now(timezone.utc),
            step=step,
            provider_role=attempt.provider,
            model=attempt.model,
            status=status,
            latency_ms=latency_ms,
            chars_received=attempt.chars_received,
            error_type=error_type,
        )
        self._records.append(record)
        logger.debug(
            "Inference %s: step=%s model=%s %dms %d chars",
            status, step, attempt.model, latency_ms, attempt.chars_received,
        )
        return record

    @property
    def records(self) -> list[InferenceCallRecord]:
        """All recorded calls."""
        return list(self._records)

    @property
    def total_calls(self) -> int:
        """Total number of inference attempts."""
        return len(self._records)

    @property
    def fallback_calls(self) -> int:
        """Attempts made against the fallback model."""
        return sum(1 for r in self._records if r.provider_role == "fallback")

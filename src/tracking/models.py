# src/tracking/models.py — v2
"""Tracking models: one record per inference attempt."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class InferenceCallRecord(BaseModel):
    """Individual inference attempt log entry."""

    call_id: str
    timestamp: datetime
    step: str
    provider_role: Literal["primary", "fallback"]
    model: str
    status: Literal["succeeded", "failed", "cancelled"]
    latency_ms: int
    chars_received: int = 0
    error_type: str | None = None

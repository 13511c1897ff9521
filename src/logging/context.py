# src/logging/context.py — v1
"""Contextual logging support: attach job_id, template_id, stage and part to log records.

Each analysis job runs in its own asyncio task, so context variables set
inside the job never leak into another job's records.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_job_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "job_id", default=None
)
_template_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "template_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_part: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "part", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    job_id: str | None = None
    template_id: str | None = None
    stage: str | None = None
    part: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        job_id=_job_id.get(),
        template_id=_template_id.get(),
        stage=_stage.get(),
        part=_part.get(),
    )


def set_job_context(job_id: str, template_id: str) -> None:
    """Set job-level context (called once per analysis job)."""
    _job_id.set(job_id)
    _template_id.set(template_id)


def set_stage_context(stage: str, part: str | None = None) -> None:
    """Set stage-level context (called on each orchestrator state change)."""
    _stage.set(stage)
    _part.set(part)


def clear_context() -> None:
    """Reset all context variables."""
    _job_id.set(None)
    _template_id.set(None)
    _stage.set(None)
    _part.set(None)

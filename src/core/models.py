# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Record = dict[str, Any]

TemplateRole = Literal["system", "user", "assistant", "function"]


# === JOB INPUT ===


class AnalysisJob(BaseModel):
    """One analysis invocation. Immutable once accepted."""

    model_config = ConfigDict(frozen=True)

    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    template_id: str
    date_from: datetime
    date_to: datetime
    extra_params: Any = None


class AnalysisTemplate(BaseModel):
    """Stored query + instruction template, read-only once fetched."""

    template_id: str
    query: str
    query_params: list[Any] = Field(default_factory=list)
    role: TemplateRole = "user"
    prompt_body: str
    title: str = ""
    icon: str = ""

    @field_validator("query_params", mode="before")
    @classmethod
    def parse_query_params(cls, v: Any) -> Any:  # noqa: N805
        """Accept the JSON-encoded form templates are stored in.

        A stored value that is empty or not a JSON array means "no extra
        parameters".
        """
        if v is None or v == "":
            return []
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError as e:
                raise ValueError(f"query_params is not valid JSON: {e}") from e
        if not isinstance(v, list):
            return []
        return v


class TemplateSummary(BaseModel):
    """Listing entry for the template menu."""

    template_id: str
    title: str = ""
    icon: str = ""


# === CHUNK MODELS ===


class Chunk(BaseModel):
    """A bounded, ordered slice of the dataset sent as one prompt."""

    index: int
    total_chunks: int
    records: list[Record]

    @property
    def is_only_chunk(self) -> bool:
        return self.total_chunks == 1


class ChunkResult(BaseModel):
    """Full text produced for one data part; input to reconciliation."""

    index: int
    text: str


# === INFERENCE ATTEMPTS ===


class ModelAttempt(BaseModel):
    """One provider attempt for one prompt. Primary always comes first."""

    provider: Literal["primary", "fallback"]
    model: str
    status: Literal["pending", "streaming", "succeeded", "failed"] = "pending"
    error: str | None = None
    chars_received: int = 0


# === JOB OUTCOME ===


class JobStats(BaseModel):
    """Summary of one job, logged at job end and returned by the orchestrator."""

    job_id: str
    template_id: str
    outcome: Literal["complete", "empty", "failed", "cancelled", "timeout"]
    total_records: int = 0
    total_chunks: int = 0
    inference_calls: int = 0
    fallback_calls: int = 0
    skipped_chunks: list[int] = Field(default_factory=list)
    duration_seconds: float = 0.0
    error_code: str | None = None

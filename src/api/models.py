# src/api/models.py — v3
"""API-level models: inbound analysis request and the template listing.

Field aliases keep the wire names the dashboard sends (``templateId``,
``date1``, ``date2``, ``branches``).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from insightstream.core.models import AnalysisJob, TemplateSummary


class AnalysisRequest(BaseModel):
    """Body of ``POST /api/analyser``."""

    model_config = ConfigDict(populate_by_name=True)

    template_id: str = Field(alias="templateId", min_length=1)
    date_from: datetime = Field(alias="date1")
    date_to: datetime = Field(alias="date2")
    branches: Any = None

    @model_validator(mode="after")
    def check_range(self) -> AnalysisRequest:
        if _comparable(self.date_to) < _comparable(self.date_from):
            raise ValueError("date2 must not be earlier than date1")
        return self

    def to_job(self) -> AnalysisJob:
        return AnalysisJob(
            template_id=self.template_id,
            date_from=self.date_from,
            date_to=self.date_to,
            extra_params=self.branches,
        )


def _comparable(value: datetime) -> datetime:
    """Naive UTC form, so timezone-aware and naive dates can be ordered."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class TemplateInfo(BaseModel):
    """One entry of ``GET /api/analyser/templates``."""

    model_config = ConfigDict(populate_by_name=True)

    template_id: str = Field(serialization_alias="templateId")
    title: str = ""
    icon: str = ""

    @classmethod
    def from_summary(cls, summary: TemplateSummary) -> TemplateInfo:
        return cls(template_id=summary.template_id, title=summary.title, icon=summary.icon)

# tests/unit/api/test_unit_models.py — v2
"""Tests for api/models.py — inbound request validation."""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from insightstream.api.models import AnalysisRequest, TemplateInfo
from insightstream.core.models import TemplateSummary


class TestAnalysisRequest:
    def test_wire_aliases(self):
        req = AnalysisRequest.model_validate({
            "templateId": "sales", "date1": "2024-01-01T00:00:00", "date2": "2024-01-31T23:59:59",
            "branches": ["A", "B"],
        })
        job = req.to_job()
        assert job.template_id == "sales"
        assert job.date_from == datetime(2024, 1, 1)
        assert job.extra_params == ["A", "B"]

    def test_branches_optional(self):
        req = AnalysisRequest.model_validate({"templateId": "t", "date1": "2024-01-01", "date2": "2024-01-02"})
        assert req.branches is None

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisRequest.model_validate({"templateId": "t", "date1": "2024-02-01", "date2": "2024-01-01"})

    def test_mixed_timezone_awareness_accepted(self):
        req = AnalysisRequest.model_validate(
            {"templateId": "t", "date1": "2024-01-01", "date2": "2024-01-31T23:59:59Z"}
        )
        assert req.date_to.tzinfo is not None

    def test_mixed_timezone_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            AnalysisRequest.model_validate(
                {"templateId": "t", "date1": "2024-02-01T00:00:00+02:00", "date2": "2024-01-15"}
            )

    def test_missing_dates(self):
        with pytest.raises(ValidationError):
            AnalysisRequest.model_validate({"templateId": "t"})


class TestTemplateInfo:
    def test_serializes_with_wire_name(self):
        info = TemplateInfo.from_summary(TemplateSummary(template_id="s", title="Sales", icon="chart"))
        assert info.model_dump(by_alias=True) == {"templateId": "s", "title": "Sales", "icon": "chart"}

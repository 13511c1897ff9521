# tests/unit/core/test_unit_events.py — v1
"""Tests for core/events.py — StreamEvent shapes and SSE framing."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from insightstream.core.events import StreamEvent


class TestShapes:
    def test_progress_omits_absent_keys(self):
        assert StreamEvent.progress("Analyzing...").to_payload() == {
            "status": "progress", "message": "Analyzing...",
        }

    def test_content_slice(self):
        assert StreamEvent.content_slice("text").to_payload() == {
            "status": "progress", "content": "text",
        }

    def test_failure_carries_only_error(self):
        assert StreamEvent.failure("boom").to_payload() == {"status": "error", "error": "boom"}

    def test_error_with_content_rejected(self):
        with pytest.raises(ValidationError):
            StreamEvent(status="error", error="x", content="y")

    def test_error_requires_message(self):
        with pytest.raises(ValidationError):
            StreamEvent(status="error")

    def test_progress_with_error_rejected(self):
        with pytest.raises(ValidationError):
            StreamEvent(status="progress", error="x")

    def test_terminal(self):
        assert StreamEvent.complete().is_terminal
        assert StreamEvent.failure("x").is_terminal
        assert not StreamEvent.progress("x").is_terminal


class TestSse:
    def test_framing(self):
        line = StreamEvent.complete(message="Analysis complete", content="Fin").to_sse()
        assert line.startswith("data: ")
        assert line.endswith("\n\n")
        assert json.loads(line[len("data: "):]) == {
            "status": "complete", "message": "Analysis complete", "content": "Fin",
        }

    def test_newlines_in_content_stay_escaped(self):
        line = StreamEvent.content_slice("a\n\nb").to_sse()
        assert line.count("\n") == 2

    def test_non_ascii_kept(self):
        assert "Umsätze" in StreamEvent.content_slice("Umsätze").to_sse()

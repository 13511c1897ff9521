# tests/conftest.py — v2
"""Shared test fixtures for all unit tests.

Provides a scripted inference client, sample templates and records, an
in-memory dataset source and a recording event emitter. No network access.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable, Sequence

import pytest

from insightstream.config.settings import Settings
from insightstream.core.events import StreamEvent
from insightstream.core.models import AnalysisTemplate
from insightstream.datasource.memory_source import InMemoryDatasetSource
from insightstream.llm.base_client import BaseInferenceClient
from insightstream.streaming.emitter import CallbackEventEmitter


class HangForever:
    """Script marker: the stream stops producing and never ends."""


ScriptItem = Any  # str delta, Exception to raise, or HangForever()
Script = Callable[[dict[str, Any], int], Sequence[ScriptItem]]


class ScriptedClient(BaseInferenceClient):
    """Inference client replaying a script per call.

    ``script(body, call_index)`` returns the items for one call: strings are
    yielded as deltas, an Exception instance is raised at that point.
    """

    def __init__(self, script: Script) -> None:
        self._script = script
        self.calls: list[dict[str, Any]] = []
        self.opened = 0
        self.closed = 0
        self.finished = 0

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def stream(self, request_body: dict[str, Any]) -> AsyncIterator[str]:
        index = len(self.calls)
        self.calls.append(request_body)
        self.opened += 1
        try:
            for item in self._script(request_body, index):
                await asyncio.sleep(0)
                if isinstance(item, HangForever):
                    await asyncio.sleep(3600)
                if isinstance(item, Exception):
                    raise item
                yield item
            self.finished += 1
        finally:
            self.closed += 1

    @property
    def prompts(self) -> list[str]:
        return [c["messages"][0]["content"] for c in self.calls]

    @property
    def models(self) -> list[str]:
        return [c["model"] for c in self.calls]


class RecordingEmitter(CallbackEventEmitter):
    """Emitter that keeps every event it was handed."""

    def __init__(self, fail_after: int | None = None) -> None:
        super().__init__(self._append)
        self.events: list[StreamEvent] = []
        self._fail_after = fail_after

    async def _append(self, event: StreamEvent) -> None:
        if self._fail_after is not None and len(self.events) >= self._fail_after:
            raise ConnectionResetError("client went away")
        self.events.append(event)

    @property
    def content(self) -> str:
        return "".join(e.content or "" for e in self.events)

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.events if e.message]


# === FIXTURES: Settings ===


@pytest.fixture
def settings() -> Settings:
    """Settings with deterministic buffering (no time-based flush)."""
    return Settings(
        _env_file=None,
        datasource_backend="memory",
        primary_model="test/primary",
        fallback_model="test/fallback",
        flush_interval_ms=600_000,
    )


# === FIXTURES: Sample data ===


@pytest.fixture
def template() -> AnalysisTemplate:
    return AnalysisTemplate(
        template_id="sales",
        query="SELECT * FROM t",
        prompt_body="Summarize",
        title="Sales overview",
        icon="chart",
    )


def make_records(n: int) -> list[dict[str, Any]]:
    return [{"id": i, "amount": i * 10, "branch": f"B{i % 3}"} for i in range(n)]


@pytest.fixture
def records_factory() -> Callable[[int], list[dict[str, Any]]]:
    return make_records


@pytest.fixture
def source_factory(template: AnalysisTemplate) -> Callable[..., InMemoryDatasetSource]:
    """Build an in-memory source serving ``template`` over the given rows."""

    def _make(rows: Sequence[dict[str, Any]] = (), **kwargs: Any) -> InMemoryDatasetSource:
        return InMemoryDatasetSource(
            templates=[template], datasets={template.query: rows}, **kwargs,
        )

    return _make


# === FIXTURES: Inference ===


@pytest.fixture
def client_factory() -> Callable[[Script], ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def emitter_factory() -> Callable[..., RecordingEmitter]:
    return RecordingEmitter


@pytest.fixture
def hang() -> HangForever:
    return HangForever()

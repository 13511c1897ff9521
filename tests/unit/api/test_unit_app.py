# tests/unit/api/test_unit_app.py — v2
"""Tests for api/app.py — SSE endpoint, template listing and health."""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi import Request
from fastapi.responses import StreamingResponse
from fastapi.testclient import TestClient

from insightstream.api.app import create_app
from insightstream.version import __version__

BODY = {"templateId": "sales", "date1": "2024-01-01", "date2": "2024-01-31T23:59:59"}


def _events(text: str) -> list[dict]:
    return [
        json.loads(line[len("data: "):])
        for line in text.split("\n\n")
        if line.startswith("data: ")
    ]


def _post(body: dict) -> Request:
    payload = json.dumps(body).encode()

    async def receive():
        return {"type": "http.request", "body": payload, "more_body": False}

    scope = {
        "type": "http", "method": "POST", "path": "/api/analyser", "query_string": b"",
        "headers": [(b"content-type", b"application/json")],
    }
    return Request(scope, receive)


def _analyser_endpoint(app):
    return next(r.endpoint for r in app.routes if getattr(r, "path", "") == "/api/analyser")


async def _wait_for(condition) -> None:
    for _ in range(200):
        if condition():
            return
        await asyncio.sleep(0.01)


@pytest.fixture
def make_client(settings, source_factory, client_factory, records_factory):
    def _make(n_records: int = 3, script=None) -> tuple[TestClient, object]:
        inference = client_factory(script or (lambda body, i: ["Revenue grew.\n", "Branch A led."]))
        app = create_app(settings, source=source_factory(records_factory(n_records)), client=inference)
        return TestClient(app), inference

    return _make


class TestAnalyserEndpoint:
    def test_streams_events(self, make_client):
        client, inference = make_client()
        response = client.post("/api/analyser", json=BODY)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        events = _events(response.text)
        assert events[-1]["status"] == "complete"
        assert events[-1]["content"] == "Branch A led."
        assert "".join(e.get("content", "") for e in events) == "Revenue grew.\nBranch A led."
        assert len(inference.calls) == 1

    def test_branches_appended_to_params(self, make_client, settings):
        client, _ = make_client()
        response = client.post("/api/analyser", json={**BODY, "branches": ["A"]})
        assert response.status_code == 200
        source = client.app.state.source
        assert source.executed[0][1] == ["2024-01-01 00:00:00", "2024-01-31 23:59:59", "A"]

    def test_empty_dataset(self, make_client, settings):
        client, inference = make_client(n_records=0)
        events = _events(client.post("/api/analyser", json=BODY).text)
        assert events == [{"status": "complete", "content": settings.no_data_message}]
        assert inference.calls == []

    def test_unknown_template_is_error_event(self, make_client):
        client, _ = make_client()
        response = client.post("/api/analyser", json={**BODY, "templateId": "nope"})
        assert response.status_code == 200
        assert _events(response.text) == [
            {"status": "error", "error": "Analysis configuration was not found."}
        ]

    @pytest.mark.parametrize("body", [
        {"date1": "2024-01-01", "date2": "2024-01-31"},
        {"templateId": "", "date1": "2024-01-01", "date2": "2024-01-31"},
    ])
    def test_missing_template_id_is_400(self, make_client, body):
        client, inference = make_client()
        response = client.post("/api/analyser", json=body)
        assert response.status_code == 400
        assert inference.calls == []

    def test_bad_dates_is_400(self, make_client):
        client, _ = make_client()
        response = client.post("/api/analyser", json={"templateId": "sales", "date1": "soon", "date2": "later"})
        assert response.status_code == 400

    def test_mixed_timezone_dates_accepted(self, make_client):
        client, inference = make_client()
        response = client.post(
            "/api/analyser",
            json={"templateId": "sales", "date1": "2024-01-01", "date2": "2024-01-31T23:59:59Z"},
        )
        assert response.status_code == 200
        assert _events(response.text)[-1]["status"] == "complete"
        assert len(inference.calls) == 1

    def test_mixed_timezone_inverted_range_is_400(self, make_client):
        client, inference = make_client()
        response = client.post(
            "/api/analyser",
            json={"templateId": "sales", "date1": "2024-02-01T00:00:00Z", "date2": "2024-01-15"},
        )
        assert response.status_code == 400
        assert inference.calls == []

    def test_non_json_body_is_400(self, make_client):
        client, _ = make_client()
        response = client.post("/api/analyser", content=b"not json", headers={"content-type": "application/json"})
        assert response.status_code == 400


class TestJobLifetime:
    @pytest.mark.asyncio
    async def test_unread_response_starts_no_job(
        self, settings, source_factory, client_factory, records_factory,
    ):
        inference = client_factory(lambda body, i: ["never"])
        app = create_app(settings, source=source_factory(records_factory(3)), client=inference)

        response = await _analyser_endpoint(app)(_post(BODY))
        await asyncio.sleep(0.05)

        assert isinstance(response, StreamingResponse)
        assert inference.calls == []

    @pytest.mark.asyncio
    async def test_closing_body_cancels_job_and_provider_stream(
        self, settings, source_factory, client_factory, records_factory, hang,
    ):
        inference = client_factory(lambda body, i: ["start", hang])
        app = create_app(settings, source=source_factory(records_factory(3)), client=inference)
        response = await _analyser_endpoint(app)(_post(BODY))

        body = response.body_iterator
        first = await body.__anext__()
        assert json.loads(first[len("data: "):].strip())["status"] == "progress"
        await _wait_for(lambda: inference.opened == 1)

        await body.aclose()
        await _wait_for(lambda: inference.closed == 1)

        assert inference.opened == 1
        assert inference.closed == 1
        assert inference.finished == 0


class TestOtherEndpoints:
    def test_templates(self, make_client):
        client, _ = make_client()
        assert client.get("/api/analyser/templates").json() == [
            {"templateId": "sales", "title": "Sales overview", "icon": "chart"}
        ]

    def test_health(self, make_client):
        client, _ = make_client()
        assert client.get("/health").json() == {"status": "ok", "version": __version__}

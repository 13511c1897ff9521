# tests/unit/llm/test_unit_fallback.py — v1
"""Tests for llm/fallback.py — primary-then-fallback streaming."""

from __future__ import annotations

import pytest

from insightstream.core.errors import MalformedResponseError, ModelProviderError
from insightstream.llm.fallback import FallbackStreamer, classify_error
from insightstream.llm.models import AttemptFailed, AttemptStarted, AttemptSucceeded, TokenDelta
from insightstream.tracking.call_logger import CallLogger


async def _collect(streamer: FallbackStreamer, prompt: str = "Summarize") -> list:
    return [item async for item in streamer.stream(prompt, "test")]


class TestFallbackStreamer:
    @pytest.mark.asyncio
    async def test_primary_success(self, settings, client_factory):
        client = client_factory(lambda body, i: ["a", "", "b"])
        calls = CallLogger()
        items = await _collect(FallbackStreamer(client, settings, call_logger=calls))

        assert isinstance(items[0], AttemptStarted)
        assert items[0].attempt.provider == "primary"
        assert [i.text for i in items if isinstance(i, TokenDelta)] == ["a", "b"]
        assert isinstance(items[-1], AttemptSucceeded)
        assert items[-1].attempt.chars_received == 2
        assert client.models == ["test/primary"]
        assert calls.total_calls == 1
        assert calls.records[0].status == "succeeded"

    @pytest.mark.asyncio
    async def test_primary_failure_before_any_delta_falls_back_once(self, settings, client_factory):
        def script(body, i):
            if body["model"] == "test/primary":
                return [ModelProviderError("503", status_code=503)]
            return ["ok"]

        client = client_factory(script)
        calls = CallLogger()
        items = await _collect(FallbackStreamer(client, settings, call_logger=calls))

        kinds = [type(i) for i in items]
        assert kinds == [AttemptStarted, AttemptFailed, AttemptStarted, TokenDelta, AttemptSucceeded]
        assert client.models == ["test/primary", "test/fallback"]
        assert calls.fallback_calls == 1
        assert calls.records[0].error_type == "server_error"

    @pytest.mark.asyncio
    async def test_both_fail_raises(self, settings, client_factory):
        client = client_factory(lambda body, i: [ModelProviderError("nope")])
        streamer = FallbackStreamer(client, settings)

        with pytest.raises(ModelProviderError, match="Primary and fallback"):
            await _collect(streamer)
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_same_prompt_sent_to_both_models(self, settings, client_factory):
        client = client_factory(
            lambda body, i: [ModelProviderError("x")] if i == 0 else ["y"]
        )
        await _collect(FallbackStreamer(client, settings), "Exact prompt")

        assert client.prompts == ["Exact prompt", "Exact prompt"]


class TestClassifyError:
    def test_malformed(self):
        assert classify_error(MalformedResponseError("bad")) == "malformed_response"

    def test_rate_limit(self):
        assert classify_error(ModelProviderError("x", status_code=429)) == "rate_limit"

    def test_client_error(self):
        assert classify_error(ModelProviderError("x", status_code=401)) == "client_error"

    def test_timeout(self):
        assert classify_error(ModelProviderError("Transport error: ReadTimeout")) == "timeout"

    def test_connection(self):
        assert classify_error(ModelProviderError("Transport error: ConnectError")) == "connection"

    def test_generic(self):
        assert classify_error(RuntimeError("boom")) == "provider_error"

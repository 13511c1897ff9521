# src/llm/fallback.py — v1
"""Primary-then-fallback streaming for one prompt.

State machine per prompt:
    ATTEMPT_PRIMARY --failure--> ATTEMPT_FALLBACK --failure--> FAILED
There is no retry against the same model: a provider failure is assumed to
persist for the lifetime of one prompt. A failed attempt's partial output is
never merged with the fallback's; the fallback starts the prompt fresh.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from typing import TYPE_CHECKING, AsyncIterator

from insightstream.core.errors import MalformedResponseError, ModelProviderError
from insightstream.core.models import ModelAttempt
from insightstream.llm.config import ModelRoute, resolve_route
from insightstream.llm.models import (
    AttemptFailed,
    AttemptStarted,
    AttemptSucceeded,
    StreamItem,
    TokenDelta,
)
from insightstream.prompts.builder import build_request_body

if TYPE_CHECKING:
    from insightstream.config.settings import Settings
    from insightstream.llm.base_client import BaseInferenceClient
    from insightstream.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)


def classify_error(error: Exception) -> str:
    """Classify an attempt failure for logs and call records."""
    if isinstance(error, MalformedResponseError):
        return "malformed_response"
    status = getattr(error, "status_code", None)
    if status == 429:
        return "rate_limit"
    if status is not None and status >= 500:
        return "server_error"
    if status is not None and status >= 400:
        return "client_error"

    msg = str(error).lower()
    name = type(error).__name__.lower()
    if "timeout" in name or "timeout" in msg:
        return "timeout"
    if "429" in msg or "rate" in msg:
        return "rate_limit"
    if "transport" in msg or "connect" in msg:
        return "connection"
    return "provider_error"


class FallbackStreamer:
    """Stream one prompt through the primary model, falling back once.

    Args:
        client: Inference client shared across jobs.
        settings: Settings carrying model ids and request parameters.
        call_logger: Optional per-job attempt recorder.
    """

    def __init__(
        self,
        client: BaseInferenceClient,
        settings: Settings,
        call_logger: CallLogger | None = None,
        route: ModelRoute | None = None,
    ) -> None:
        self._client = client
        self._settings = settings
        self._call_logger = call_logger
        self._route = route or resolve_route(settings)

    async def stream(self, prompt: str, step: str = "prompt") -> AsyncIterator[StreamItem]:
        """Yield tagged stream items for ``prompt``.

        Raises:
            ModelProviderError: When both primary and fallback attempts failed.
        """
        last_error: Exception | None = None

        for role, model in self._route.attempts():
            attempt = ModelAttempt(provider=role, model=model)
            yield AttemptStarted(attempt=attempt)

            body = build_request_body(prompt, model, self._settings)
            attempt.status = "streaming"
            started = time.monotonic()
            try:
                async with aclosing(self._client.stream(body)) as deltas:
                    async for delta in deltas:
                        if not delta:
                            continue
                        attempt.chars_received += len(delta)
                        yield TokenDelta(text=delta)
            except (GeneratorExit, asyncio.CancelledError):
                self._record(step, attempt, started, "cancelled")
                raise
            except Exception as e:
                attempt.status = "failed"
                attempt.error = str(e)
                error_type = classify_error(e)
                self._record(step, attempt, started, "failed", error_type)
                logger.warning(
                    "%s model %s failed for %s (%s): %s",
                    role.capitalize(), model, step, error_type, e,
                )
                last_error = e
                yield AttemptFailed(attempt=attempt, error=e)
                continue

            attempt.status = "succeeded"
            self._record(step, attempt, started, "succeeded")
            yield AttemptSucceeded(attempt=attempt)
            return

        raise ModelProviderError(
            f"Primary and fallback models failed for {step}: {last_error}",
            model=self._route.fallback,
        ) from last_error

    def _record(
        self,
        step: str,
        attempt: ModelAttempt,
        started: float,
        status: str,
        error_type: str | None = None,
    ) -> None:
        if self._call_logger is None:
            return
        latency_ms = int((time.monotonic() - started) * 1000)
        self._call_logger.record(step, attempt, latency_ms, status, error_type)

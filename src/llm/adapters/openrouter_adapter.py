# src/llm/adapters/openrouter_adapter.py — v1
"""OpenRouter adapter implementing BaseInferenceClient over raw SSE.

Uses httpx streaming so every frame goes through llm/frames.py, including
the mid-stream ``{"error": ...}`` payloads OpenRouter sends when an upstream
model fails after the response has started.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import httpx

from insightstream.core.errors import ModelProviderError
from insightstream.llm.base_client import BaseInferenceClient
from insightstream.llm.frames import DeltaFrame, DoneFrame, ErrorFrame, decode_sse_line

logger = logging.getLogger(__name__)


class OpenRouterAdapter(BaseInferenceClient):
    """Streaming chat completions against an OpenRouter-compatible endpoint."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://openrouter.ai/api/v1",
        timeout_s: float = 120.0,
        referer: str | None = None,
        title: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._timeout = httpx.Timeout(timeout_s, connect=min(timeout_s, 10.0))
        self._referer = referer
        self._title = title
        self.__client = http_client  # Lazy initialization

    @property
    def _client(self) -> httpx.AsyncClient:
        """Lazy-init the pooled HTTP client (only on first call)."""
        if self.__client is None:
            self.__client = httpx.AsyncClient(timeout=self._timeout)
        return self.__client

    @property
    def provider_name(self) -> str:
        return "openrouter"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._referer:
            headers["HTTP-Referer"] = self._referer
        if self._title:
            headers["X-Title"] = self._title
        return headers

    async def stream(self, request_body: dict[str, Any]) -> AsyncIterator[str]:
        model = request_body.get("model")
        body = {**request_body, "stream": True}
        try:
            async with self._client.stream(
                "POST", self._url, json=body, headers=self._headers(),
            ) as response:
                if response.status_code >= 400:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise ModelProviderError(
                        f"HTTP {response.status_code} from provider: {detail[:500]}",
                        model=model,
                        status_code=response.status_code,
                    )
                async for line in response.aiter_lines():
                    frame = decode_sse_line(line)
                    if frame is None:
                        continue
                    if isinstance(frame, DoneFrame):
                        return
                    if isinstance(frame, ErrorFrame):
                        raise ModelProviderError(
                            f"Provider error: {frame.message}", model=model,
                        )
                    if isinstance(frame, DeltaFrame) and frame.text:
                        yield frame.text
        except httpx.HTTPError as e:
            raise ModelProviderError(
                f"Transport error calling {model}: {type(e).__name__}: {e}", model=model,
            ) from e
        logger.debug("Stream for %s ended without [DONE] sentinel", model)

    async def aclose(self) -> None:
        if self.__client is not None:
            await self.__client.aclose()
            self.__client = None

# src/llm/adapters/openai_adapter.py — v2
"""OpenAI-compatible adapter implementing BaseInferenceClient.

Uses the official openai SDK in streaming mode. Suitable for OpenAI itself
and for any endpoint the SDK can reach through ``base_url``.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

from insightstream.core.errors import MalformedResponseError, ModelProviderError
from insightstream.llm.base_client import BaseInferenceClient


class OpenAIAdapter(BaseInferenceClient):
    """OpenAI chat-completions streaming adapter."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str | None = None,
        timeout_s: float = 120.0,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._timeout_s = timeout_s
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init AsyncOpenAI client (only on first API call)."""
        if self.__client is None:
            import openai

            self.__client = openai.AsyncOpenAI(
                api_key=self._api_key or None,
                base_url=self._base_url,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self.__client

    @property
    def provider_name(self) -> str:
        return "openai"

    async def stream(self, request_body: dict[str, Any]) -> AsyncIterator[str]:
        import openai

        model = request_body.get("model")
        kwargs = {**request_body, "stream": True}
        try:
            stream = await self._client.chat.completions.create(**kwargs)
            async with stream:
                async for chunk in stream:
                    if not chunk.choices:
                        continue
                    text = chunk.choices[0].delta.content
                    if text:
                        yield text
        except openai.APIStatusError as e:
            raise ModelProviderError(
                f"HTTP {e.status_code} from provider: {e.message}",
                model=model,
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise ModelProviderError(f"Provider error: {e}", model=model) from e
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Undecodable frame: {e}", model=model) from e

    async def aclose(self) -> None:
        if self.__client is not None:
            await self.__client.close()
            self.__client = None

# src/llm/base_client.py — v2
"""Abstract inference client interface.

One call to ``stream`` is one attempt against one model: it yields non-empty
text deltas in order and ends normally on success. Any failure (connection,
non-2xx status, provider error frame, undecodable frame) is raised as
ModelProviderError. Closing the iterator early must close the underlying
connection.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class BaseInferenceClient(ABC):
    """Unified streaming interface for chat-completion providers."""

    @abstractmethod
    def stream(self, request_body: dict[str, Any]) -> AsyncIterator[str]:
        """Stream text deltas for one chat-completion request."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openrouter, openai)."""

    async def aclose(self) -> None:
        """Release pooled connections. Default: nothing to release."""
        return None

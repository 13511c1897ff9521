# src/llm/client_factory.py — v3
"""Factory: instantiate the inference client from the configured provider name.

Called once at application startup; the resulting client is shared by all
jobs (it holds no per-job state).
"""

from __future__ import annotations

import importlib
import logging
from typing import Any

from insightstream.config.settings import Settings
from insightstream.llm.base_client import BaseInferenceClient

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openrouter": "insightstream.llm.adapters.openrouter_adapter.OpenRouterAdapter",
    "openai": "insightstream.llm.adapters.openai_adapter.OpenAIAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_inference_client(
    provider: str | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> BaseInferenceClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier. Defaults to settings.inference_provider.
        settings: Application settings (API keys, base URL, timeout).
        **kwargs: Additional adapter-specific arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider is None:
        provider = settings.inference_provider if settings is not None else "openrouter"

    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported inference provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    if settings is not None:
        init_kwargs.setdefault("timeout_s", settings.inference_timeout_s)
        if provider == "openrouter":
            init_kwargs.setdefault("api_key", settings.openrouter_api_key)
            init_kwargs.setdefault("base_url", settings.inference_base_url)
            init_kwargs.setdefault("referer", settings.app_referer)
            init_kwargs.setdefault("title", settings.app_title)
        elif provider == "openai":
            init_kwargs.setdefault("api_key", settings.openai_api_key)
            if settings.inference_base_url and "openrouter.ai" not in settings.inference_base_url:
                init_kwargs.setdefault("base_url", settings.inference_base_url)

    logger.debug("Creating inference client: provider=%s", provider)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseInferenceClient.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered inference provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)

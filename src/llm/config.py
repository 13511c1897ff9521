# src/llm/config.py — v2
"""Model routing: which model ids serve the primary and fallback attempts."""

from __future__ import annotations

from dataclasses import dataclass

from insightstream.config.settings import ConfigurationError, Settings


@dataclass(frozen=True)
class ModelRoute:
    """Resolved primary/fallback model pair for one prompt."""

    primary: str
    fallback: str

    def attempts(self) -> list[tuple[str, str]]:
        """Ordered (provider role, model id) pairs; primary first."""
        return [("primary", self.primary), ("fallback", self.fallback)]


def resolve_route(settings: Settings) -> ModelRoute:
    """Build the model route from settings.

    Raises:
        ConfigurationError: If the fallback would reuse the primary model.
    """
    route = ModelRoute(
        primary=settings.primary_model.strip(),
        fallback=settings.fallback_model.strip(),
    )
    if route.primary == route.fallback:
        raise ConfigurationError("FALLBACK_MODEL must differ from PRIMARY_MODEL")
    return route

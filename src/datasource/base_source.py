# src/datasource/base_source.py — v1
"""Abstract dataset source: the collaborator that owns templates and queries.

Implementations translate their own failures into ConfigNotFound (unknown
template) and QueryExecutionError (query failed); nothing else escapes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence

from insightstream.core.models import AnalysisTemplate, Record, TemplateSummary


class BaseDatasetSource(ABC):
    """Unified interface for template storage and query execution."""

    @abstractmethod
    async def get_template(self, template_id: str) -> AnalysisTemplate:
        """Fetch one template.

        Raises:
            ConfigNotFound: If the id does not resolve.
        """

    @abstractmethod
    async def execute_query(self, query: str, params: Sequence[Any]) -> list[Record]:
        """Run a positional-parameter query and return ordered flat records.

        Raises:
            QueryExecutionError: On any backend or binding failure.
        """

    @abstractmethod
    async def list_templates(self) -> list[TemplateSummary]:
        """List templates for the analysis menu."""

    async def close(self) -> None:
        """Release backend resources."""
        return None

# src/datasource/memory_source.py — v1
"""In-memory dataset source for tests, demos and embedding in other services."""

from __future__ import annotations

import logging
from typing import Any, Callable, Sequence

from insightstream.core.errors import ConfigNotFound, QueryExecutionError
from insightstream.core.models import AnalysisTemplate, Record, TemplateSummary
from insightstream.datasource.base_source import BaseDatasetSource

logger = logging.getLogger(__name__)

QueryHandler = Callable[[str, Sequence[Any]], Sequence[Record]]


class InMemoryDatasetSource(BaseDatasetSource):
    """Templates held in a dict; query results from a dict or a handler.

    Args:
        templates: Templates to serve.
        datasets: Rows to return per query string.
        handler: Called as ``handler(query, params)`` when the query is not in
            ``datasets``; may raise to simulate backend failures.
    """

    def __init__(
        self,
        templates: Sequence[AnalysisTemplate] = (),
        datasets: dict[str, Sequence[Record]] | None = None,
        handler: QueryHandler | None = None,
    ) -> None:
        self._templates = {t.template_id: t for t in templates}
        self._datasets = dict(datasets or {})
        self._handler = handler
        self.executed: list[tuple[str, list[Any]]] = []

    def add_template(self, template: AnalysisTemplate) -> None:
        self._templates[template.template_id] = template

    async def get_template(self, template_id: str) -> AnalysisTemplate:
        try:
            return self._templates[template_id]
        except KeyError:
            raise ConfigNotFound(template_id) from None

    async def execute_query(self, query: str, params: Sequence[Any]) -> list[Record]:
        self.executed.append((query, list(params)))
        if query in self._datasets:
            return [dict(r) for r in self._datasets[query]]
        if self._handler is None:
            raise QueryExecutionError(f"No dataset registered for query: {query[:80]!r}")
        try:
            return [dict(r) for r in self._handler(query, params)]
        except QueryExecutionError:
            raise
        except Exception as e:
            raise QueryExecutionError(f"Query handler failed: {e}") from e

    async def list_templates(self) -> list[TemplateSummary]:
        return [
            TemplateSummary(template_id=t.template_id, title=t.title, icon=t.icon)
            for t in self._templates.values()
        ]

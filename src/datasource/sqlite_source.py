# src/datasource/sqlite_source.py — v1
"""SQLite-backed dataset source (DATASOURCE_BACKEND=sqlite).

Uses stdlib sqlite3. Each call opens its own connection on a worker thread,
so concurrent jobs never share a cursor and the event loop never blocks on
a query. Templates live in the ``analysis_templates`` table; analysis
queries use ``?`` positional parameters.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

from pydantic import ValidationError

from insightstream.core.errors import ConfigNotFound, QueryExecutionError
from insightstream.core.models import AnalysisTemplate, Record, TemplateSummary
from insightstream.datasource.base_source import BaseDatasetSource

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS analysis_templates (
    template_id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    icon TEXT NOT NULL DEFAULT '',
    query TEXT NOT NULL,
    query_params TEXT,
    role TEXT NOT NULL DEFAULT 'user',
    prompt_body TEXT NOT NULL
);
"""


class SqliteDatasetSource(BaseDatasetSource):
    """Dataset source over a local SQLite database file."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    # --- Templates ---

    def save_template(self, template: AnalysisTemplate) -> None:
        """Insert or replace a template (seeding and admin tooling)."""
        with self._connect() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO analysis_templates
                   (template_id, title, icon, query, query_params, role, prompt_body)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    template.template_id,
                    template.title,
                    template.icon,
                    template.query,
                    json.dumps(template.query_params, default=str),
                    template.role,
                    template.prompt_body,
                ),
            )

    async def get_template(self, template_id: str) -> AnalysisTemplate:
        row = await asyncio.to_thread(self._fetch_template, template_id)
        if row is None:
            raise ConfigNotFound(template_id)
        try:
            return AnalysisTemplate(**dict(row))
        except ValidationError as e:
            logger.error("Template %s is malformed: %s", template_id, e)
            raise ConfigNotFound(template_id) from e

    def _fetch_template(self, template_id: str) -> sqlite3.Row | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM analysis_templates WHERE template_id = ? LIMIT 1",
                (template_id,),
            )
            return cursor.fetchone()

    async def list_templates(self) -> list[TemplateSummary]:
        rows = await asyncio.to_thread(self._fetch_summaries)
        return [TemplateSummary(**dict(r)) for r in rows]

    def _fetch_summaries(self) -> list[sqlite3.Row]:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT template_id, title, icon FROM analysis_templates ORDER BY template_id"
            )
            return cursor.fetchall()

    # --- Queries ---

    async def execute_query(self, query: str, params: Sequence[Any]) -> list[Record]:
        try:
            return await asyncio.to_thread(self._run_query, query, list(params))
        except sqlite3.Error as e:
            raise QueryExecutionError(f"Query failed: {e}") from e

    def _run_query(self, query: str, params: list[Any]) -> list[Record]:
        with self._connect() as conn:
            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

# tests/unit/datasource/test_unit_sqlite_source.py — v1
"""Tests for datasource/sqlite_source.py — templates and positional queries."""

from __future__ import annotations

import sqlite3

import pytest

from insightstream.core.errors import ConfigNotFound, QueryExecutionError
from insightstream.core.models import AnalysisTemplate
from insightstream.datasource.sqlite_source import SqliteDatasetSource


@pytest.fixture
def db(tmp_path):
    path = tmp_path / "nested" / "data.db"
    source = SqliteDatasetSource(path)
    conn = sqlite3.connect(str(path))
    with conn:
        conn.execute("CREATE TABLE sales (day TEXT, branch TEXT, amount REAL)")
        conn.executemany(
            "INSERT INTO sales VALUES (?, ?, ?)",
            [
                ("2024-01-05 10:00:00", "A", 10.0),
                ("2024-01-20 12:00:00", "B", 20.0),
                ("2024-02-03 09:00:00", "A", 30.0),
            ],
        )
    conn.close()
    return source


class TestTemplates:
    @pytest.mark.asyncio
    async def test_save_and_get(self, db):
        db.save_template(AnalysisTemplate(
            template_id="sales", query="SELECT 1", query_params=["A"], prompt_body="Summarize",
            title="Sales", icon="chart",
        ))
        tpl = await db.get_template("sales")
        assert tpl.query_params == ["A"]
        assert tpl.prompt_body == "Summarize"

    @pytest.mark.asyncio
    async def test_missing_template(self, db):
        with pytest.raises(ConfigNotFound):
            await db.get_template("nope")

    @pytest.mark.asyncio
    async def test_list_templates_sorted(self, db):
        for tid in ("b", "a"):
            db.save_template(AnalysisTemplate(template_id=tid, query="q", prompt_body="p"))
        assert [s.template_id for s in await db.list_templates()] == ["a", "b"]


class TestQueries:
    @pytest.mark.asyncio
    async def test_positional_params(self, db):
        rows = await db.execute_query(
            "SELECT branch, amount FROM sales WHERE day BETWEEN ? AND ? AND branch = ? ORDER BY day",
            ["2024-01-01 00:00:00", "2024-01-31 23:59:59", "A"],
        )
        assert rows == [{"branch": "A", "amount": 10.0}]

    @pytest.mark.asyncio
    async def test_empty_result(self, db):
        rows = await db.execute_query("SELECT * FROM sales WHERE day > ?", ["2030-01-01"])
        assert rows == []

    @pytest.mark.asyncio
    async def test_bad_query(self, db):
        with pytest.raises(QueryExecutionError):
            await db.execute_query("SELECT * FROM missing_table", [])

    @pytest.mark.asyncio
    async def test_wrong_param_count(self, db):
        with pytest.raises(QueryExecutionError):
            await db.execute_query("SELECT * FROM sales WHERE day > ?", [])

# src/datasource/source_factory.py — v1
"""Factory for dataset source instantiation."""

from __future__ import annotations

from insightstream.config.settings import Settings
from insightstream.datasource.base_source import BaseDatasetSource


def create_dataset_source(settings: Settings | None = None) -> BaseDatasetSource:
    """Instantiate the configured dataset source.

    Args:
        settings: Application settings. Defaults to an empty in-memory source.
    """
    backend = "memory" if settings is None else settings.datasource_backend

    if backend == "memory":
        from insightstream.datasource.memory_source import InMemoryDatasetSource
        return InMemoryDatasetSource()

    if backend == "sqlite":
        from insightstream.datasource.sqlite_source import SqliteDatasetSource
        return SqliteDatasetSource(db_path=settings.datasource_sqlite_path)

    raise ValueError(f"Unsupported dataset source backend: {backend!r}")

# src/__init__.py — v1
"""insightstream: streamed LLM analysis of query results."""

from insightstream.version import __version__

__all__ = ["__version__"]

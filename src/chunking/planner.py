# src/chunking/planner.py — v1
"""Chunk planner: split a record list into ordered, size-bounded parts.

Deterministic and pure. Concatenating every chunk's records in index order
reproduces the input list exactly.
"""

from __future__ import annotations

import math
from typing import Sequence

from insightstream.core.models import Chunk, Record


def plan_chunks(records: Sequence[Record], chunk_size: int) -> list[Chunk]:
    """Partition records into chunks of at most ``chunk_size`` records.

    A list that fits in one chunk (including an empty list) yields a single
    chunk ``{index: 0, total_chunks: 1}``; callers treat that as the
    single-pass path.

    Raises:
        ValueError: If chunk_size is not positive.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be > 0, got {chunk_size}")

    rows = list(records)
    if len(rows) <= chunk_size:
        return [Chunk(index=0, total_chunks=1, records=rows)]

    total = math.ceil(len(rows) / chunk_size)
    return [
        Chunk(
            index=i,
            total_chunks=total,
            records=rows[i * chunk_size:(i + 1) * chunk_size],
        )
        for i in range(total)
    ]

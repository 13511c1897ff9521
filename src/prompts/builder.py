# src/prompts/builder.py — v1
"""Prompt builder: render a data part, or the reconciliation pass, into a prompt.

Pure transformations. Prompt scaffolding lives in ``prompts/templates/*.txt``;
the template's own instruction body and the serialized records are passed
in as values, so braces inside them are never interpreted.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence

from insightstream.core.models import AnalysisTemplate, Chunk, ChunkResult, Record

if TYPE_CHECKING:
    from insightstream.config.settings import Settings

_TEMPLATE_DIR = Path(__file__).parent / "templates"


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    return (_TEMPLATE_DIR / f"{name}.txt").read_text(encoding="utf-8")


def serialize_records(records: Sequence[Record]) -> str:
    """Serialize records as indented JSON; dates and decimals become strings."""
    return json.dumps(list(records), indent=2, ensure_ascii=False, default=str)


def build_prompt(
    template: AnalysisTemplate, chunk: Chunk, total_records: int | None = None,
) -> str:
    """Render one data part into a prompt.

    A single-chunk dataset gets the plain data prompt. Parts of a larger
    dataset carry a positional disclaimer telling the model to analyze only
    that part.
    """
    data = serialize_records(chunk.records)
    if chunk.is_only_chunk:
        return _load_template("single_pass").format(
            instructions=template.prompt_body.strip(),
            record_count=len(chunk.records),
            data=data,
        )
    return _load_template("chunk").format(
        instructions=template.prompt_body.strip(),
        part=chunk.index + 1,
        total_parts=chunk.total_chunks,
        total_records=total_records if total_records is not None else len(chunk.records),
        record_count=len(chunk.records),
        data=data,
    )


def build_reconciliation_prompt(
    template: AnalysisTemplate,
    results: Sequence[ChunkResult],
    total_chunks: int,
    skipped: Sequence[int] = (),
) -> str:
    """Render the merge prompt over the ordered per-part results.

    Args:
        template: Analysis template (its instruction body leads the prompt).
        results: Successful part results; rendered in index order.
        total_chunks: Number of parts the dataset was split into.
        skipped: 0-based indexes of parts whose analysis failed.
    """
    ordered = sorted(results, key=lambda r: r.index)
    sections = "\n\n".join(
        f"## Part {r.index + 1} analysis\n\n{r.text.strip()}" for r in ordered
    )
    skipped_note = ""
    if skipped:
        names = ", ".join(str(i + 1) for i in sorted(skipped))
        skipped_note = (
            f"Parts {names} could not be analyzed and are missing below; "
            "do not guess their contents.\n"
        )
    return _load_template("reconciliation").format(
        instructions=template.prompt_body.strip(),
        total_parts=total_chunks,
        skipped_note=skipped_note,
        results=sections,
    )


def build_request_body(prompt: str, model: str, settings: Settings) -> dict[str, Any]:
    """Outbound chat-completion payload for one streaming attempt."""
    return {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": settings.temperature,
        "max_tokens": settings.max_tokens,
        "stream": True,
    }

# src/logging/logger.py — v2
"""Log formatters and setup for the insightstream logger tree.

Every record carries the current job context (job_id, template_id, stage,
part). Console output goes to stderr; stdout belongs to the CLI's streamed
analysis text.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from insightstream.logging.context import get_context

ROOT_LOGGER = "insightstream"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; job context fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            **get_context().as_dict(),
        }
        # Job stats and similar payloads arrive via extra={"data": {...}}
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``time [LEVEL] logger [job] (stage part): message`` for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        when = datetime.fromtimestamp(record.created, timezone.utc)
        line = f"{when:%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        if ctx.job_id:
            line += f" [{ctx.job_id}]"
        if ctx.stage:
            line += f" ({ctx.stage} {ctx.part})" if ctx.part else f" ({ctx.stage})"
        line += f": {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Logger:
    """(Re)configure the insightstream logger and return it.

    ``log_file`` adds a size-rotated file handler next to the stderr one.
    Unknown formats fall back to text.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()

    formatter = _FORMATTERS.get(log_format, TextFormatter)()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from insightstream.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root

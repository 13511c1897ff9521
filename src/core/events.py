# src/core/events.py — v1
"""StreamEvent: the tagged union pushed to the client, and its SSE framing.

Wire shapes:
    {"status": "progress", "message"?: str, "content"?: str}
    {"status": "error", "error": str}
    {"status": "complete", "message"?: str, "content"?: str}

Exactly one error or complete event terminates a stream.
"""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, model_validator


class StreamEvent(BaseModel):
    """One event on the server-push channel."""

    status: Literal["progress", "error", "complete"]
    message: str | None = None
    content: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def check_shape(self) -> StreamEvent:
        if self.status == "error":
            if not self.error or self.message is not None or self.content is not None:
                raise ValueError("error events carry only an 'error' string")
        elif self.error is not None:
            raise ValueError(f"{self.status} events cannot carry 'error'")
        return self

    # --- Constructors ---

    @classmethod
    def progress(cls, message: str | None = None, content: str | None = None) -> StreamEvent:
        return cls(status="progress", message=message, content=content)

    @classmethod
    def content_slice(cls, content: str) -> StreamEvent:
        """A buffered slice of model prose, appended verbatim by the consumer."""
        return cls(status="progress", content=content)

    @classmethod
    def failure(cls, error: str) -> StreamEvent:
        return cls(status="error", error=error)

    @classmethod
    def complete(cls, message: str | None = None, content: str | None = None) -> StreamEvent:
        return cls(status="complete", message=message, content=content)

    # --- Serialization ---

    @property
    def is_terminal(self) -> bool:
        return self.status in ("error", "complete")

    def to_payload(self) -> dict[str, str]:
        """JSON payload with absent keys omitted."""
        return self.model_dump(exclude_none=True)

    def to_sse(self) -> str:
        """Frame as one Server-Sent Events line: ``data: <json>\\n\\n``."""
        return "data: " + json.dumps(self.to_payload(), ensure_ascii=False) + "\n\n"

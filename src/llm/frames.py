# src/llm/frames.py — v1
"""Decode chat-completion SSE lines into a closed frame variant.

Every line of an OpenAI-compatible streaming response maps to exactly one of:
    None         blank line, keep-alive comment, or a non-data SSE field
    DeltaFrame   a content fragment (possibly empty)
    ErrorFrame   a provider-reported error payload
    DoneFrame    the ``[DONE]`` sentinel
or raises MalformedResponseError when a data line is not the expected JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from insightstream.core.errors import MalformedResponseError

_DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class DeltaFrame:
    text: str
    finish_reason: str | None = None


@dataclass(frozen=True)
class ErrorFrame:
    message: str
    code: Any = None


@dataclass(frozen=True)
class DoneFrame:
    pass


Frame = Union[DeltaFrame, ErrorFrame, DoneFrame]


def decode_sse_line(line: str) -> Frame | None:
    """Decode one line of a streaming chat-completion response."""
    line = line.rstrip("\r\n")
    if not line.strip() or line.startswith(":"):
        return None
    if not line.startswith("data:"):
        # event:, id:, retry: fields carry nothing we use
        return None

    payload = line[len("data:"):].strip()
    if payload == _DONE_SENTINEL:
        return DoneFrame()
    return decode_payload(payload)


def decode_payload(payload: str) -> Frame:
    """Decode the JSON body of one ``data:`` line."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Undecodable frame: {payload[:200]!r}") from e
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Frame is not a JSON object: {payload[:200]!r}")

    error = data.get("error")
    if error:
        if isinstance(error, dict):
            return ErrorFrame(
                message=str(error.get("message") or "Unknown provider error"),
                code=error.get("code"),
            )
        return ErrorFrame(message=str(error))

    choices = data.get("choices")
    if choices is None:
        raise MalformedResponseError(f"Frame has no choices: {payload[:200]!r}")
    if not isinstance(choices, list):
        raise MalformedResponseError(f"Frame choices is not a list: {payload[:200]!r}")
    if not choices:
        # Usage-only trailer frames carry an empty choices list
        return DeltaFrame(text="")

    choice = choices[0]
    if not isinstance(choice, dict):
        raise MalformedResponseError(f"Frame choice is not an object: {payload[:200]!r}")
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        raise MalformedResponseError(f"Frame delta is not an object: {payload[:200]!r}")
    text = delta.get("content") or ""
    if not isinstance(text, str):
        raise MalformedResponseError(f"Frame content is not a string: {payload[:200]!r}")
    return DeltaFrame(text=text, finish_reason=choice.get("finish_reason"))

# src/llm/models.py — v1
"""Provider-agnostic stream items produced by the fallback streamer.

A prompt's stream is a sequence of tagged items:
    AttemptStarted, TokenDelta*, (AttemptFailed, AttemptStarted, TokenDelta*)?,
    AttemptSucceeded
or ends by raising ModelProviderError after the last AttemptFailed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from insightstream.core.models import ModelAttempt


@dataclass(frozen=True)
class AttemptStarted:
    """A new provider attempt begins; the prompt starts fresh."""

    attempt: ModelAttempt


@dataclass(frozen=True)
class TokenDelta:
    """A non-empty fragment of model text."""

    text: str


@dataclass(frozen=True)
class AttemptFailed:
    """The current attempt failed; its partial output must not be merged."""

    attempt: ModelAttempt
    error: Exception


@dataclass(frozen=True)
class AttemptSucceeded:
    """The current attempt streamed to completion; no more deltas follow."""

    attempt: ModelAttempt


StreamItem = Union[AttemptStarted, TokenDelta, AttemptFailed, AttemptSucceeded]

# src/core/errors.py — v1
"""Error taxonomy for analysis jobs.

Every error carries a stable ``code`` (logged, and used by callers to branch)
and a ``user_message`` that is safe to show to the client. Provider payloads
and tracebacks stay in the log.
"""

from __future__ import annotations


class InsightStreamError(Exception):
    """Base class for all job-level errors."""

    code = "InternalError"
    user_message = "An unexpected error occurred. Please try again."

    def __init__(self, message: str | None = None, *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class ConfigNotFound(InsightStreamError):
    """Template id does not resolve. Fatal to the job."""

    code = "ConfigNotFound"
    user_message = "Analysis configuration was not found."

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Template not found: {template_id!r}")


class QueryExecutionError(InsightStreamError):
    """Dataset query failed (bad params, backend unavailable). Fatal to the job."""

    code = "QueryExecutionError"
    user_message = "The analysis query could not be executed."


class ModelProviderError(InsightStreamError):
    """A single inference attempt failed (connection, decode or provider error)."""

    code = "ModelProviderError"
    user_message = "The analysis model is currently unavailable. Please try again."

    def __init__(
        self,
        message: str,
        *,
        model: str | None = None,
        status_code: int | None = None,
        user_message: str | None = None,
    ):
        self.model = model
        self.status_code = status_code
        super().__init__(message, user_message=user_message)


class MalformedResponseError(ModelProviderError):
    """A provider frame could not be decoded as the expected JSON."""

    code = "MalformedResponseError"


class ChunkAnalysisSkipped(InsightStreamError):
    """Both providers failed for one data part; non-fatal."""

    code = "ChunkAnalysisSkipped"

    def __init__(self, index: int, total: int, cause: Exception | None = None):
        self.index = index
        self.total = total
        self.cause = cause
        super().__init__(f"Part {index + 1}/{total} skipped: {cause}")


class StreamWriteError(InsightStreamError):
    """The client disconnected or the transport rejected a write."""

    code = "StreamWriteError"


class JobTimeout(InsightStreamError):
    """The job exceeded its wall-clock budget."""

    code = "JobTimeout"
    user_message = "The analysis took too long and was stopped."

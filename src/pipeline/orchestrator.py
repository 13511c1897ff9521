# src/pipeline/orchestrator.py — v2
"""Pipeline orchestrator: one analysis job from template lookup to the terminal event.

States:
    FETCHING_TEMPLATE -> EXECUTING_QUERY -> EMPTY | SINGLE_PASS | MULTI_PASS -> COMPLETE
with any state able to move to FAILED.

Within a job everything is sequential: parts are analyzed one after another
and every event is emitted in the order it was produced. Across jobs nothing
is shared except read-only settings, the dataset source and the inference
client. A failed write to the client (StreamWriteError) or task cancellation
stops the job and closes the in-flight inference stream.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from insightstream.chunking.planner import plan_chunks
from insightstream.core.errors import (
    ChunkAnalysisSkipped,
    InsightStreamError,
    JobTimeout,
    ModelProviderError,
    QueryExecutionError,
    StreamWriteError,
)
from insightstream.core.events import StreamEvent
from insightstream.core.models import (
    AnalysisJob,
    AnalysisTemplate,
    Chunk,
    ChunkResult,
    JobStats,
    Record,
)
from insightstream.llm.config import resolve_route
from insightstream.llm.fallback import FallbackStreamer
from insightstream.llm.models import AttemptFailed, AttemptStarted, AttemptSucceeded, TokenDelta
from insightstream.logging.context import clear_context, set_job_context, set_stage_context
from insightstream.prompts.builder import build_prompt, build_reconciliation_prompt
from insightstream.streaming.aggregator import ContentAggregator
from insightstream.tracking.call_logger import CallLogger

if TYPE_CHECKING:
    from insightstream.config.settings import Settings
    from insightstream.datasource.base_source import BaseDatasetSource
    from insightstream.llm.base_client import BaseInferenceClient
    from insightstream.streaming.emitter import BaseEventEmitter

logger = logging.getLogger(__name__)

QUERY_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

FALLBACK_MESSAGE = "Primary model failed; retrying with fallback model..."
# Sent when content of the failed attempt already reached the client.
PARTIAL_SUPERSEDED_MESSAGE = (
    "Primary model failed; the partial analysis above is replaced by the "
    "fallback model's answer that follows..."
)


class PipelineState(str, enum.Enum):
    FETCHING_TEMPLATE = "fetching_template"
    EXECUTING_QUERY = "executing_query"
    EMPTY = "empty"
    SINGLE_PASS = "single_pass"
    MULTI_PASS = "multi_pass"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class _JobRun:
    """Mutable per-job bookkeeping; never shared between jobs."""

    job: AnalysisJob
    calls: CallLogger = field(default_factory=CallLogger)
    state: PipelineState = PipelineState.FETCHING_TEMPLATE
    total_records: int = 0
    total_chunks: int = 0
    skipped: list[int] = field(default_factory=list)
    outcome: str = "failed"
    error_code: str | None = None

    def enter(self, state: PipelineState, part: str | None = None) -> None:
        self.state = state
        set_stage_context(state.value, part)


def build_query_params(job: AnalysisJob, template: AnalysisTemplate) -> list[Any]:
    """Positional query parameters.

    Positions 1-2 are always the date range; the template's stored params
    follow, then the job's extra params when they are a list.
    """
    params: list[Any] = [
        job.date_from.strftime(QUERY_DATE_FORMAT),
        job.date_to.strftime(QUERY_DATE_FORMAT),
    ]
    params.extend(template.query_params)
    if isinstance(job.extra_params, list):
        params.extend(job.extra_params)
    return params


class PipelineOrchestrator:
    """Run analysis jobs against a dataset source and an inference client.

    One orchestrator may serve many concurrent jobs; each ``run`` call keeps
    its state local.

    Args:
        settings: Application settings (chunk size, buffering, models, timeouts).
        source: Dataset source collaborator.
        client: Inference client.
    """

    def __init__(
        self,
        settings: Settings,
        source: BaseDatasetSource,
        client: BaseInferenceClient,
    ) -> None:
        self._settings = settings
        self._source = source
        self._client = client
        self._route = resolve_route(settings)

    async def run(self, job: AnalysisJob, emitter: BaseEventEmitter) -> JobStats:
        """Execute one job, writing its events to ``emitter``.

        Never raises for job-level failures: they end in one error event.
        Task cancellation propagates after bookkeeping.
        """
        set_job_context(job.job_id, job.template_id)
        run = _JobRun(job=job)
        start_time = time.monotonic()
        logger.info(
            "Job started: template=%s range=%s..%s",
            job.template_id, job.date_from.date(), job.date_to.date(),
        )

        try:
            timeout = self._settings.job_timeout_s
            if timeout:
                await asyncio.wait_for(self._execute(run, emitter), timeout)
            else:
                await self._execute(run, emitter)
        except StreamWriteError as e:
            run.outcome = "cancelled"
            logger.info("Client disconnected in state %s; job cancelled (%s)", run.state.value, e)
        except asyncio.CancelledError:
            run.outcome = "cancelled"
            logger.info("Job task cancelled in state %s", run.state.value)
            raise
        except asyncio.TimeoutError:
            run.outcome = "timeout"
            logger.warning("Job exceeded %.0fs budget in state %s", self._settings.job_timeout_s, run.state.value)
            await self._fail(run, emitter, JobTimeout())
        except InsightStreamError as e:
            run.outcome = "failed"
            logger.error("Job failed in state %s: [%s] %s", run.state.value, e.code, e)
            await self._fail(run, emitter, e)
        except Exception as e:
            run.outcome = "failed"
            logger.exception("Unexpected error in state %s", run.state.value)
            await self._fail(run, emitter, InsightStreamError(str(e)))
        finally:
            stats = self._build_stats(run, time.monotonic() - start_time)
            logger.info(
                "Job finished: outcome=%s records=%d parts=%d calls=%d fallbacks=%d skipped=%s in %.1fs",
                stats.outcome, stats.total_records, stats.total_chunks,
                stats.inference_calls, stats.fallback_calls, stats.skipped_chunks,
                stats.duration_seconds,
                extra={"data": stats.model_dump()},
            )
            clear_context()

        return stats

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _execute(self, run: _JobRun, emitter: BaseEventEmitter) -> None:
        run.enter(PipelineState.FETCHING_TEMPLATE)
        template = await self._source.get_template(run.job.template_id)

        run.enter(PipelineState.EXECUTING_QUERY)
        records = await self._execute_query(run.job, template)
        run.total_records = len(records)

        if not records:
            run.enter(PipelineState.EMPTY)
            run.outcome = "empty"
            logger.info("Query returned no rows; no model call made")
            await emitter.emit(StreamEvent.complete(content=self._settings.no_data_message))
            return

        chunks = plan_chunks(records, self._settings.chunk_size)
        run.total_chunks = len(chunks)

        if len(chunks) == 1:
            await self._single_pass(run, template, chunks[0], emitter)
        else:
            await self._multi_pass(run, template, chunks, emitter)

        run.enter(PipelineState.COMPLETE)
        run.outcome = "complete"

    async def _execute_query(self, job: AnalysisJob, template: AnalysisTemplate) -> list[Record]:
        params = build_query_params(job, template)
        logger.debug("Executing query with %d params", len(params))
        try:
            return await self._source.execute_query(template.query, params)
        except QueryExecutionError:
            raise
        except Exception as e:
            raise QueryExecutionError(f"Query failed: {type(e).__name__}: {e}") from e

    async def _single_pass(
        self,
        run: _JobRun,
        template: AnalysisTemplate,
        chunk: Chunk,
        emitter: BaseEventEmitter,
    ) -> None:
        run.enter(PipelineState.SINGLE_PASS)
        await emitter.emit(StreamEvent.progress(f"Analyzing {len(chunk.records)} records..."))

        prompt = build_prompt(template, chunk, run.total_records)
        _, tail = await self._stream_prompt(run, prompt, emitter, "single_pass", hold_tail=True)
        await emitter.emit(StreamEvent.complete(message="Analysis complete", content=tail or None))

    async def _multi_pass(
        self,
        run: _JobRun,
        template: AnalysisTemplate,
        chunks: list[Chunk],
        emitter: BaseEventEmitter,
    ) -> None:
        run.enter(PipelineState.MULTI_PASS)
        total = len(chunks)
        await emitter.emit(StreamEvent.progress(
            f"Large dataset ({run.total_records} records); analyzing in {total} parts..."
        ))

        results: list[ChunkResult] = []
        for chunk in chunks:
            part = f"{chunk.index + 1}/{total}"
            run.enter(PipelineState.MULTI_PASS, part)
            await emitter.emit(StreamEvent.progress(
                f"Analyzing part {part} ({len(chunk.records)} records)..."
            ))
            prompt = build_prompt(template, chunk, run.total_records)
            try:
                text, _ = await self._stream_prompt(run, prompt, emitter, f"part_{chunk.index + 1}")
            except ModelProviderError as e:
                skipped = ChunkAnalysisSkipped(chunk.index, total, e)
                logger.warning("%s", skipped)
                run.skipped.append(chunk.index)
                await emitter.emit(StreamEvent.progress(
                    f"Part {chunk.index + 1} failed, continuing..."
                ))
                continue
            results.append(ChunkResult(index=chunk.index, text=text))

        run.enter(PipelineState.MULTI_PASS, "reconciliation")
        if not results:
            raise ModelProviderError(
                f"All {total} parts failed; nothing to reconcile",
                user_message="None of the data parts could be analyzed. Please try again.",
            )

        await emitter.emit(StreamEvent.progress(
            "All parts analyzed; building the overall summary..."
        ))
        prompt = build_reconciliation_prompt(template, results, total, run.skipped)
        try:
            _, tail = await self._stream_prompt(run, prompt, emitter, "reconciliation", hold_tail=True)
        except ModelProviderError as e:
            raise ModelProviderError(
                f"Reconciliation failed: {e}",
                model=e.model,
                user_message="An error occurred while creating the overall summary.",
            ) from e

        message = "Analysis complete"
        if run.skipped:
            names = ", ".join(str(i + 1) for i in run.skipped)
            message += f" (parts {names} could not be analyzed)"
        await emitter.emit(StreamEvent.complete(message=message, content=tail or None))

    # ------------------------------------------------------------------
    # Streaming one prompt
    # ------------------------------------------------------------------

    async def _stream_prompt(
        self,
        run: _JobRun,
        prompt: str,
        emitter: BaseEventEmitter,
        step: str,
        hold_tail: bool = False,
    ) -> tuple[str, str]:
        """Stream one prompt to the client through the content aggregator.

        With ``hold_tail`` the most recent slice is kept back and returned
        instead of emitted, so the caller can put it in the terminal event.

        Returns:
            (full text of the successful attempt, unsent tail)

        Raises:
            ModelProviderError: When primary and fallback both failed.
            StreamWriteError: When the client went away.
        """
        streamer = FallbackStreamer(
            self._client, self._settings, call_logger=run.calls, route=self._route,
        )
        aggregator: ContentAggregator | None = None
        held = ""
        sent = False
        superseded = False

        async with aclosing(streamer.stream(prompt, step)) as items:
            async for item in items:
                if isinstance(item, AttemptStarted):
                    aggregator = ContentAggregator.from_settings(self._settings)
                    held = ""
                    if item.attempt.provider == "fallback":
                        await emitter.emit(StreamEvent.progress(
                            PARTIAL_SUPERSEDED_MESSAGE if superseded else FALLBACK_MESSAGE
                        ))
                elif isinstance(item, TokenDelta):
                    for piece in aggregator.feed(item.text):
                        sent = sent or not hold_tail or bool(held)
                        held = await self._push(emitter, piece, held, hold_tail)
                elif isinstance(item, AttemptFailed):
                    dropped = aggregator.discard()
                    logger.debug(
                        "Discarding %d unsent chars from failed %s attempt",
                        len(dropped) + len(held), item.attempt.provider,
                    )
                    held = ""
                    superseded, sent = sent, False
                elif isinstance(item, AttemptSucceeded):
                    for piece in aggregator.force_flush():
                        held = await self._push(emitter, piece, held, hold_tail)
                    return aggregator.text, held

        raise ModelProviderError(f"Stream for {step} ended without a result")

    @staticmethod
    async def _push(
        emitter: BaseEventEmitter, piece: str, held: str, hold_tail: bool,
    ) -> str:
        if not hold_tail:
            await emitter.emit(StreamEvent.content_slice(piece))
            return ""
        if held:
            await emitter.emit(StreamEvent.content_slice(held))
        return piece

    # ------------------------------------------------------------------
    # Terminal handling
    # ------------------------------------------------------------------

    async def _fail(self, run: _JobRun, emitter: BaseEventEmitter, error: InsightStreamError) -> None:
        run.state = PipelineState.FAILED
        run.error_code = error.code
        if emitter.closed or emitter.terminated:
            return
        try:
            await emitter.emit(StreamEvent.failure(error.user_message))
        except StreamWriteError:
            run.outcome = "cancelled"
            logger.info("Client gone before error event could be sent")

    @staticmethod
    def _build_stats(run: _JobRun, elapsed: float) -> JobStats:
        return JobStats(
            job_id=run.job.job_id,
            template_id=run.job.template_id,
            outcome=run.outcome,
            total_records=run.total_records,
            total_chunks=run.total_chunks,
            inference_calls=run.calls.total_calls,
            fallback_calls=run.calls.fallback_calls,
            skipped_chunks=list(run.skipped),
            duration_seconds=round(elapsed, 3),
            error_code=run.error_code,
        )

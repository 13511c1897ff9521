# src/api/app.py — v2
"""FastAPI application: analysis endpoint streamed as Server-Sent Events.

Endpoints:
    POST /api/analyser             start a job, stream its events
    GET  /api/analyser/templates   list configured analyses
    GET  /health                   liveness

Each POST runs one orchestrator job in its own task, started by the response
body generator on its first read. The task writes into a bounded queue; the
generator drains it. When the client goes away the generator is closed, the
queue is marked closed and the job task is cancelled, which also closes the
in-flight inference stream. A response whose body is never read starts no job.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from insightstream.api.models import AnalysisRequest, TemplateInfo
from insightstream.config.settings import Settings, load_settings
from insightstream.datasource.base_source import BaseDatasetSource
from insightstream.datasource.source_factory import create_dataset_source
from insightstream.llm.base_client import BaseInferenceClient
from insightstream.llm.client_factory import create_inference_client
from insightstream.pipeline.orchestrator import PipelineOrchestrator
from insightstream.streaming.emitter import QueueEventEmitter
from insightstream.version import __version__

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_app(
    settings: Settings | None = None,
    source: BaseDatasetSource | None = None,
    client: BaseInferenceClient | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators not passed in are created from settings and closed on
    shutdown; injected ones are left to the caller.
    """
    settings = settings or load_settings()
    owned_source = source is None
    owned_client = client is None
    source = source or create_dataset_source(settings)
    client = client or create_inference_client(settings=settings)
    orchestrator = PipelineOrchestrator(settings, source, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "insightstream %s ready: provider=%s primary=%s fallback=%s",
            __version__, settings.inference_provider,
            settings.primary_model, settings.fallback_model,
        )
        yield
        if owned_client:
            await client.aclose()
        if owned_source:
            await source.close()

    app = FastAPI(title="insightstream", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.source = source
    app.state.client = client
    app.state.orchestrator = orchestrator

    @app.post("/api/analyser")
    async def analyser(request: Request) -> StreamingResponse:
        analysis = await _parse_request(request)
        job = analysis.to_job()
        logger.info("Accepted job %s for template %s", job.job_id, job.template_id)

        async def event_stream() -> AsyncIterator[str]:
            # The job starts with the first body read and dies with the body.
            emitter = QueueEventEmitter(maxsize=settings.event_queue_size)
            task = asyncio.create_task(orchestrator.run(job, emitter))
            try:
                async for line in emitter.sse_lines():
                    yield line
            finally:
                emitter.close()
                if not task.done():
                    logger.info("Stream for job %s closed early; cancelling", job.job_id)
                    task.cancel()

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/api/analyser/templates")
    async def templates() -> list[dict]:
        summaries = await source.list_templates()
        return [
            TemplateInfo.from_summary(s).model_dump(by_alias=True) for s in summaries
        ]

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


async def _parse_request(request: Request) -> AnalysisRequest:
    """Validate the POST body; any problem is a 400 before a stream is opened."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    if not body.get("templateId"):
        raise HTTPException(status_code=400, detail="templateId is required")
    try:
        return AnalysisRequest.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors()) or "body"
        raise HTTPException(status_code=400, detail=f"Invalid request: {fields}")

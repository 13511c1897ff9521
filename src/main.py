# src/main.py — v2
"""CLI entry point: serve, analyze and templates commands.

Usage:
    insightstream serve [--host HOST] [--port PORT]
    insightstream analyze <template_id> --from DATE --to DATE [--branches JSON]
    insightstream templates
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from insightstream.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from pydantic import ValidationError

    from insightstream.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except (ConfigurationError, ValidationError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return args.func(args, settings)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="insightstream",
        description=f"insightstream v{__version__}: streaming AI analysis of tabular data",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Run the HTTP server")
    p_serve.add_argument("--host", default=None, help="Bind address (default: SERVER_HOST)")
    p_serve.add_argument("--port", type=int, default=None, help="Port (default: SERVER_PORT)")
    p_serve.set_defaults(func=_cmd_serve)

    # --- analyze ---
    p_analyze = subparsers.add_parser(
        "analyze", help="Run one analysis and stream it to stdout",
    )
    p_analyze.add_argument("template_id", help="Analysis template id")
    p_analyze.add_argument(
        "--from", dest="date_from", type=_parse_date, required=True,
        help="Range start (YYYY-MM-DD or ISO timestamp)",
    )
    p_analyze.add_argument(
        "--to", dest="date_to", type=_parse_date, required=True,
        help="Range end (YYYY-MM-DD or ISO timestamp)",
    )
    p_analyze.add_argument(
        "--branches", type=json.loads, default=None,
        help="Extra query params as a JSON array",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- templates ---
    p_templates = subparsers.add_parser("templates", help="List analysis templates")
    p_templates.set_defaults(func=_cmd_templates)

    return parser


def _parse_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value!r}")


def _cmd_serve(args: argparse.Namespace, settings) -> int:
    """Run the FastAPI app under uvicorn."""
    import uvicorn

    from insightstream.api.app import create_app

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        log_config=None,
    )
    return 0


def _cmd_analyze(args: argparse.Namespace, settings) -> int:
    """Execute one analysis job, printing content as it streams."""
    return asyncio.run(_analyze(args, settings))


async def _analyze(args: argparse.Namespace, settings) -> int:
    from insightstream.core.events import StreamEvent
    from insightstream.core.models import AnalysisJob
    from insightstream.datasource.source_factory import create_dataset_source
    from insightstream.llm.client_factory import create_inference_client
    from insightstream.pipeline.orchestrator import PipelineOrchestrator
    from insightstream.streaming.emitter import CallbackEventEmitter

    async def write(event: StreamEvent) -> None:
        if event.message:
            print(event.message, file=sys.stderr)
        if event.content:
            sys.stdout.write(event.content)
            sys.stdout.flush()
        if event.error:
            print(f"Error: {event.error}", file=sys.stderr)

    job = AnalysisJob(
        template_id=args.template_id,
        date_from=args.date_from,
        date_to=args.date_to,
        extra_params=args.branches,
    )
    source = create_dataset_source(settings)
    client = create_inference_client(settings=settings)
    try:
        orchestrator = PipelineOrchestrator(settings, source, client)
        stats = await orchestrator.run(job, CallbackEventEmitter(write))
    finally:
        await client.aclose()
        await source.close()

    print(file=sys.stdout)
    print(
        f"\n{stats.outcome}: {stats.total_records} records, {stats.total_chunks} parts, "
        f"{stats.inference_calls} model calls in {stats.duration_seconds:.1f}s",
        file=sys.stderr,
    )
    return 0 if stats.outcome in ("complete", "empty") else 1


def _cmd_templates(args: argparse.Namespace, settings) -> int:
    """List configured analysis templates."""
    return asyncio.run(_templates(settings))


async def _templates(settings) -> int:
    from insightstream.datasource.source_factory import create_dataset_source

    source = create_dataset_source(settings)
    try:
        summaries = await source.list_templates()
    finally:
        await source.close()

    if not summaries:
        print("No analysis templates configured.")
        return 0
    for s in summaries:
        label = f"{s.icon} {s.title}".strip() or "-"
        print(f"  {s.template_id:<24} {label}")
    return 0


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from insightstream.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())

# src/main.py — v2
"""CLI entry point — ask, serve, chain commands.

Usage:
    deepthink ask "<question>" [--json] [--session ID] [--user ID] [--budget N]
    deepthink serve [--host HOST] [--port PORT]
    deepthink chain <trace_id>
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING

from deepthink.version import __version__

if TYPE_CHECKING:
    from deepthink.config.settings import Settings
    from deepthink.pipeline.events import PipelineEvent

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from deepthink.config.settings import load_settings

        settings = load_settings()
        _setup_logging(settings, args.verbose)
        if args.command == "serve":
            return _cmd_serve(args, settings)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="deepthink",
        description=f"deepthink v{__version__} — staged reasoning pipeline",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- ask ---
    p_ask = subparsers.add_parser("ask", help="Run the pipeline for one question")
    p_ask.add_argument("question", help="Question to reason about")
    p_ask.add_argument("--session", default="cli", help="Session id (default: cli)")
    p_ask.add_argument("--user", default=None, help="User id (default: none)")
    p_ask.add_argument(
        "--budget", type=int, default=None,
        help="Total token budget (default: PIPELINE_TOKEN_BUDGET)",
    )
    p_ask.add_argument(
        "--json", action="store_true",
        help="Print raw events as JSON lines",
    )
    p_ask.set_defaults(func=_cmd_ask)

    # --- serve ---
    p_serve = subparsers.add_parser("serve", help="Run the HTTP API")
    p_serve.add_argument("--host", default=None, help="Bind host (default: API_HOST)")
    p_serve.add_argument("--port", type=int, default=None, help="Bind port (default: API_PORT)")
    p_serve.set_defaults(func=_cmd_serve)

    # --- chain ---
    p_chain = subparsers.add_parser("chain", help="Show a persisted reasoning chain")
    p_chain.add_argument("trace_id", help="Trace id printed by a previous run")
    p_chain.set_defaults(func=_cmd_chain)

    return parser


async def _cmd_ask(args: argparse.Namespace, settings: Settings) -> int:
    """Run one pipeline and print its events."""
    from deepthink.api.facade import ReasoningService

    service = ReasoningService.from_settings(settings)
    executor = service.new_executor()
    task = asyncio.create_task(
        executor.run(args.question, args.session, budget=args.budget, user_id=args.user)
    )
    try:
        async for event in executor.channel:
            if args.json:
                print(json.dumps({"event": event.name, "data": event.data}, default=str))
            else:
                _print_event(event)
        await task
    finally:
        if not task.done():
            task.cancel()
        await service.close()
    return 1 if executor.failure is not None else 0


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    """Run uvicorn with the app factory."""
    import uvicorn

    from deepthink.api.app import create_app

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        log_config=None,
    )
    return 0


async def _cmd_chain(args: argparse.Namespace, settings: Settings) -> int:
    """Print a persisted reasoning chain as JSON."""
    from deepthink.memory.memory_factory import create_memory_store

    store = create_memory_store(settings)
    try:
        record = await store.get_reasoning_chain(args.trace_id)
    finally:
        await store.close()
    if record is None:
        logger.error("No reasoning chain for trace id %s", args.trace_id)
        return 1
    print(json.dumps(record, indent=2, default=str))
    return 0


def _print_event(event: PipelineEvent) -> None:
    """Print a human-readable line per pipeline event."""
    data = event.data
    kind = data.get("type")
    if kind == "orchestration_plan":
        print(f"Plan: {data['totalSteps']} stages, budget {data['tokenBudget']} (trace {data['trace_id']})")
    elif kind == "step_start":
        print(f"[{data['step']}] {data['agent']}: {data['detail']} (budget {data['budget']})")
    elif kind == "step_complete":
        metrics = data["metrics"]
        print(
            f"[{data['step']}] done in {data['duration']}ms, "
            f"confidence {metrics['confidence']:.2f}, {data['tokensTotal']} tokens so far"
        )
    elif kind == "final":
        verification = data["verification"]
        print(
            f"\nDecision: {data['decision']} "
            f"(confidence {verification['confidence']:.2f}, "
            f"provenance {verification['provenance_coverage']:.2f}, "
            f"entropy {verification['semantic_entropy']:.2f})\n"
        )
        print(data["answer"])
    elif kind == "error":
        print(f"Error ({data.get('code')}): {data['message']}", file=sys.stderr)


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage (stderr, events own stdout)."""
    from deepthink.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text",
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())

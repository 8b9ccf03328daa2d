# src/main.py — v1
"""CLI entry point: sync and fingerprint commands.

Usage:
    boardsync sync --board <boardId> --source <file> [--execute]
                   [--transport rest|stdio] [--stdio-cmd node]
                   [--stdio-args "./server.js --token TOKEN"]
    boardsync fingerprint <file>

Preview is the default: every read and compute step runs, nothing is written
until --execute is passed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from boardsync.version import __version__

if TYPE_CHECKING:
    from boardsync.config.settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="boardsync",
        description=f"boardsync v{__version__} — reconcile insights and risks onto a board",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- sync ---
    p_sync = subparsers.add_parser(
        "sync", help="Extract bullets from a source and reconcile them onto a board",
    )
    p_sync.add_argument(
        "--board", default=None,
        help="Board id (default: MIRO_BOARD_ID)",
    )
    p_sync.add_argument(
        "--source", "--transcript", dest="source", type=Path, default=None,
        help="Path to the source transcript",
    )
    p_sync.add_argument(
        "--execute", action="store_true",
        help="Write to the board (default is preview only)",
    )
    p_sync.add_argument(
        "--transport", choices=["rest", "stdio"], default=None,
        help="Board transport (default: BOARD_TRANSPORT or rest)",
    )
    p_sync.add_argument(
        "--model", default=None,
        help="Extraction model (default: LLM_MODEL)",
    )
    p_sync.add_argument(
        "--stdio-cmd", default=None,
        help="Tool server command (default: node)",
    )
    p_sync.add_argument(
        "--stdio-args", default=None,
        help='Tool server arguments, e.g. "./server.js --token TOKEN"',
    )
    p_sync.add_argument(
        "--discover-tools", action="store_true",
        help="Ask the tool server for its catalog instead of assuming it",
    )
    p_sync.set_defaults(func=_cmd_sync)

    # --- fingerprint ---
    p_fp = subparsers.add_parser(
        "fingerprint", help="Print the run id a source file would be tagged with",
    )
    p_fp.add_argument("file", type=Path, help="Path to the source transcript")
    p_fp.set_defaults(func=_cmd_fingerprint)

    return parser


async def _cmd_sync(args: argparse.Namespace) -> int:
    """Execute one reconciliation run."""
    from boardsync.config.settings import build_run_config, load_settings
    from boardsync.extraction.claude_extractor import ClaudeExtractor
    from boardsync.llm.adapters.anthropic_adapter import AnthropicAdapter
    from boardsync.pipeline.orchestrator import ReconcileOrchestrator, load_source
    from boardsync.transport.transport_factory import create_transport

    overrides: dict[str, object] = {}
    if args.stdio_cmd:
        overrides["stdio_command"] = args.stdio_cmd
    if args.stdio_args:
        overrides["stdio_args"] = args.stdio_args
    if args.discover_tools:
        overrides["stdio_discover_tools"] = True

    settings = load_settings(**overrides)
    _setup_logging(settings, args.verbose)

    config = build_run_config(
        settings,
        board_id=args.board,
        source_path=args.source,
        execute=args.execute,
        transport=args.transport,
        model=args.model,
    )
    source_text = load_source(config.source_path)

    extractor = ClaudeExtractor(
        AnthropicAdapter(model=config.model, api_key=settings.anthropic_api_key),
        max_items=settings.extraction_max_items,
        max_tokens=settings.llm_max_tokens,
    )

    async with create_transport(config) as transport:
        orchestrator = ReconcileOrchestrator(config, transport, extractor)
        report = await orchestrator.run(source_text)

    print(report.model_dump_json(indent=2, exclude_none=True))
    return 0


async def _cmd_fingerprint(args: argparse.Namespace) -> int:
    """Print the run id for a source file."""
    from boardsync.core.fingerprint import compute_run_id
    from boardsync.pipeline.orchestrator import load_source

    file_path: Path = args.file
    if not file_path.exists():
        logger.error("File not found: %s", file_path)
        return 1

    print(compute_run_id(load_source(file_path)))
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from boardsync.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())

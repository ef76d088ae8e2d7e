"""CLI entry point for flowbench.

    flowbench qps         run the QPS benchmark (one payload per request)
    flowbench throughput  run the bulk throughput benchmark
    flowbench report      render the report from a saved snapshot JSON

Exit codes: 0 ok, 1 error, 99 thresholds failed, 130 interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import gc
import sys
from pathlib import Path
from typing import Any, Coroutine

# uvloop is optional: faster event loop when installed
_HAS_UVLOOP = False
try:
    import uvloop
    _HAS_UVLOOP = True
except ImportError:
    pass

from . import __version__
from .config import ENV_API_KEY, ENV_API_URL, resolve_run_config
from .exceptions import FlowbenchError
from .logging_config import configure_logging, get_logger
from .models import RunConfig, TestVariant, get_variant
from .report import write_report_artifacts
from .runner import run_benchmark
from .snapshot import load_snapshot
from .thresholds import evaluate_thresholds

logger = get_logger("cli")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_THRESHOLDS_FAILED = 99
EXIT_INTERRUPTED = 130


def _run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Run coroutine on uvloop when available. GC is paused during the run for steadier latency."""
    gc_was_enabled = gc.isenabled()
    gc.disable()
    try:
        if _HAS_UVLOOP:
            return uvloop.run(coro)
        return asyncio.run(coro)
    finally:
        if gc_was_enabled:
            gc.enable()
        gc.collect()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flowbench",
        description="QPS and bulk throughput benchmarks for rule-engine flow endpoints. "
        f"Target and credentials come from {ENV_API_URL} / {ENV_API_KEY} (or -f config).",
    )
    parser.add_argument("-v", "--version", action="version", version=f"flowbench {__version__}")
    parser.add_argument(
        "--log-level",
        default=None,
        help="DEBUG, INFO, WARNING or ERROR (default: $FLOWBENCH_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Log line format on stderr (default: $FLOWBENCH_LOG_FORMAT or text)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-f",
            "--config",
            default=None,
            help="Optional YAML config (api_url, api_key, test_duration, target_rps, bulk_size, warmup_duration). "
            "Environment variables take precedence.",
        )
        p.add_argument(
            "-o",
            "--output-dir",
            default=".",
            dest="output_dir",
            help="Directory for <variant>-report.html and <variant>-results.json (default: current directory)",
        )

    for variant in TestVariant:
        descriptor = get_variant(variant)
        p = sub.add_parser(variant.value, help=descriptor.description)
        add_common(p)
        p.add_argument("--no-live", action="store_true", help="Disable live Rich dashboard (headless mode)")

    report = sub.add_parser("report", help="Render report artifacts from a saved snapshot JSON")
    report.add_argument("snapshot", help="Path to a snapshot JSON (e.g. qps-results.json)")
    report.add_argument(
        "--variant",
        choices=[v.value for v in TestVariant],
        required=True,
        help="Which report layout and status thresholds to use",
    )
    add_common(report)
    return parser


def _handle_error(e: BaseException) -> int:
    if isinstance(e, FlowbenchError):
        logger.debug("Run aborted: %s", e, extra=e.log_fields())
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_ERROR
    if isinstance(e, (FileNotFoundError, ValueError)):
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    logger.exception("Unexpected error")
    print("Error: An unexpected error occurred. Check logs for details.", file=sys.stderr)
    return EXIT_ERROR


def _report_only(args: argparse.Namespace) -> int:
    snapshot = load_snapshot(args.snapshot)
    descriptor = get_variant(args.variant)
    config = resolve_run_config(descriptor, config_path=args.config, require_credentials=False)
    sys.stdout.write(write_report_artifacts(args.output_dir, snapshot, config, descriptor))
    violations = evaluate_thresholds(snapshot, descriptor)
    for v in violations:
        print(f"Threshold failed: {v}", file=sys.stderr)
    return EXIT_THRESHOLDS_FAILED if violations else EXIT_OK


def _run(args: argparse.Namespace) -> int:
    descriptor = get_variant(args.command)
    config: RunConfig = resolve_run_config(descriptor, config_path=args.config)
    result = _run_async(
        run_benchmark(
            config,
            descriptor,
            output_dir=Path(args.output_dir),
            live=not args.no_live,
        )
    )
    sys.stdout.write(result.console_summary)
    for v in result.threshold_violations:
        print(f"Threshold failed: {v}", file=sys.stderr)
    return EXIT_OK if result.passed else EXIT_THRESHOLDS_FAILED


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.log_level or args.log_format:
        configure_logging(level=args.log_level, fmt=args.log_format, force=True)
    try:
        if args.command == "report":
            return _report_only(args)
        return _run(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except Exception as e:
        return _handle_error(e)


if __name__ == "__main__":
    sys.exit(main())

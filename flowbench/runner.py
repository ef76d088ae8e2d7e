"""Benchmark runner: warm-up, measurement, snapshot, thresholds, report artifacts."""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import orjson
from rich.console import Console
from rich.live import Live

from .config import create_request_headers
from .dashboard import create_live_panel, streaming_line
from .engine import create_client, execute_request
from .logging_config import get_logger
from .metrics import MetricsCollector
from .models import RequestResult, RunConfig, TestVariant, VariantDescriptor, get_variant
from .payload import generate_bulk_payload, generate_payload
from .report import Clock, mask_url, write_report_artifacts
from .scenarios import ArrivalRateScenario, IterationFn, build_scenarios, run_arrival_rate
from .thresholds import annotate_thresholds, evaluate_thresholds

logger = get_logger("runner")

LIVE_REFRESH_PER_SEC = 2
LIVE_POLL_SEC = 0.5
# When stdout is not a TTY (e.g. Docker without -it), interval for streamed progress lines
STREAMING_FALLBACK_INTERVAL_SEC = 5.0

CHECK_STATUS_200 = "status is 200"
CHECK_VALID_RESPONSE = "valid response"
CHECK_NO_ERROR = "no error in response"


@dataclass(slots=True)
class BenchmarkResult:
    snapshot: dict[str, Any]
    console_summary: str
    threshold_violations: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.threshold_violations


def _no_error_in_body(body: bytes) -> bool:
    try:
        parsed = orjson.loads(body)
    except orjson.JSONDecodeError:
        return False
    # null has no fields to read; arrays and scalars simply lack "error"
    if parsed is None:
        return False
    return not (isinstance(parsed, dict) and parsed.get("error"))


def run_checks(result: RequestResult, descriptor: VariantDescriptor) -> dict[str, bool]:
    """Response checks for one request. Bulk requests must also return JSON without an error."""
    checks = {
        CHECK_STATUS_200: result.status_code == 200,
        CHECK_VALID_RESPONSE: len(result.body) > 0,
    }
    if descriptor.show_bulk_metrics:
        checks[CHECK_NO_ERROR] = _no_error_in_body(result.body)
    return checks


def build_iteration(
    client: httpx.AsyncClient,
    config: RunConfig,
    descriptor: VariantDescriptor,
    collector: MetricsCollector | None,
) -> IterationFn:
    """One iteration = one POST. Without a collector (warm-up) the outcome is discarded."""
    headers = create_request_headers(config.api_key)
    bulk = descriptor.show_bulk_metrics

    async def iteration(vu: int, vu_iteration: int) -> None:
        if bulk:
            body: Any = generate_bulk_payload(config.bulk_size, vu=vu, iteration=vu_iteration)
        else:
            body = generate_payload(vu=vu, iteration=vu_iteration)
        result = await execute_request(client, config.api_url, orjson.dumps(body), headers)
        if collector is None:
            return
        collector.record_request(result)
        if not result.success:
            logger.debug("Request failed: %s", result.error)
        # A transport failure has no status or body, so every check fails
        checks = run_checks(result, descriptor)
        collector.record_checks(checks)
        ok = all(checks.values())
        collector.record_outcome(ok, config.bulk_size if bulk else 0)

    return iteration


def _stdout_is_tty() -> bool:
    """True if stdout is a TTY (interactive terminal). False in Docker without -it, CI, pipes."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


async def _watch_phase(
    phase_task: asyncio.Task,
    collector: MetricsCollector,
    scenario: ArrivalRateScenario,
) -> None:
    start = collector.start_time
    if _stdout_is_tty():
        with Live(
            create_live_panel(collector, scenario, start),
            console=Console(),
            refresh_per_second=LIVE_REFRESH_PER_SEC,
        ) as live_ctx:
            while not phase_task.done():
                await asyncio.wait({phase_task}, timeout=LIVE_POLL_SEC)
                live_ctx.update(create_live_panel(collector, scenario, start))
        return
    while not phase_task.done():
        await asyncio.wait({phase_task}, timeout=STREAMING_FALLBACK_INTERVAL_SEC)
        sys.stdout.write(streaming_line(collector, scenario, start))
        sys.stdout.flush()


async def run_benchmark(
    config: RunConfig,
    variant: TestVariant | VariantDescriptor | str,
    output_dir: str | Path = ".",
    live: bool = True,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Clock | None = None,
) -> BenchmarkResult:
    """Run warm-up and measurement phases, then write the report artifacts.

    Only the measurement phase is recorded; its wall-clock duration becomes
    state.testRunDurationMs of the snapshot.
    """
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    phases = build_scenarios(config, descriptor)
    logger.info(
        "Starting %s benchmark: url=%s, target_rps=%s, bulk_size=%s, duration=%s, warmup=%s",
        descriptor.variant.value, mask_url(config.api_url), config.target_rps, config.bulk_size,
        config.test_duration, config.warmup_duration,
    )

    collector = MetricsCollector(track_payloads=descriptor.show_bulk_metrics)
    elapsed = 0.0
    async with create_client(timeout=descriptor.request_timeout_seconds, transport=transport) as client:
        for phase in phases:
            if not phase.record:
                await run_arrival_rate(phase, build_iteration(client, config, descriptor, None))
                continue
            collector = MetricsCollector(track_payloads=descriptor.show_bulk_metrics)
            collector.set_vus(0, phase.pre_allocated_vus)
            phase_task = asyncio.create_task(
                run_arrival_rate(
                    phase,
                    build_iteration(client, config, descriptor, collector),
                    on_dropped=collector.record_dropped_iteration,
                    on_vus=collector.set_vus,
                )
            )
            if live:
                await _watch_phase(phase_task, collector, phase)
            elapsed = await phase_task

    snapshot = collector.snapshot(duration_ms=elapsed * 1000)
    annotate_thresholds(snapshot, descriptor)
    violations = evaluate_thresholds(snapshot, descriptor)
    console_summary = await asyncio.to_thread(
        write_report_artifacts, output_dir, snapshot, config, descriptor, clock
    )
    total = snapshot["metrics"]["http_reqs"]["values"]["count"]
    logger.info(
        "Benchmark finished: total_requests=%s, error_rate_pct=%.2f, thresholds=%s",
        total, collector.errors.values()["rate"] * 100, "passed" if not violations else "failed",
    )
    for v in violations:
        logger.warning("Threshold failed: %s", v)
    return BenchmarkResult(snapshot=snapshot, console_summary=console_summary, threshold_violations=violations)

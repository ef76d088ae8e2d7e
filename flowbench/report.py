"""Benchmark report: derived metrics, status colours, HTML (Chart.js) and JSON artifacts.

Everything here degrades instead of failing: absent snapshot values become 0,
unformattable values render as "N/A". A report is produced for any run,
including one with zero requests.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlparse, urlunparse

import orjson
from jinja2 import Environment, PackageLoader, select_autoescape

from . import __version__ as flowbench_version
from .exceptions import FlowbenchReportError
from .logging_config import get_logger
from .models import (
    DerivedMetrics,
    RunConfig,
    StatusColor,
    TestVariant,
    VariantDescriptor,
    get_variant,
)
from .snapshot import MetricsSnapshot

logger = get_logger("report")

CHARTJS_CDN_URL = "https://cdn.jsdelivr.net/npm/chart.js"
NOT_AVAILABLE = "N/A"
BYTE_UNITS = ("B", "KB", "MB", "GB")
TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S UTC"

# Success rate status thresholds (%), higher is better
SUCCESS_GOOD_PCT = 99
SUCCESS_WARNING_PCT = 95

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Formatting ---


def _finite(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def format_number(value: Any, decimals: int = 2) -> str:
    """Fixed-point with `decimals` places; "N/A" for None, NaN or non-numeric input."""
    v = _finite(value)
    if v is None:
        return NOT_AVAILABLE
    return f"{v:.{decimals}f}"


def format_bytes(value: Any) -> str:
    """Human-readable binary size: 1536 -> "1.50 KB". Zero is "0 B"."""
    v = _finite(value)
    if v is None:
        return NOT_AVAILABLE
    if v == 0:
        return "0 B"
    i = int(math.floor(math.log(abs(v), 1024)))
    i = min(max(i, 0), len(BYTE_UNITS) - 1)
    return f"{format_number(v / 1024 ** i, 2)} {BYTE_UNITS[i]}"


def format_duration(ms: Any) -> str:
    """Scale-adaptive duration: ms below 1s, s below 60s, else minutes."""
    v = _finite(ms)
    if v is None:
        return NOT_AVAILABLE
    if v < 1000:
        return f"{format_number(v, 2)} ms"
    if v < 60000:
        return f"{format_number(v / 1000, 2)} s"
    return f"{format_number(v / 60000, 2)} min"


def format_count(value: Any) -> str:
    """Thousands separators: 120000 -> "120,000"; fractions keep up to 3 places."""
    v = _finite(value)
    if v is None:
        return NOT_AVAILABLE
    if float(v).is_integer():
        return f"{int(v):,}"
    return f"{v:,.3f}".rstrip("0").rstrip(".")


def mask_url(url: str, max_path_length: int = 120) -> str:
    """Remove query string and fragment from URL to avoid leaking tokens in reports."""
    if not url or not url.strip():
        return url
    try:
        parsed = urlparse(url)
        clean = urlunparse((parsed.scheme, parsed.netloc, parsed.path or "", "", "", ""))
    except ValueError:
        clean = url
    if len(clean) > max_path_length:
        clean = clean[: max_path_length - 3] + "..."
    return clean


# --- Derivation ---


def classify(
    value: float,
    good_threshold: float,
    warning_threshold: float,
    inverse: bool = False,
) -> StatusColor:
    """Three-level status. Thresholds are inclusive; inverse means lower is better."""
    if inverse:
        if value <= good_threshold:
            return StatusColor.GOOD
        if value <= warning_threshold:
            return StatusColor.WARNING
        return StatusColor.CRITICAL
    if value >= good_threshold:
        return StatusColor.GOOD
    if value >= warning_threshold:
        return StatusColor.WARNING
    return StatusColor.CRITICAL


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0


def compute_derived(
    snapshot: MetricsSnapshot | Mapping[str, Any] | None,
    config: RunConfig,
    variant: TestVariant | VariantDescriptor | str,
) -> DerivedMetrics:
    """Derive report metrics from a raw snapshot. Pure; never raises on missing data."""
    snap = snapshot if isinstance(snapshot, MetricsSnapshot) else MetricsSnapshot(snapshot)
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)

    total_requests = snap.value("http_reqs", "count")
    test_duration = snap.test_run_duration_ms / 1000
    actual_rps = _ratio(total_requests, test_duration)
    rps_efficiency = _ratio(actual_rps, config.target_rps) * 100

    success_rate = snap.value("successes", "rate") * 100
    error_rate = snap.value("errors", "rate") * 100
    # Counters count as present even at 0; the driver omits counters that never fired
    dropped = snap.metric_value("dropped_requests", "count")
    failed_requests = dropped if dropped is not None else _round_half_up(total_requests * error_rate / 100)

    data_sent = snap.value("data_sent", "count")
    data_received = snap.value("data_received", "count")

    max_vus = snap.metric_value("vus_max", "max")
    if max_vus is None:
        max_vus = snap.value("vus", "max")

    bulk: dict[str, float | None] = {}
    if descriptor.show_bulk_metrics:
        payload_count = snap.metric_value("total_payloads", "count")
        total_payloads = payload_count if payload_count is not None else total_requests * config.bulk_size
        failed_payloads = snap.value("failed_payloads", "count")
        bulk = {
            "actual_throughput": actual_rps * config.bulk_size,
            "total_payloads": total_payloads,
            "successful_payloads": total_payloads - failed_payloads,
            "failed_payloads": failed_payloads,
        }

    return DerivedMetrics(
        total_requests=total_requests,
        test_duration_seconds=test_duration,
        actual_rps=actual_rps,
        rps_efficiency=rps_efficiency,
        success_rate=success_rate,
        error_rate=error_rate,
        failed_requests=failed_requests,
        p50=snap.value("http_req_duration", "med"),
        p90=snap.value("http_req_duration", "p(90)"),
        p95=snap.value("http_req_duration", "p(95)"),
        p99=snap.value("http_req_duration", "p(99)"),
        avg_latency=snap.value("http_req_duration", "avg"),
        min_latency=snap.value("http_req_duration", "min"),
        max_latency=snap.value("http_req_duration", "max"),
        avg_connecting=snap.value("http_req_connecting", "avg"),
        avg_tls_handshake=snap.value("http_req_tls_handshaking", "avg"),
        avg_waiting=snap.value("http_req_waiting", "avg"),
        avg_receiving=snap.value("http_req_receiving", "avg"),
        avg_sending=snap.value("http_req_sending", "avg"),
        data_received=data_received,
        data_sent=data_sent,
        avg_request_size=_ratio(data_sent, total_requests),
        avg_response_size=_ratio(data_received, total_requests),
        max_vus=max_vus,
        **bulk,
    )


def status_colors(metrics: DerivedMetrics, descriptor: VariantDescriptor) -> dict[str, StatusColor]:
    """Success rate and P95 status for the overview cards."""
    return {
        "success": classify(metrics.success_rate, SUCCESS_GOOD_PCT, SUCCESS_WARNING_PCT),
        "p95": classify(metrics.p95, descriptor.p95_good_ms, descriptor.p95_warning_ms, inverse=True),
    }


# --- Rendering ---


def _template_env() -> Environment:
    return Environment(
        loader=PackageLoader("flowbench", "templates"),
        autoescape=select_autoescape(["html", "xml"]),
        keep_trailing_newline=True,
    )


def _config_echo(config: RunConfig, descriptor: VariantDescriptor, metrics: DerivedMetrics) -> list[tuple[str, str]]:
    items = [
        ("API URL", mask_url(config.api_url)),
        ("Test Duration", config.test_duration),
        ("Target RPS", str(config.target_rps)),
    ]
    if descriptor.show_bulk_metrics:
        items.append(("Bulk Size", f"{config.bulk_size} payloads"))
    items.append(("Peak Virtual Users", format_count(metrics.max_vus)))
    return items


def render_report(
    snapshot: MetricsSnapshot | Mapping[str, Any] | None,
    config: RunConfig,
    variant: TestVariant | VariantDescriptor | str,
    clock: Clock | None = None,
) -> str:
    """Render the standalone HTML report.

    Output depends only on the inputs and on the single clock read for the
    header timestamp; pass a fixed clock for reproducible output.
    """
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    m = compute_derived(snapshot, config, descriptor)
    colors = status_colors(m, descriptor)
    generated_at = (clock or _utc_now)()

    latency_chart = [m.min_latency, m.p50, m.p90, m.p95, m.p99, m.max_latency]
    timing_chart = [m.avg_connecting, m.avg_tls_handshake, m.avg_sending, m.avg_waiting, m.avg_receiving]

    latency_rows = [
        ("Minimum", m.min_latency),
        ("Average", m.avg_latency),
        ("Median (P50)", m.p50),
        ("P90", m.p90),
        ("P95", m.p95),
        ("P99", m.p99),
        ("Maximum", m.max_latency),
    ]
    transfer_rows = [
        ("Data Sent", format_bytes(m.data_sent)),
        ("Data Received", format_bytes(m.data_received)),
        ("Avg Request Size", format_bytes(m.avg_request_size)),
        ("Avg Response Size", format_bytes(m.avg_response_size)),
        ("Avg Connecting", f"{format_number(m.avg_connecting, 2)} ms"),
        ("Avg TLS Handshake", f"{format_number(m.avg_tls_handshake, 2)} ms"),
        ("Avg Waiting (TTFB)", f"{format_number(m.avg_waiting, 2)} ms"),
    ]

    template = _template_env().get_template("report.html")
    html = template.render(
        title=descriptor.title,
        test_type=descriptor.test_type,
        description=descriptor.description,
        generated_at=generated_at.strftime(TIMESTAMP_FMT),
        chartjs_url=CHARTJS_CDN_URL,
        show_bulk_metrics=descriptor.show_bulk_metrics,
        success_color=colors["success"].hex,
        success_status=colors["success"].value,
        p95_color=colors["p95"].hex,
        p95_status=colors["p95"].value,
        total_requests=format_count(m.total_requests),
        test_duration=format_duration(m.test_duration_seconds * 1000),
        success_rate=format_number(m.success_rate, 1),
        failed_requests=format_count(m.failed_requests),
        actual_rps=format_number(m.actual_rps, 1),
        rps_efficiency=format_number(m.rps_efficiency, 0),
        target_rps=config.target_rps,
        p95=format_number(m.p95, 0),
        p99=format_number(m.p99, 0),
        actual_throughput=format_number(m.actual_throughput, 0),
        bulk_size=config.bulk_size,
        total_payloads=format_count(m.total_payloads),
        successful_payloads=format_count(m.successful_payloads),
        max_vus=format_count(m.max_vus),
        latency_chart_values=[format_number(v, 2) for v in latency_chart],
        timing_chart_values=[format_number(v, 2) for v in timing_chart],
        latency_rows=[(label, f"{format_number(v, 2)} ms") for label, v in latency_rows],
        transfer_rows=transfer_rows,
        config_items=_config_echo(config, descriptor, m),
        flowbench_version=flowbench_version,
    )
    logger.debug("Rendered %s report (%d bytes)", descriptor.variant.value, len(html))
    return html


# --- Console / machine summary ---


def generate_console_summary(variant: TestVariant | VariantDescriptor | str) -> str:
    """One-line confirmation naming the HTML artifact."""
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    return f"\nResults saved to {descriptor.report_filename}\n"


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return dict(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def generate_json_dump(snapshot: MetricsSnapshot | Mapping[str, Any] | None) -> bytes:
    """Pretty-printed (2-space) JSON of the raw snapshot, unmodified."""
    raw = snapshot.raw if isinstance(snapshot, MetricsSnapshot) else (snapshot or {})
    return orjson.dumps(dict(raw), option=orjson.OPT_INDENT_2, default=_json_default)


def write_report_artifacts(
    output_dir: str | Path,
    snapshot: MetricsSnapshot | Mapping[str, Any] | None,
    config: RunConfig,
    variant: TestVariant | VariantDescriptor | str,
    clock: Clock | None = None,
) -> str:
    """Write <variant>-report.html and <variant>-results.json; return the console line.

    Raises:
        FlowbenchReportError: If the output directory or files cannot be written
    """
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    out_dir = Path(output_dir)
    html = render_report(snapshot, config, descriptor, clock=clock)
    html_path = out_dir / descriptor.report_filename
    json_path = out_dir / descriptor.results_filename
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        html_path.write_text(html, encoding="utf-8")
        json_path.write_bytes(generate_json_dump(snapshot))
    except OSError as e:
        raise FlowbenchReportError(
            f"Cannot write report artifacts: {e}",
            context={"output_dir": str(out_dir)},
            original_error=e,
        ) from e
    logger.info("Report written: html=%s json=%s", html_path, json_path)
    return generate_console_summary(descriptor)

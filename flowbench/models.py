"""Data models for flowbench.

- TestVariant / VariantDescriptor: the two benchmark flavours (QPS, throughput)
  described by one config struct so report, driver and thresholds share a code path
- RunConfig: resolved once at startup, never mutated
- DerivedMetrics: computed from a metrics snapshot at report time
- RequestResult: __slots__ record on the request hot path
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class TestVariant(str, Enum):
    """Benchmark flavour."""

    __test__ = False  # not a pytest class

    QPS = "qps"  # one payload per request
    THROUGHPUT = "throughput"  # bulk payloads per request


class StatusColor(str, Enum):
    """Three-level status used to colour report cards."""

    GOOD = "good"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def hex(self) -> str:
        return _STATUS_HEX[self]


_STATUS_HEX = {
    StatusColor.GOOD: "#4ade80",
    StatusColor.WARNING: "#fbbf24",
    StatusColor.CRITICAL: "#f87171",
}


@dataclass(frozen=True, slots=True)
class Threshold:
    """Pass/fail criterion on one snapshot value: metric.values[field] < limit."""

    metric: str
    field: str
    limit: float

    @property
    def expression(self) -> str:
        return f"{self.metric}: {self.field}<{self.limit:g}"


@dataclass(frozen=True, slots=True)
class VariantDescriptor:
    """Everything that differs between the QPS and throughput benchmarks."""

    variant: TestVariant
    title: str
    test_type: str
    description: str
    # Inverse P95 status thresholds (ms), empirically tuned per variant
    p95_good_ms: float
    p95_warning_ms: float
    show_bulk_metrics: bool
    report_filename: str
    results_filename: str
    default_target_rps: int
    default_bulk_size: int
    request_timeout_seconds: float
    pre_allocated_vus_cap: int
    max_vus_multiplier: int
    max_vus_cap: int
    thresholds: tuple[Threshold, ...]

    def pre_allocated_vus(self, target_rps: int) -> int:
        return max(1, min(target_rps, self.pre_allocated_vus_cap))

    def max_vus(self, target_rps: int) -> int:
        return max(self.pre_allocated_vus(target_rps), min(target_rps * self.max_vus_multiplier, self.max_vus_cap))


QPS_VARIANT = VariantDescriptor(
    variant=TestVariant.QPS,
    title="QPS Benchmark Report",
    test_type="QPS (Requests/Second)",
    description="Measures API responsiveness with individual payload requests",
    p95_good_ms=200,
    p95_warning_ms=500,
    show_bulk_metrics=False,
    report_filename="qps-report.html",
    results_filename="qps-results.json",
    default_target_rps=500,
    default_bulk_size=1,
    request_timeout_seconds=10.0,
    pre_allocated_vus_cap=200,
    max_vus_multiplier=2,
    max_vus_cap=1000,
    thresholds=(
        Threshold("http_req_duration", "p(95)", 500),
        Threshold("http_req_duration", "p(99)", 1000),
        Threshold("errors", "rate", 0.05),
    ),
)

THROUGHPUT_VARIANT = VariantDescriptor(
    variant=TestVariant.THROUGHPUT,
    title="Throughput Benchmark Report",
    test_type="Throughput (Solutions/Second)",
    description="Measures rule engine capacity with bulk payload requests",
    p95_good_ms=500,
    p95_warning_ms=1000,
    show_bulk_metrics=True,
    report_filename="throughput-report.html",
    results_filename="throughput-results.json",
    default_target_rps=100,
    default_bulk_size=50,
    request_timeout_seconds=30.0,
    pre_allocated_vus_cap=100,
    max_vus_multiplier=3,
    max_vus_cap=500,
    thresholds=(
        Threshold("http_req_duration", "p(95)", 2000),
        Threshold("http_req_duration", "p(99)", 5000),
        Threshold("errors", "rate", 0.05),
    ),
)

VARIANTS: dict[TestVariant, VariantDescriptor] = {
    TestVariant.QPS: QPS_VARIANT,
    TestVariant.THROUGHPUT: THROUGHPUT_VARIANT,
}


def get_variant(variant: TestVariant | str) -> VariantDescriptor:
    """Descriptor for a variant name or enum member. Raises ValueError for unknown names."""
    return VARIANTS[TestVariant(variant)]


@dataclass(frozen=True, slots=True)
class RunConfig:
    """Run configuration resolved from environment (and optional YAML).

    The API key is carried for requests only; it is never rendered in reports.
    """

    api_url: str
    api_key: str
    test_duration: str = "4m"
    target_rps: int = 500
    bulk_size: int = 1
    warmup_duration: str = "1m"


@dataclass(frozen=True, slots=True)
class DerivedMetrics:
    """Secondary statistics computed from one metrics snapshot.

    Payload fields and actual_throughput are None for the QPS variant.
    Latency and phase timings are milliseconds; data sizes are bytes.
    """

    total_requests: float
    test_duration_seconds: float
    actual_rps: float
    rps_efficiency: float
    success_rate: float
    error_rate: float
    failed_requests: float
    p50: float
    p90: float
    p95: float
    p99: float
    avg_latency: float
    min_latency: float
    max_latency: float
    avg_connecting: float
    avg_tls_handshake: float
    avg_waiting: float
    avg_receiving: float
    avg_sending: float
    data_received: float
    data_sent: float
    avg_request_size: float
    avg_response_size: float
    max_vus: float
    actual_throughput: float | None = None
    total_payloads: float | None = None
    successful_payloads: float | None = None
    failed_payloads: float | None = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class RequestResult:
    """Result of one request execution, including connection-phase timings.

    Uses __slots__: one instance per request on the hot path.
    """

    __slots__ = (
        "status_code", "duration_ms", "success", "error", "body",
        "connecting_ms", "tls_handshaking_ms", "sending_ms", "waiting_ms", "receiving_ms",
        "bytes_sent", "bytes_received",
    )

    def __init__(
        self,
        status_code: int | None,
        duration_ms: float,
        success: bool,
        error: str | None = None,
        body: bytes = b"",
        connecting_ms: float = 0.0,
        tls_handshaking_ms: float = 0.0,
        sending_ms: float = 0.0,
        waiting_ms: float = 0.0,
        receiving_ms: float = 0.0,
        bytes_sent: int = 0,
        bytes_received: int = 0,
    ) -> None:
        self.status_code = status_code
        self.duration_ms = duration_ms
        self.success = success
        self.error = error
        self.body = body
        self.connecting_ms = connecting_ms
        self.tls_handshaking_ms = tls_handshaking_ms
        self.sending_ms = sending_ms
        self.waiting_ms = waiting_ms
        self.receiving_ms = receiving_ms
        self.bytes_sent = bytes_sent
        self.bytes_received = bytes_received

    def __repr__(self) -> str:
        return (
            f"RequestResult(status={self.status_code}, "
            f"time_ms={self.duration_ms:.2f}, success={self.success})"
        )

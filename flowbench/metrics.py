"""Streaming metric collection producing a k6-style summary snapshot.

Bounded memory: counters, rates and trends are updated in place; no per-request
results are kept. T-Digest for streaming percentiles of http_req_duration.

Snapshot shape::

    {"metrics": {<name>: {"type": ..., "contains": ..., "values": {...}}},
     "root_group": {"name": "", "path": "", "groups": [], "checks": [...]},
     "state": {"testRunDurationMs": ...}}
"""

from __future__ import annotations

import time
from typing import Any

from tdigest import TDigest

from .logging_config import get_logger
from .models import RequestResult

logger = get_logger("metrics")

# Cache TTL for live dashboard snapshots (seconds)
DEFAULT_CACHE_TTL_SEC = 0.5
TREND_PERCENTILES = (("med", 50), ("p(90)", 90), ("p(95)", 95), ("p(99)", 99))

# Phase timing trends: only averages are reported, skip the digest
PHASE_TRENDS = (
    ("http_req_connecting", "connecting_ms"),
    ("http_req_tls_handshaking", "tls_handshaking_ms"),
    ("http_req_sending", "sending_ms"),
    ("http_req_waiting", "waiting_ms"),
    ("http_req_receiving", "receiving_ms"),
)


def _percentile_from_digest(digest: TDigest, p: float) -> float:
    """Get percentile from T-Digest. Returns 0.0 if empty."""
    try:
        return digest.percentile(p) or 0.0
    except (ValueError, IndexError):
        return 0.0


class Trend:
    """avg/min/max (+ median and p90/p95/p99 when with_percentiles)."""

    __slots__ = ("_digest", "count", "_sum", "_min", "_max")

    def __init__(self, with_percentiles: bool = True) -> None:
        self._digest: TDigest | None = TDigest() if with_percentiles else None
        self.count = 0
        self._sum = 0.0
        self._min = 0.0
        self._max = 0.0

    def add(self, value: float) -> None:
        if self.count == 0:
            self._min = self._max = value
        else:
            if value < self._min:
                self._min = value
            if value > self._max:
                self._max = value
        self.count += 1
        self._sum += value
        if self._digest is not None:
            self._digest.update(value)

    def values(self) -> dict[str, float]:
        out = {
            "avg": self._sum / self.count if self.count else 0.0,
            "min": self._min,
            "max": self._max,
        }
        if self._digest is not None:
            for key, p in TREND_PERCENTILES:
                out[key] = _percentile_from_digest(self._digest, p) if self.count else 0.0
        return out


class Counter:
    __slots__ = ("count",)

    def __init__(self) -> None:
        self.count: float = 0

    def add(self, value: float = 1) -> None:
        self.count += value

    def values(self, duration_seconds: float) -> dict[str, float]:
        return {
            "count": self.count,
            "rate": self.count / duration_seconds if duration_seconds > 0 else 0.0,
        }


class Rate:
    """Fraction of non-zero samples."""

    __slots__ = ("passes", "fails")

    def __init__(self) -> None:
        self.passes = 0
        self.fails = 0

    def add(self, value: bool) -> None:
        if value:
            self.passes += 1
        else:
            self.fails += 1

    def values(self) -> dict[str, float]:
        total = self.passes + self.fails
        return {
            "rate": self.passes / total if total else 0.0,
            "passes": self.passes,
            "fails": self.fails,
        }


class Gauge:
    __slots__ = ("value", "_min", "_max", "_seen")

    def __init__(self) -> None:
        self.value = 0
        self._min = 0
        self._max = 0
        self._seen = False

    def set(self, value: int) -> None:
        self.value = value
        if not self._seen:
            self._min = self._max = value
            self._seen = True
        else:
            self._min = min(self._min, value)
            self._max = max(self._max, value)

    def values(self) -> dict[str, float]:
        return {"value": self.value, "min": self._min, "max": self._max}


class MetricsCollector:
    """Collects one measurement phase. Built-in http metrics plus the benchmark's custom ones.

    Custom metrics mirror the benchmark scripts: errors / successes rates,
    dropped_requests counter and, when track_payloads is set, total_payloads /
    failed_payloads counters.
    """

    def __init__(self, track_payloads: bool = False) -> None:
        self.track_payloads = track_payloads
        self.http_reqs = Counter()
        self.http_req_duration = Trend()
        self.http_req_failed = Rate()
        self.phase_trends: dict[str, Trend] = {name: Trend(with_percentiles=False) for name, _ in PHASE_TRENDS}
        self.data_sent = Counter()
        self.data_received = Counter()
        self.iterations = Counter()
        self.dropped_iterations = Counter()
        self.checks = Rate()
        self.check_counts: dict[str, Rate] = {}
        self.errors = Rate()
        self.successes = Rate()
        self.dropped_requests = Counter()
        self.total_payloads = Counter()
        self.failed_payloads = Counter()
        self.vus = Gauge()
        self.vus_max = Gauge()
        self._start_time = time.perf_counter()
        self._cache: dict[str, Any] | None = None
        self._cache_time = 0.0

    @property
    def start_time(self) -> float:
        return self._start_time

    def record_request(self, result: RequestResult) -> None:
        """Built-in HTTP metrics for one request (success or transport failure)."""
        self.http_reqs.add()
        self.http_req_duration.add(result.duration_ms)
        status = result.status_code
        self.http_req_failed.add(status is None or not 200 <= status < 400)
        for name, attr in PHASE_TRENDS:
            self.phase_trends[name].add(getattr(result, attr))
        self.data_sent.add(result.bytes_sent)
        self.data_received.add(result.bytes_received)
        self._cache = None

    def record_checks(self, checks: dict[str, bool]) -> None:
        for name, ok in checks.items():
            self.checks.add(ok)
            self.check_counts.setdefault(name, Rate()).add(ok)

    def record_outcome(self, success: bool, bulk_size: int = 0) -> None:
        """Custom benchmark metrics for one finished iteration."""
        self.iterations.add()
        self.errors.add(not success)
        self.successes.add(success)
        if not success:
            self.dropped_requests.add()
        if self.track_payloads:
            self.total_payloads.add(bulk_size)
            if not success:
                self.failed_payloads.add(bulk_size)
        self._cache = None

    def record_dropped_iteration(self) -> None:
        self.dropped_iterations.add()

    def set_vus(self, active: int, allocated: int) -> None:
        self.vus.set(active)
        self.vus_max.set(allocated)

    def snapshot(self, duration_ms: float | None = None) -> dict[str, Any]:
        """Build the summary mapping. duration_ms defaults to time since collector creation."""
        if duration_ms is None:
            duration_ms = (time.perf_counter() - self._start_time) * 1000
        secs = duration_ms / 1000

        metrics: dict[str, Any] = {
            "http_reqs": _entry("counter", "default", self.http_reqs.values(secs)),
            "http_req_duration": _entry("trend", "time", self.http_req_duration.values()),
            "http_req_failed": _entry("rate", "default", self.http_req_failed.values()),
            "data_sent": _entry("counter", "data", self.data_sent.values(secs)),
            "data_received": _entry("counter", "data", self.data_received.values(secs)),
            "iterations": _entry("counter", "default", self.iterations.values(secs)),
            "checks": _entry("rate", "default", self.checks.values()),
            "errors": _entry("rate", "default", self.errors.values()),
            "successes": _entry("rate", "default", self.successes.values()),
            "vus": _entry("gauge", "default", self.vus.values()),
            "vus_max": _entry("gauge", "default", self.vus_max.values()),
        }
        for name, trend in self.phase_trends.items():
            metrics[name] = _entry("trend", "time", trend.values())
        # Counters that never fired are left out of the summary
        if self.dropped_requests.count:
            metrics["dropped_requests"] = _entry("counter", "default", self.dropped_requests.values(secs))
        if self.dropped_iterations.count:
            metrics["dropped_iterations"] = _entry("counter", "default", self.dropped_iterations.values(secs))
        if self.track_payloads:
            metrics["total_payloads"] = _entry("counter", "default", self.total_payloads.values(secs))
            if self.failed_payloads.count:
                metrics["failed_payloads"] = _entry("counter", "default", self.failed_payloads.values(secs))

        return {
            "metrics": metrics,
            "root_group": {
                "name": "",
                "path": "",
                "groups": [],
                "checks": [
                    {"name": name, "path": f"::{name}", "passes": r.passes, "fails": r.fails}
                    for name, r in self.check_counts.items()
                ],
            },
            "state": {"testRunDurationMs": duration_ms},
        }

    def get_cached_snapshot(self, cache_ttl_sec: float = DEFAULT_CACHE_TTL_SEC) -> dict[str, Any]:
        """Snapshot with short TTL cache for the live dashboard."""
        now = time.perf_counter()
        if self._cache is not None and (now - self._cache_time) <= cache_ttl_sec:
            return self._cache
        self._cache = self.snapshot()
        self._cache_time = now
        return self._cache


def _entry(kind: str, contains: str, values: dict[str, float]) -> dict[str, Any]:
    return {"type": kind, "contains": contains, "values": values}

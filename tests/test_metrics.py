"""Unit tests for metric primitives and the snapshot collector."""

from __future__ import annotations

import pytest

from flowbench.metrics import Counter, Gauge, MetricsCollector, Rate, Trend
from flowbench.models import RequestResult
from flowbench.snapshot import MetricsSnapshot


def _result(
    status: int | None = 200,
    duration_ms: float = 100.0,
    success: bool = True,
    bytes_sent: int = 100,
    bytes_received: int = 50,
) -> RequestResult:
    return RequestResult(
        status_code=status,
        duration_ms=duration_ms,
        success=success,
        body=b'{"ok": true}' if success else b"",
        connecting_ms=2.0,
        tls_handshaking_ms=4.0,
        sending_ms=0.5,
        waiting_ms=duration_ms - 10,
        receiving_ms=1.0,
        bytes_sent=bytes_sent,
        bytes_received=bytes_received,
    )


def test_trend_empty() -> None:
    values = Trend().values()
    assert values == {"avg": 0.0, "min": 0.0, "max": 0.0, "med": 0.0, "p(90)": 0.0, "p(95)": 0.0, "p(99)": 0.0}


def test_trend_single_value() -> None:
    t = Trend()
    t.add(50.0)
    values = t.values()
    assert values["avg"] == 50.0
    assert values["min"] == 50.0
    assert values["max"] == 50.0
    assert values["p(95)"] == pytest.approx(50.0)


def test_trend_percentiles_ordered() -> None:
    t = Trend()
    for v in range(1, 1001):
        t.add(float(v))
    values = t.values()
    assert values["min"] == 1.0
    assert values["max"] == 1000.0
    assert values["avg"] == pytest.approx(500.5)
    assert values["med"] == pytest.approx(500, rel=0.05)
    assert values["p(95)"] == pytest.approx(950, rel=0.05)
    assert values["med"] <= values["p(90)"] <= values["p(95)"] <= values["p(99)"]


def test_trend_without_percentiles() -> None:
    t = Trend(with_percentiles=False)
    t.add(3.0)
    assert set(t.values()) == {"avg", "min", "max"}


def test_counter_rate() -> None:
    c = Counter()
    c.add()
    c.add(4)
    assert c.values(2.0) == {"count": 5, "rate": 2.5}
    assert c.values(0)["rate"] == 0.0


def test_rate() -> None:
    r = Rate()
    assert r.values()["rate"] == 0.0
    r.add(True)
    r.add(True)
    r.add(False)
    r.add(True)
    assert r.values() == {"rate": 0.75, "passes": 3, "fails": 1}


def test_gauge_tracks_min_max() -> None:
    g = Gauge()
    for v in (5, 2, 9, 4):
        g.set(v)
    assert g.values() == {"value": 4, "min": 2, "max": 9}


def test_collector_snapshot_shape() -> None:
    c = MetricsCollector()
    c.record_request(_result(duration_ms=100))
    c.record_request(_result(duration_ms=300))
    c.record_checks({"status is 200": True, "valid response": True})
    c.record_checks({"status is 200": False, "valid response": True})
    c.record_outcome(True)
    c.record_outcome(False)
    c.set_vus(2, 10)
    raw = c.snapshot(duration_ms=2000)
    snap = MetricsSnapshot(raw)

    assert snap.test_run_duration_ms == 2000
    assert snap.value("http_reqs", "count") == 2
    assert snap.value("http_reqs", "rate") == 1.0
    assert snap.value("http_req_duration", "avg") == 200.0
    assert snap.value("http_req_duration", "min") == 100.0
    assert snap.value("http_req_duration", "max") == 300.0
    assert snap.value("http_req_connecting", "avg") == 2.0
    assert snap.value("http_req_tls_handshaking", "avg") == 4.0
    assert snap.value("http_req_waiting", "avg") == 190.0
    assert snap.value("data_sent", "count") == 200
    assert snap.value("data_received", "count") == 100
    assert snap.value("successes", "rate") == 0.5
    assert snap.value("errors", "rate") == 0.5
    assert snap.value("dropped_requests", "count") == 1
    assert snap.value("checks", "rate") == 0.75
    assert snap.value("vus", "max") == 2
    assert snap.value("vus_max", "max") == 10
    assert raw["metrics"]["http_req_duration"]["type"] == "trend"
    assert raw["metrics"]["http_reqs"]["contains"] == "default"
    assert raw["root_group"]["checks"] == [
        {"name": "status is 200", "path": "::status is 200", "passes": 1, "fails": 1},
        {"name": "valid response", "path": "::valid response", "passes": 2, "fails": 0},
    ]


def test_collector_omits_counters_that_never_fired() -> None:
    c = MetricsCollector()
    c.record_request(_result())
    c.record_outcome(True)
    metrics = c.snapshot(duration_ms=1000)["metrics"]
    assert "dropped_requests" not in metrics
    assert "dropped_iterations" not in metrics
    assert "total_payloads" not in metrics
    assert "failed_payloads" not in metrics


def test_collector_transport_failure_counts_as_http_failure() -> None:
    c = MetricsCollector()
    c.record_request(RequestResult(status_code=None, duration_ms=5.0, success=False, error="ConnectError: refused"))
    c.record_request(_result(status=500))
    c.record_request(_result(status=200))
    snap = MetricsSnapshot(c.snapshot(duration_ms=1000))
    assert snap.value("http_req_failed", "passes") == 2
    assert snap.value("http_req_failed", "fails") == 1


def test_collector_payload_counters() -> None:
    c = MetricsCollector(track_payloads=True)
    c.record_outcome(True, bulk_size=50)
    c.record_outcome(False, bulk_size=50)
    snap = MetricsSnapshot(c.snapshot(duration_ms=1000))
    assert snap.value("total_payloads", "count") == 100
    assert snap.value("failed_payloads", "count") == 50
    assert snap.value("iterations", "count") == 2


def test_collector_dropped_iterations() -> None:
    c = MetricsCollector()
    c.record_dropped_iteration()
    c.record_dropped_iteration()
    snap = MetricsSnapshot(c.snapshot(duration_ms=1000))
    assert snap.value("dropped_iterations", "count") == 2


def test_collector_cached_snapshot_invalidated_by_records() -> None:
    c = MetricsCollector()
    first = c.get_cached_snapshot(cache_ttl_sec=60)
    assert c.get_cached_snapshot(cache_ttl_sec=60) is first
    c.record_request(_result())
    second = c.get_cached_snapshot(cache_ttl_sec=60)
    assert second is not first
    assert second["metrics"]["http_reqs"]["values"]["count"] == 1

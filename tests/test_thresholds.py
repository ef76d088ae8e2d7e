"""Unit tests for pass/fail thresholds."""

from __future__ import annotations

from flowbench.models import TestVariant
from flowbench.thresholds import annotate_thresholds, evaluate_thresholds


def test_healthy_qps_passes(healthy_snapshot) -> None:
    assert evaluate_thresholds(healthy_snapshot, TestVariant.QPS) == []


def test_qps_p95_violation(healthy_snapshot) -> None:
    healthy_snapshot["metrics"]["http_req_duration"]["values"]["p(95)"] = 750.0
    violations = evaluate_thresholds(healthy_snapshot, "qps")
    assert len(violations) == 1
    assert violations[0].startswith("http_req_duration: p(95)<500 failed")


def test_limit_is_exclusive(healthy_snapshot) -> None:
    healthy_snapshot["metrics"]["errors"]["values"]["rate"] = 0.05
    violations = evaluate_thresholds(healthy_snapshot, "qps")
    assert violations == ["errors: rate<0.05 failed (actual 0.05)"]


def test_throughput_limits_are_looser(healthy_snapshot) -> None:
    healthy_snapshot["metrics"]["http_req_duration"]["values"]["p(95)"] = 1500.0
    healthy_snapshot["metrics"]["http_req_duration"]["values"]["p(99)"] = 3000.0
    assert evaluate_thresholds(healthy_snapshot, "throughput") == []
    assert len(evaluate_thresholds(healthy_snapshot, "qps")) == 2


def test_empty_snapshot_passes() -> None:
    assert evaluate_thresholds({}, "qps") == []


def test_annotate_thresholds(healthy_snapshot) -> None:
    healthy_snapshot["metrics"]["http_req_duration"]["values"]["p(99)"] = 1200.0
    annotate_thresholds(healthy_snapshot, "qps")
    duration = healthy_snapshot["metrics"]["http_req_duration"]["thresholds"]
    assert duration == {"p(95)<500": {"ok": True}, "p(99)<1000": {"ok": False}}
    assert healthy_snapshot["metrics"]["errors"]["thresholds"] == {"rate<0.05": {"ok": True}}


def test_annotate_thresholds_skips_missing_metrics() -> None:
    raw = {"metrics": {"http_reqs": {"values": {"count": 1}}}}
    annotate_thresholds(raw, "qps")
    assert raw == {"metrics": {"http_reqs": {"values": {"count": 1}}}}
    annotate_thresholds({}, "qps")

"""Pytest fixtures for flowbench tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from flowbench.models import RunConfig


@pytest.fixture
def qps_config() -> RunConfig:
    return RunConfig(
        api_url="https://rules.example.com/api/v1/flows/flow_123",
        api_key="secret-key",
        test_duration="4m",
        target_rps=500,
        bulk_size=1,
    )


@pytest.fixture
def throughput_config() -> RunConfig:
    return RunConfig(
        api_url="https://rules.example.com/api/v1/flows/flow_123",
        api_key="secret-key",
        test_duration="4m",
        target_rps=100,
        bulk_size=50,
    )


@pytest.fixture
def healthy_snapshot() -> dict[str, Any]:
    """QPS run at 500 req/s for 4 minutes, 99.5% success."""
    return {
        "metrics": {
            "http_reqs": {"values": {"count": 120000, "rate": 500}},
            "http_req_duration": {
                "values": {
                    "avg": 80.5, "min": 12.25, "med": 70.0, "max": 950.0,
                    "p(90)": 120.0, "p(95)": 150.0, "p(99)": 300.0,
                }
            },
            "http_req_connecting": {"values": {"avg": 1.5}},
            "http_req_tls_handshaking": {"values": {"avg": 3.25}},
            "http_req_sending": {"values": {"avg": 0.05}},
            "http_req_waiting": {"values": {"avg": 75.0}},
            "http_req_receiving": {"values": {"avg": 0.2}},
            "successes": {"values": {"rate": 0.995}},
            "errors": {"values": {"rate": 0.005}},
            "data_sent": {"values": {"count": 24576000}},
            "data_received": {"values": {"count": 12288000}},
            "vus": {"values": {"max": 42}},
            "vus_max": {"values": {"max": 200}},
        },
        "state": {"testRunDurationMs": 240000},
    }


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.fixture
def config_yaml(tmp_path: Path) -> Path:
    p = tmp_path / "bench.yaml"
    p.write_text(
        "api_url: https://file.example.com/api/v1/flows/f\n"
        "api_key: file-key\n"
        "test_duration: 2m\n"
        "target_rps: 250\n"
        "bulk_size: 20\n",
        encoding="utf-8",
    )
    return p

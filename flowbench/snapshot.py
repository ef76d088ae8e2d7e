"""Read-only access to a metrics snapshot.

A snapshot is the k6-style summary mapping::

    {"metrics": {"http_req_duration": {"values": {"p(95)": 150.0, ...}}, ...},
     "state": {"testRunDurationMs": 240000}}

Any path may be absent or hold garbage. Every read goes through metric_value(),
which returns a number or None; callers pick the default. That one rule is the
whole zero-default contract of the report.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import orjson

from .exceptions import FlowbenchRunnerError
from .logging_config import get_logger

logger = get_logger("snapshot")


def _as_number(value: Any) -> int | float | None:
    """Return value if it is a finite int/float (bool excluded), else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class MetricsSnapshot:
    """Sparse view over a raw snapshot mapping. Never raises on missing data."""

    __slots__ = ("_raw",)

    def __init__(self, raw: Mapping[str, Any] | None = None) -> None:
        self._raw: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

    @property
    def raw(self) -> Mapping[str, Any]:
        """The untouched input mapping (dumped verbatim to the results JSON)."""
        return self._raw

    def _section(self, key: str) -> Mapping[str, Any]:
        section = self._raw.get(key)
        return section if isinstance(section, Mapping) else {}

    def has_metric(self, name: str) -> bool:
        return isinstance(self._section("metrics").get(name), Mapping)

    def metric_value(self, name: str, field: str) -> int | float | None:
        """metrics.<name>.values.<field> as a number, or None when absent or malformed."""
        metric = self._section("metrics").get(name)
        if not isinstance(metric, Mapping):
            return None
        values = metric.get("values")
        if not isinstance(values, Mapping):
            return None
        return _as_number(values.get(field))

    def value(self, name: str, field: str, default: int | float = 0) -> int | float:
        """Lookup-with-default: metrics.<name>.values.<field>, else default."""
        v = self.metric_value(name, field)
        return default if v is None else v

    @property
    def test_run_duration_ms(self) -> float:
        """state.testRunDurationMs, 0 when absent."""
        v = _as_number(self._section("state").get("testRunDurationMs"))
        return 0 if v is None else v

    def __repr__(self) -> str:
        return f"MetricsSnapshot(metrics={len(self._section('metrics'))})"


def load_snapshot(path: str | Path) -> MetricsSnapshot:
    """Load a snapshot previously written as JSON (ours or a k6 summary export).

    Raises:
        FlowbenchRunnerError: If the file is missing or not valid JSON
    """
    p = Path(path)
    if not p.exists():
        raise FlowbenchRunnerError(
            f"Snapshot file not found: {path}",
            context={"path": str(path)},
        )
    try:
        raw = orjson.loads(p.read_bytes())
    except orjson.JSONDecodeError as e:
        raise FlowbenchRunnerError(
            f"Invalid JSON in snapshot file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        raise FlowbenchRunnerError(
            f"Cannot read snapshot file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    if not isinstance(raw, dict):
        logger.warning("Snapshot %s is not a JSON object; rendering an empty report", p)
        raw = {}
    return MetricsSnapshot(raw)

"""Pass/fail thresholds per benchmark variant (k6-style "p(95)<500" criteria)."""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from .models import TestVariant, VariantDescriptor, get_variant
from .snapshot import MetricsSnapshot


def evaluate_thresholds(
    snapshot: MetricsSnapshot | MutableMapping[str, Any],
    variant: TestVariant | VariantDescriptor | str,
) -> list[str]:
    """Return human-readable descriptions of failed thresholds (empty when all pass).

    A missing metric value counts as 0, matching the report's zero-default rule.
    """
    snap = snapshot if isinstance(snapshot, MetricsSnapshot) else MetricsSnapshot(snapshot)
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    violations: list[str] = []
    for t in descriptor.thresholds:
        actual = snap.value(t.metric, t.field)
        if not actual < t.limit:
            violations.append(f"{t.expression} failed (actual {actual:.4g})")
    return violations


def annotate_thresholds(
    raw: MutableMapping[str, Any],
    variant: TestVariant | VariantDescriptor | str,
) -> None:
    """Record threshold outcomes in the raw snapshot: metrics.<name>.thresholds.<expr>.ok."""
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    snap = MetricsSnapshot(raw)
    metrics = raw.get("metrics")
    if not isinstance(metrics, MutableMapping):
        return
    for t in descriptor.thresholds:
        entry = metrics.get(t.metric)
        if not isinstance(entry, MutableMapping):
            continue
        ok = snap.value(t.metric, t.field) < t.limit
        entry.setdefault("thresholds", {})[f"{t.field}<{t.limit:g}"] = {"ok": ok}

"""Synthetic request payloads for the benchmark flow.

Each record exercises the flow's rule conditions:
- alpha: small (0-9) or larger (10-100) integer, equal odds
- beta: empty string or random lowercase string of 1-10 chars, equal odds
- charlie: random boolean
"""

from __future__ import annotations

import random
import string
import time
from typing import Any

_default_rng = random.Random()


def _random_string(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(string.ascii_lowercase) for _ in range(length))


def generate_payload(
    req_id: str | None = None,
    rng: random.Random | None = None,
    vu: int = 0,
    iteration: int = 0,
) -> dict[str, Any]:
    """One payload record. Default id is req_<vu>_<iteration>_<epoch ms>."""
    rng = rng or _default_rng
    return {
        "req_id": req_id or f"req_{vu}_{iteration}_{int(time.time() * 1000)}",
        "alpha": rng.randint(0, 9) if rng.random() < 0.5 else rng.randint(10, 100),
        "beta": "" if rng.random() < 0.5 else _random_string(rng, rng.randint(1, 10)),
        "charlie": rng.random() < 0.5,
    }


def generate_bulk_payload(
    size: int,
    prefix: str = "bulk",
    rng: random.Random | None = None,
    vu: int = 0,
    iteration: int = 0,
) -> list[dict[str, Any]]:
    """`size` payloads with ids <prefix>_<vu>_<iteration>_<index>."""
    return [
        generate_payload(f"{prefix}_{vu}_{iteration}_{i}", rng=rng)
        for i in range(max(0, size))
    ]

"""Run configuration: environment variables over optional YAML file over variant defaults."""

from __future__ import annotations

import math
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .exceptions import FlowbenchConfigError
from .logging_config import get_logger
from .models import RunConfig, TestVariant, VariantDescriptor, get_variant

logger = get_logger("config")

ENV_API_URL = "API_URL"
ENV_API_KEY = "API_KEY"
ENV_TEST_DURATION = "TEST_DURATION"
ENV_TARGET_RPS = "TARGET_RPS"
ENV_BULK_SIZE = "BULK_SIZE"
ENV_WARMUP_DURATION = "WARMUP_DURATION"

DEFAULT_TEST_DURATION = "4m"
DEFAULT_WARMUP_DURATION = "1m"

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNIT_SECONDS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: str | float | int) -> float:
    """Parse a duration string ("4m", "1m30s", "500ms", "90") into seconds.

    Bare numbers are seconds.

    Raises:
        FlowbenchConfigError: If the string is not a valid duration
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if not math.isfinite(value) or value < 0:
            raise FlowbenchConfigError(f"Duration must be a finite number >= 0: {value}")
        return float(value)
    s = str(value).strip().lower()
    if not s:
        raise FlowbenchConfigError("Duration must not be empty")
    try:
        return parse_duration(float(s))
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for match in _DURATION_PART.finditer(s):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if pos != len(s) or pos == 0:
        raise FlowbenchConfigError(
            f"Invalid duration: {value!r} (expected e.g. 4m, 1m30s, 500ms)",
            context={"value": str(value)},
        )
    return total


def _positive_int(raw: Any) -> int | None:
    """int(raw) if it parses to a value > 0, else None (caller falls back to a default)."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        v = int(str(raw).strip())
    except ValueError:
        return None
    return v if v > 0 else None


def _load_yaml(path: str | Path) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise FlowbenchConfigError(
            f"Config file not found: {path}",
            context={"path": str(path)},
        )
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.exception("Failed to parse YAML config file")
        raise FlowbenchConfigError(
            f"Invalid YAML syntax in config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        raise FlowbenchConfigError(
            f"Cannot read config file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise FlowbenchConfigError(
            "Config must be a YAML object/dictionary",
            context={"path": str(path), "actual_type": type(raw).__name__},
        )
    return raw


def _first(*values: Any) -> Any:
    for v in values:
        if v is not None and v != "":
            return v
    return None


def resolve_run_config(
    variant: TestVariant | VariantDescriptor | str,
    env: Mapping[str, str] | None = None,
    config_path: str | Path | None = None,
    require_credentials: bool = True,
) -> RunConfig:
    """Resolve RunConfig for a benchmark variant.

    API_URL and API_KEY are required unless require_credentials is False
    (rendering a saved snapshot sends no requests). Durations are validated here so a typo
    fails before any load is generated.

    Raises:
        FlowbenchConfigError: If a required value is missing or a duration is invalid
    """
    descriptor = variant if isinstance(variant, VariantDescriptor) else get_variant(variant)
    env = os.environ if env is None else env
    file_values = _load_yaml(config_path) if config_path is not None else {}

    api_url = _first(env.get(ENV_API_URL), file_values.get("api_url"))
    if not api_url and require_credentials:
        raise FlowbenchConfigError(
            "API_URL is required. Usage: API_URL=https://your-instance.com/api/v1/flows/flow_id "
            f"API_KEY=your-api-key flowbench {descriptor.variant.value}"
        )
    api_key = _first(env.get(ENV_API_KEY), file_values.get("api_key"))
    if not api_key and require_credentials:
        raise FlowbenchConfigError(
            f"API_KEY is required. Usage: API_KEY=your-api-key flowbench {descriptor.variant.value}"
        )

    test_duration = str(_first(env.get(ENV_TEST_DURATION), file_values.get("test_duration"), DEFAULT_TEST_DURATION))
    warmup_duration = str(
        _first(env.get(ENV_WARMUP_DURATION), file_values.get("warmup_duration"), DEFAULT_WARMUP_DURATION)
    )
    parse_duration(test_duration)
    parse_duration(warmup_duration)

    target_rps = _first(
        _positive_int(env.get(ENV_TARGET_RPS)),
        _positive_int(file_values.get("target_rps")),
        descriptor.default_target_rps,
    )
    bulk_size = _first(
        _positive_int(env.get(ENV_BULK_SIZE)),
        _positive_int(file_values.get("bulk_size")),
        descriptor.default_bulk_size,
    )
    if not descriptor.show_bulk_metrics:
        bulk_size = 1

    config = RunConfig(
        api_url=str(api_url or "").strip(),
        api_key=str(api_key or "").strip(),
        test_duration=test_duration,
        target_rps=target_rps,
        bulk_size=bulk_size,
        warmup_duration=warmup_duration,
    )
    logger.debug(
        "Resolved config: variant=%s, target_rps=%s, bulk_size=%s, duration=%s, warmup=%s",
        descriptor.variant.value, config.target_rps, config.bulk_size, config.test_duration, config.warmup_duration,
    )
    return config


def create_request_headers(api_key: str) -> dict[str, str]:
    """Headers for every benchmark request."""
    return {
        "Content-Type": "application/json",
        "x-api-key": api_key,
    }

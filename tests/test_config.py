"""Unit tests for duration parsing and run configuration resolution."""

from __future__ import annotations

import pytest

from flowbench.config import (
    ENV_API_KEY,
    ENV_API_URL,
    ENV_BULK_SIZE,
    ENV_TARGET_RPS,
    ENV_TEST_DURATION,
    ENV_WARMUP_DURATION,
    create_request_headers,
    parse_duration,
    resolve_run_config,
)
from flowbench.exceptions import FlowbenchConfigError
from flowbench.models import TestVariant

BASE_ENV = {
    ENV_API_URL: "https://env.example.com/api/v1/flows/f",
    ENV_API_KEY: "env-key",
}


@pytest.mark.parametrize(
    ("text", "seconds"),
    [
        ("4m", 240.0),
        ("1m30s", 90.0),
        ("500ms", 0.5),
        ("1h", 3600.0),
        ("90", 90.0),
        ("0s", 0.0),
        ("2.5s", 2.5),
        (" 10S ", 10.0),
        (45, 45.0),
    ],
)
def test_parse_duration(text, seconds) -> None:
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "abc", "4x", "m", "4m junk", "-5", "1m-2s", float("inf")])
def test_parse_duration_invalid(text) -> None:
    with pytest.raises(FlowbenchConfigError):
        parse_duration(text)


def test_resolve_defaults_qps() -> None:
    config = resolve_run_config(TestVariant.QPS, env=BASE_ENV)
    assert config.api_url == BASE_ENV[ENV_API_URL]
    assert config.api_key == "env-key"
    assert config.test_duration == "4m"
    assert config.warmup_duration == "1m"
    assert config.target_rps == 500
    assert config.bulk_size == 1


def test_resolve_defaults_throughput() -> None:
    config = resolve_run_config("throughput", env=BASE_ENV)
    assert config.target_rps == 100
    assert config.bulk_size == 50


def test_resolve_env_overrides() -> None:
    env = {
        **BASE_ENV,
        ENV_TEST_DURATION: "30s",
        ENV_TARGET_RPS: "50",
        ENV_BULK_SIZE: "10",
        ENV_WARMUP_DURATION: "0s",
    }
    config = resolve_run_config("throughput", env=env)
    assert config.test_duration == "30s"
    assert config.target_rps == 50
    assert config.bulk_size == 10
    assert config.warmup_duration == "0s"


def test_resolve_qps_ignores_bulk_size() -> None:
    config = resolve_run_config("qps", env={**BASE_ENV, ENV_BULK_SIZE: "10"})
    assert config.bulk_size == 1


@pytest.mark.parametrize("bad", ["abc", "0", "-3", ""])
def test_resolve_invalid_numbers_fall_back(bad) -> None:
    config = resolve_run_config("throughput", env={**BASE_ENV, ENV_TARGET_RPS: bad, ENV_BULK_SIZE: bad})
    assert config.target_rps == 100
    assert config.bulk_size == 50


def test_resolve_missing_api_url() -> None:
    with pytest.raises(FlowbenchConfigError, match="API_URL is required"):
        resolve_run_config("qps", env={ENV_API_KEY: "k"})


def test_resolve_missing_api_key() -> None:
    with pytest.raises(FlowbenchConfigError, match="API_KEY is required"):
        resolve_run_config("qps", env={ENV_API_URL: "https://x"})


def test_resolve_without_credentials_requirement() -> None:
    config = resolve_run_config("qps", env={}, require_credentials=False)
    assert config.api_url == ""
    assert config.api_key == ""


def test_resolve_invalid_duration() -> None:
    with pytest.raises(FlowbenchConfigError, match="Invalid duration"):
        resolve_run_config("qps", env={**BASE_ENV, ENV_TEST_DURATION: "four minutes"})


def test_resolve_from_yaml(config_yaml) -> None:
    config = resolve_run_config("throughput", env={}, config_path=config_yaml)
    assert config.api_url == "https://file.example.com/api/v1/flows/f"
    assert config.api_key == "file-key"
    assert config.test_duration == "2m"
    assert config.target_rps == 250
    assert config.bulk_size == 20


def test_resolve_env_beats_yaml(config_yaml) -> None:
    env = {**BASE_ENV, ENV_TARGET_RPS: "75"}
    config = resolve_run_config("throughput", env=env, config_path=config_yaml)
    assert config.api_url == BASE_ENV[ENV_API_URL]
    assert config.api_key == "env-key"
    assert config.target_rps == 75
    assert config.bulk_size == 20
    assert config.test_duration == "2m"


def test_resolve_yaml_missing_file(tmp_path) -> None:
    with pytest.raises(FlowbenchConfigError, match="not found"):
        resolve_run_config("qps", env=BASE_ENV, config_path=tmp_path / "nope.yaml")


def test_resolve_yaml_invalid_syntax(tmp_path) -> None:
    p = tmp_path / "bad.yaml"
    p.write_text("api_url: [unclosed\n", encoding="utf-8")
    with pytest.raises(FlowbenchConfigError, match="Invalid YAML"):
        resolve_run_config("qps", env=BASE_ENV, config_path=p)


def test_resolve_yaml_not_a_mapping(tmp_path) -> None:
    p = tmp_path / "list.yaml"
    p.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(FlowbenchConfigError, match="YAML object"):
        resolve_run_config("qps", env=BASE_ENV, config_path=p)


def test_resolve_yaml_empty_file(tmp_path) -> None:
    p = tmp_path / "empty.yaml"
    p.write_text("", encoding="utf-8")
    config = resolve_run_config("qps", env=BASE_ENV, config_path=p)
    assert config.target_rps == 500


def test_create_request_headers() -> None:
    assert create_request_headers("abc") == {"Content-Type": "application/json", "x-api-key": "abc"}

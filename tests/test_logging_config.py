"""Unit tests for logging_config (get_logger, configure_logging, JSON format)."""

from __future__ import annotations

import io
import logging

import orjson
import pytest

from flowbench.exceptions import FlowbenchConfigError
from flowbench.logging_config import LOG_FORMAT_ENV, LOG_LEVEL_ENV, configure_logging, get_logger


@pytest.fixture
def restore_logging():
    root = logging.getLogger("flowbench")
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


def test_get_logger_returns_logger() -> None:
    logger = get_logger("test")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "flowbench.test"


def test_get_logger_root_name() -> None:
    assert get_logger("flowbench").name == "flowbench"


def test_get_logger_configures_single_handler() -> None:
    get_logger("a")
    get_logger("b")
    assert len(logging.getLogger("flowbench").handlers) == 1


def test_configure_logging_text(restore_logging) -> None:
    buf = io.StringIO()
    configure_logging(level="debug", fmt="text", stream=buf, force=True)
    get_logger("text_test").debug("hello %s", "world")
    line = buf.getvalue()
    assert "[DEBUG] flowbench.text_test: hello world" in line


def test_configure_logging_json_includes_extra(restore_logging) -> None:
    buf = io.StringIO()
    configure_logging(level="INFO", fmt="json", stream=buf, force=True)
    err = FlowbenchConfigError("bad duration", context={"value": "abc"})
    get_logger("json_test").warning("config rejected", extra=err.log_fields())
    obj = orjson.loads(buf.getvalue().strip())
    assert obj["level"] == "WARNING"
    assert obj["logger"] == "flowbench.json_test"
    assert obj["message"] == "config rejected"
    assert obj["error_type"] == "FlowbenchConfigError"
    assert obj["error_context"] == {"value": "abc"}


def test_configure_logging_reads_env(restore_logging, monkeypatch) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")
    monkeypatch.setenv(LOG_FORMAT_ENV, "json")
    buf = io.StringIO()
    configure_logging(stream=buf, force=True)
    logger = get_logger("env_test")
    logger.warning("dropped")
    logger.error("kept")
    lines = buf.getvalue().strip().splitlines()
    assert len(lines) == 1
    assert orjson.loads(lines[0])["message"] == "kept"


def test_configure_logging_unknown_level_defaults_to_info(restore_logging) -> None:
    configure_logging(level="chatty", stream=io.StringIO(), force=True)
    assert logging.getLogger("flowbench").level == logging.INFO


def test_configure_logging_without_force_keeps_handler(restore_logging) -> None:
    root = logging.getLogger("flowbench")
    before = list(root.handlers)
    configure_logging(level="DEBUG", stream=io.StringIO())
    assert root.handlers == before

"""
hydration — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate structured JSON logging and correlation metadata emitted while hydrating.

What this test file should cover
- JSON line validity and correlation field propagation.
- Handler lifecycle (setup replaces, shutdown detaches).
- Hydrator log events carry subject and property correlation.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from hydration import HydrationSettings, Hydrator, PropertyRule, configure_settings
from hydration.observability import (
    LoggingConfig,
    correlation_scope,
    get_active_logging_handle,
    get_correlation_context,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"hydration.tests.logging.{uuid4().hex}"


def _read_json_lines(path: Path) -> list[dict[str, object]]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [json.loads(line) for line in lines]


class Endpoint:
    url: str = ""
    retries: int = 0


def test_json_lines_carry_correlation_fields(tmp_path: Path) -> None:
    logger_name = _logger_name()
    handle = setup_logging(
        LoggingConfig(level="INFO", logger_name=logger_name, log_path=tmp_path / "h.jsonl")
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(subject="Endpoint", depth=2):
        logger.info("assigned", extra={"property": "url", "attempt": 1})

    shutdown_logging(handle)

    assert handle.log_path is not None
    parsed = _read_json_lines(handle.log_path)
    assert len(parsed) == 1
    first = parsed[0]
    assert first["message"] == "assigned"
    assert first["level"] == "INFO"
    assert first["subject"] == "Endpoint"
    assert first["depth"] == "2"
    assert first["property"] == "url"
    assert first["fields"] == {"attempt": 1}
    assert str(first["timestamp"]).endswith("Z")


def test_correlation_scope_nests_and_restores() -> None:
    with correlation_scope(subject="Outer"):
        with correlation_scope(property="inner", subject=None):
            assert get_correlation_context() == {"property": "inner"}
        assert get_correlation_context() == {"subject": "Outer"}
    assert get_correlation_context() == {}

    with pytest.raises(ValueError, match="correlation key must not be empty"):
        with correlation_scope(**{" ": "x"}):
            pass


def test_plain_text_formatter_to_stream() -> None:
    stream = io.StringIO()
    logger_name = _logger_name()
    setup_logging(
        LoggingConfig(level="DEBUG", logger_name=logger_name, stream=stream, json_lines=False)
    )

    logging.getLogger(logger_name).debug("plain message")

    assert stream.getvalue().strip() == f"DEBUG {logger_name}: plain message"


def test_setup_replaces_previous_handle() -> None:
    first = setup_logging(LoggingConfig(logger_name=_logger_name(), stream=io.StringIO()))
    second = setup_logging(LoggingConfig(logger_name=_logger_name(), stream=io.StringIO()))

    assert first.is_shutdown
    assert get_active_logging_handle() is second
    assert not first.logger.handlers

    shutdown_logging()
    assert second.is_shutdown
    assert get_active_logging_handle() is None


def test_default_level_follows_settings() -> None:
    configure_settings(HydrationSettings(log_level="ERROR"))

    handle = setup_logging()

    assert handle.logger.name == "hydration"
    assert handle.logger.level == logging.ERROR


def test_invalid_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_logging(LoggingConfig(level="chatty", stream=io.StringIO()))


def test_hydrator_events_are_correlated() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="DEBUG", stream=stream))
    hydrator = (
        Hydrator()
        .add_property(PropertyRule.make("retries").validate(lambda value: value >= 0))
        .bind(Endpoint)
    )

    hydrator.hydrate(Endpoint(), {"url": "http://x", "retries": -1}, {"source": "object"})

    events = [json.loads(line) for line in stream.getvalue().splitlines()]
    failures = [event for event in events if str(event["message"]).startswith("property retries")]
    assert failures
    assert all(event["subject"] == "Endpoint" for event in failures)
    assert all(event["property"] == "retries" for event in failures)
    assert any(event["message"] == "hydrating Endpoint from object" for event in events)


def test_strict_abort_logs_warning() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="WARNING", stream=stream))
    hydrator = Hydrator.make(Endpoint)

    with pytest.raises(ValueError):
        hydrator.hydrate(Endpoint(), {"host": "x"}, {"source": "object"})

    events = [json.loads(line) for line in stream.getvalue().splitlines()]
    messages = [event["message"] for event in events]
    assert messages == ['Undefined property "host" in class Endpoint.']
    assert events[0]["level"] == "WARNING"
    assert events[0]["property"] == "host"

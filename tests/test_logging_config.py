"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from remedy_engine.logging_config import (
    CONTEXT_VARS,
    JSONFormatter,
    RemediationContextFilter,
    bind_remediation_context,
    configure_logging,
    correlation_id_var,
    execution_id_var,
    get_correlation_id,
)


@pytest.fixture(autouse=True)
def reset_remediation_context():
    tokens = [(var, var.set("")) for var in CONTEXT_VARS.values()]
    yield
    for var, token in tokens:
        var.reset(token)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(message: str = "hello %s", args: tuple = ("world",)) -> logging.LogRecord:
    return logging.LogRecord(
        name="remedy_engine.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=args,
        exc_info=None,
    )


class TestJSONFormatter:
    """Tests for JSON log records."""

    def test_basic_fields(self) -> None:
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "remedy_engine.test"
        assert data["message"] == "hello world"
        assert "correlation_id" not in data

    def test_correlation_id_included(self) -> None:
        correlation_id_var.set("corr-7")

        data = json.loads(JSONFormatter().format(make_record()))

        assert data["correlation_id"] == "corr-7"

    def test_bound_remediation_context_included(self) -> None:
        bind_remediation_context(
            correlation_id="corr-2", service_name="checkout", execution_id="exec-9"
        )

        data = json.loads(JSONFormatter().format(make_record()))

        assert data["correlation_id"] == "corr-2"
        assert data["service_name"] == "checkout"
        assert data["execution_id"] == "exec-9"

    def test_record_ids_win_over_bound_context(self) -> None:
        bind_remediation_context(execution_id="exec-bound")
        record = make_record()
        record.execution_id = "exec-1"

        data = json.loads(JSONFormatter().format(record))

        assert data["execution_id"] == "exec-1"
        assert "service_name" not in data

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_format(self) -> None:
        configure_logging(level="debug", log_format="json")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_text_format_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        monkeypatch.setenv("LOG_FORMAT", "text")

        configure_logging()

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)


class TestCorrelationId:
    """Tests for get_correlation_id."""

    def test_generated_when_unset(self) -> None:
        generated = get_correlation_id()

        assert len(generated) == 8
        assert get_correlation_id() == generated

    def test_bound_value_returned(self) -> None:
        correlation_id_var.set("corr-1")

        assert get_correlation_id() == "corr-1"


class TestRemediationContext:
    """Tests for binding remediation ids and the record filter."""

    def test_none_leaves_values_unchanged(self) -> None:
        bind_remediation_context(correlation_id="corr-1", execution_id="exec-1")
        bind_remediation_context(execution_id="exec-2")

        assert correlation_id_var.get() == "corr-1"
        assert execution_id_var.get() == "exec-2"

    def test_filter_copies_bound_ids(self) -> None:
        bind_remediation_context(service_name="billing", execution_id="exec-3")
        record = make_record()

        assert RemediationContextFilter().filter(record) is True
        assert record.service_name == "billing"
        assert record.execution_id == "exec-3"
        assert record.correlation_id == "-"

    def test_text_format_shows_ids(self) -> None:
        configure_logging(level="info", log_format="text")
        handler = logging.getLogger().handlers[0]
        bind_remediation_context(service_name="checkout", execution_id="exec-4")
        record = make_record()

        handler.filter(record)
        line = handler.format(record)

        assert "checkout exec-4 -" in line
        assert line.endswith("hello world")

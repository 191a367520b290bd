"""Structured logging configuration for the remediation engine.

Every record carries the remediation context bound to the current task:

- correlation_id: Request the error occurred in
- service_name: Service that raised the error
- execution_id: Remediation run, when one is in progress

The values live in context variables, so concurrent remediations running
as separate asyncio tasks never see each other's ids.
"""

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
service_name_var: ContextVar[str] = ContextVar("service_name", default="")
execution_id_var: ContextVar[str] = ContextVar("execution_id", default="")

CONTEXT_VARS: dict[str, ContextVar[str]] = {
    "correlation_id": correlation_id_var,
    "service_name": service_name_var,
    "execution_id": execution_id_var,
}

TEXT_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | "
    "%(service_name)s %(execution_id)s %(correlation_id)s | %(message)s"
)


def bind_remediation_context(
    correlation_id: str | None = None,
    service_name: str | None = None,
    execution_id: str | None = None,
) -> None:
    """Bind remediation ids to the current task; None leaves a value unchanged."""
    if correlation_id is not None:
        correlation_id_var.set(correlation_id)
    if service_name is not None:
        service_name_var.set(service_name)
    if execution_id is not None:
        execution_id_var.set(execution_id)


class RemediationContextFilter(logging.Filter):
    """Copy the bound remediation ids onto each record.

    Ids passed explicitly through ``extra=`` win over the bound ones.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for name, var in CONTEXT_VARS.items():
            if not getattr(record, name, None):
                setattr(record, name, var.get() or "-")
        return True


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON.

        Remediation ids come from the record (set by ``extra=`` or
        RemediationContextFilter) or else from the bound context, and are
        omitted when neither has one.
        """
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for name, var in CONTEXT_VARS.items():
            value = getattr(record, name, None)
            if not value or value == "-":
                value = var.get()
            if value:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure root logging.

    Environment variables (used when arguments are omitted):
        LOG_LEVEL: Logging level (default: INFO)
        LOG_FORMAT: Output format - 'json' or 'text' (default: json)
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    fmt = log_format or os.getenv("LOG_FORMAT", "json")

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level, logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, log_level, logging.INFO))
    handler.addFilter(RemediationContextFilter())
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_correlation_id() -> str:
    """Get or create the current correlation id."""
    correlation_id = correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())[:8]
        correlation_id_var.set(correlation_id)
    return correlation_id

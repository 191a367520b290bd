"""Error context models.

This module defines the snapshot of an error occurrence that flows through
every stage of the engine:

- ErrorSeverity: Severity levels of an error occurrence
- ErrorContext: Structured snapshot of one error (type, message, stack,
  service/operation, timestamp, component graph and free-form context)
"""

from __future__ import annotations

import hashlib
import math
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ErrorSeverity(str, Enum):
    """Severity of an error occurrence, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more severe (critical=4 .. info=0)."""
        return _SEVERITY_RANKS[self]

    @classmethod
    def coerce(cls, value: Any, default: ErrorSeverity | None = None) -> ErrorSeverity:
        """Map arbitrary upstream input onto a valid severity.

        Accepts enum members, case-insensitive names/values and numeric ranks
        (clamped to 0..4). NaN, infinities and anything else map to
        ``default`` (MEDIUM).
        """
        fallback = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return fallback
        if isinstance(value, (int, float)):
            if not math.isfinite(value):
                return fallback
            rank = max(0, min(4, int(value)))
            return _SEVERITY_BY_RANK[rank]
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "warning":
                return cls.LOW
            for member in cls:
                if member.value == normalized:
                    return member
        return fallback


_SEVERITY_RANKS = {
    ErrorSeverity.CRITICAL: 4,
    ErrorSeverity.HIGH: 3,
    ErrorSeverity.MEDIUM: 2,
    ErrorSeverity.LOW: 1,
    ErrorSeverity.INFO: 0,
}
_SEVERITY_BY_RANK = {rank: severity for severity, rank in _SEVERITY_RANKS.items()}


class ErrorContext(BaseModel):
    """Snapshot of a single error occurrence.

    Attributes:
        error_id: Unique id of the occurrence
        correlation_id: Id shared by everything related to the same request
        service_name: Service that raised the error
        operation_name: Operation that was executing
        error_type: Exception type name (e.g. TimeoutException)
        message: Exception message
        stack_trace: Stack trace if available
        severity: Severity of the occurrence
        timestamp: When the error happened
        component_id: Component the error originated in (the error source)
        component_graph: Component id -> ids of the components it depends on
        additional_context: Free-form key/value context used for matching
        metadata: Caller metadata, copied into metrics snapshots
    """

    error_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    service_name: str = Field(default="", description="Service that raised the error")
    operation_name: str = Field(default="", description="Operation being executed")
    error_type: str = Field(default="", description="Exception type name")
    message: str = Field(default="", description="Exception message")
    stack_trace: str = Field(default="", description="Stack trace if available")
    severity: ErrorSeverity = Field(default=ErrorSeverity.MEDIUM)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    component_id: str | None = Field(default=None, description="Error source component")
    component_graph: dict[str, list[str]] = Field(default_factory=dict)
    additional_context: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("severity", mode="before")
    @classmethod
    def coerce_severity(cls, v: Any) -> ErrorSeverity:
        """Malformed severities never fail validation."""
        return ErrorSeverity.coerce(v)

    def to_signature(self) -> str:
        """Generate a stable signature for the error kind.

        Two occurrences of the same error type in the same operation of the
        same service share a signature regardless of message details.

        Returns:
            Signature string of the form ``{error_type}:{hash}``
        """
        signature_base = f"{self.service_name}:{self.error_type}:{self.operation_name}"
        signature_hash = hashlib.md5(signature_base.encode()).hexdigest()[:16]
        return f"{self.error_type}:{signature_hash}"

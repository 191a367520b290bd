"""
Pydantic schemas for the control-plane API.

Execution, metrics and statistics responses reuse the domain models; this
module only adds the envelopes that have no domain counterpart.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from remedy_engine.models.remediation import RemediationExecution, RemediationStatus


class CancelResponse(BaseModel):
    """Response schema for POST /remediations/{id}/cancel.

    Attributes:
        execution_id: The execution the request was for
        cancelled: Whether a cancellation was requested
        status: Status of the execution at request time
    """

    execution_id: str
    cancelled: bool
    status: RemediationStatus


class HistoryResponse(BaseModel):
    """Response schema for GET /remediations/{id}/history."""

    execution_id: str
    correlation_id: str
    executions: list[RemediationExecution] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Body of an error response."""

    detail: str


class HealthStatus(str, Enum):
    """Health of the service or one of its dependencies."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class DependencyCheck(BaseModel):
    """Result of checking one dependency."""

    status: HealthStatus
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Response schema for GET /health.

    Attributes:
        status: Worst status among the checks
        checks: One entry per dependency (``store``, ``llm``)
        timestamp: When the checks ran
    """

    status: HealthStatus
    checks: dict[str, DependencyCheck] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

"""Remediation models.

This module defines the records produced and consumed by the remediation
subsystem:

- RemediationStep / RemediationPlan: What should be done
- RemediationStatus: Lifecycle of one execution
- ActionExecution: One attempted strategy inside an execution
- ValidationResult: Outcome of a validation check
- MetricValue / RemediationMetrics: Metrics captured for an execution
- RemediationExecution: One run of a plan against an error context
- RemediationStatistics: Aggregates derived from a set of executions
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class RemediationStep(BaseModel):
    """A single step of a remediation plan.

    Attributes:
        description: Human-readable description
        action: Structured action spec ``type:key=value;key=value``
        parameters: Extra parameters merged over the parsed action spec
        max_retries: Maximum retries for this step
    """

    description: str = Field(default="", description="Human-readable description")
    action: str = Field(default="", description="Structured action spec")
    parameters: dict[str, str] = Field(default_factory=dict)
    max_retries: int = Field(default=3, ge=0)


class RemediationPlan(BaseModel):
    """Ordered remediation steps plus strategy specs.

    ``is_validated`` is only ever set by the validator.
    """

    steps: list[RemediationStep] = Field(default_factory=list)
    strategies: list[str] = Field(default_factory=list)
    context: str = Field(default="", description="Free-text context for operators")
    is_validated: bool = False


class RemediationStatus(str, Enum):
    """Status of a remediation execution.

    RUNNING is the only non-terminal state.
    """

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not RemediationStatus.RUNNING


class ActionExecution(BaseModel):
    """One attempted strategy inside an execution."""

    name: str
    success: bool = False
    error: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    ended_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()


class ValidationResult(BaseModel):
    """Outcome of a validation check.

    Attributes:
        is_successful: Whether the check passed
        message: Human-readable outcome
        details: Structured details (per-check flags, errors)
    """

    is_successful: bool
    message: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class MetricValue(BaseModel):
    """A timestamped sample of a named metric."""

    value: Any
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class RemediationMetrics(BaseModel):
    """Metrics captured for one remediation execution.

    Attributes:
        execution_id: Execution the metrics belong to
        resource_usage: cpu/memory/disk/network deltas over the execution
        step_metrics: Metrics per step name
        strategy_metrics: Metrics per strategy name (duration, success)
        series: Named metric series recorded during the execution
        trends: Slope per metric name, units per second
        snapshot: Context snapshot taken at collection time
    """

    execution_id: str
    resource_usage: dict[str, float] = Field(default_factory=dict)
    step_metrics: dict[str, dict[str, Any]] = Field(default_factory=dict)
    strategy_metrics: dict[str, dict[str, Any]] = Field(default_factory=dict)
    series: dict[str, list[MetricValue]] = Field(default_factory=dict)
    trends: dict[str, float] = Field(default_factory=dict)
    snapshot: dict[str, Any] = Field(default_factory=dict)


class RemediationExecution(BaseModel):
    """One run of a remediation plan against an error context.

    Persisted when it starts, on validation failure and when it ends.
    Writes are idempotent overwrites keyed by ``execution_id``.
    """

    execution_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: str = ""
    service_name: str = ""
    error_type: str = ""
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    status: RemediationStatus = RemediationStatus.RUNNING
    actions: list[ActionExecution] = Field(default_factory=list)
    validation: ValidationResult | None = None
    metrics: RemediationMetrics | None = None
    error: str | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()


class RemediationStatistics(BaseModel):
    """Aggregates over a filtered set of executions. Never stored."""

    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    partial_executions: int = 0
    skipped_executions: int = 0
    cancelled_executions: int = 0
    average_duration_seconds: float = 0.0
    success_rate: float = 0.0

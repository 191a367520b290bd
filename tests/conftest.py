"""
Shared pytest fixtures for remedy-engine tests.

Provides:
- FakeClock: Manually advanced clock for retention/TTL/history tests
- Error contexts and analyses
- In-memory store, tracker, metrics collector, validator and executor
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from remedy_engine.config.settings import ExecutorConfig, MetricsConfig, TrackerConfig
from remedy_engine.models.analysis import ErrorAnalysisResult
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.remediation import RemediationPlan, RemediationStep
from remedy_engine.remediation.executor import RemediationExecutor
from remedy_engine.remediation.metrics import RemediationMetricsCollector
from remedy_engine.remediation.store import InMemoryExecutionStore
from remedy_engine.remediation.tracker import RemediationTracker
from remedy_engine.remediation.validator import RemediationValidator


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock."""
    return FakeClock()


@pytest.fixture
def make_context():
    """Factory for error contexts with sensible defaults."""

    def _make(**overrides: Any) -> ErrorContext:
        values: dict[str, Any] = {
            "correlation_id": "corr-1",
            "service_name": "checkout",
            "operation_name": "Checkout",
            "error_type": "TimeoutException",
            "message": "Upstream payment gateway timed out",
            "additional_context": {"region": "eu-west-1", "endpoint": "/pay"},
        }
        values.update(overrides)
        return ErrorContext(**values)

    return _make


@pytest.fixture
def error_context(make_context) -> ErrorContext:
    """Provide a default error context."""
    return make_context()


@pytest.fixture
def analysis() -> ErrorAnalysisResult:
    """Provide a confident analysis of the default error."""
    return ErrorAnalysisResult(
        correlation_id="corr-1",
        error_type="TimeoutException",
        service_name="checkout",
        explanation="Payment gateway latency exceeded the client timeout",
        root_causes=["Gateway overload"],
        confidence=0.9,
    )


@pytest.fixture
def valid_plan() -> RemediationPlan:
    """Provide a plan that passes the default allow-list."""
    return RemediationPlan(
        steps=[RemediationStep(description="Restart", action="restart:service=checkout")]
    )


@pytest.fixture
def store(clock: FakeClock) -> InMemoryExecutionStore:
    """Provide an in-memory execution store driven by the fake clock."""
    return InMemoryExecutionStore(clock=clock)


@pytest.fixture
def tracker(store: InMemoryExecutionStore, clock: FakeClock) -> RemediationTracker:
    """Provide a tracker over the in-memory store."""
    return RemediationTracker(store, TrackerConfig(), clock=clock)


@pytest.fixture
def collector() -> RemediationMetricsCollector:
    """Provide a metrics collector with psutil readings stubbed out."""
    collector = RemediationMetricsCollector(MetricsConfig())
    collector.read_resources = lambda: {  # type: ignore[method-assign]
        "cpu.usage": 10.0,
        "memory.usage": 40.0,
        "disk.usage": 50.0,
        "network.bytes_sent": 1000.0,
        "network.bytes_recv": 2000.0,
    }
    return collector


@pytest.fixture
def validator(collector: RemediationMetricsCollector) -> RemediationValidator:
    """Provide a validator with the default allow-lists."""
    return RemediationValidator(metrics_collector=collector)


@pytest.fixture
def executor(
    validator: RemediationValidator,
    collector: RemediationMetricsCollector,
    tracker: RemediationTracker,
) -> RemediationExecutor:
    """Provide an executor with the default stop-on-first-success policy."""
    return RemediationExecutor(validator, collector, tracker, ExecutorConfig())

"""Remediation validation, execution, metrics and tracking."""

from .background import PeriodicTask
from .executor import NO_SUCCESSFUL_STRATEGY, RemediationExecutor
from .metrics import RemediationMetricsCollector
from .store import ExecutionStore, InMemoryExecutionStore, RedisExecutionStore
from .strategy import CallbackStrategy, RemediationStrategy, StrategyResult
from .tracker import RemediationTracker
from .validator import RemediationValidator, parse_action_spec

__all__ = [
    "NO_SUCCESSFUL_STRATEGY",
    "CallbackStrategy",
    "ExecutionStore",
    "InMemoryExecutionStore",
    "PeriodicTask",
    "RedisExecutionStore",
    "RemediationExecutor",
    "RemediationMetricsCollector",
    "RemediationStrategy",
    "RemediationTracker",
    "RemediationValidator",
    "StrategyResult",
    "parse_action_spec",
]

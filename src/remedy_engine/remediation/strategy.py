"""
Remediation strategy capability.

This module provides:
- StrategyResult: Outcome of one strategy execution
- RemediationStrategy: Base class concrete strategies derive from
- CallbackStrategy: Strategy built from async callbacks

Concrete strategies are registered with the executor from outside the
engine; the engine only relies on the interface below.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from remedy_engine.models.analysis import ErrorAnalysisResult
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.remediation import RemediationPlan


class StrategyResult(BaseModel):
    """Result of a strategy execution.

    Attributes:
        success: Whether the strategy completed successfully
        message: Human-readable result message
        error: Error details if the strategy failed
        timestamp: When the strategy finished
        metadata: Additional data recorded on the action
    """

    success: bool
    message: str = ""
    error: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)


class RemediationStrategy(ABC):
    """A pluggable unit of corrective action.

    Attributes:
        name: Unique strategy name
        priority: Higher runs first
        can_rollback: Whether ``get_rollback_plan`` returns a usable plan
    """

    name: str = "strategy"
    priority: int = 0
    can_rollback: bool = False

    def can_handle(self, analysis: ErrorAnalysisResult) -> bool:
        """Whether this strategy addresses the analyzed error. Defaults to True."""
        return True

    async def can_apply(self, context: ErrorContext) -> bool:
        """Whether the strategy may run right now for this context."""
        return True

    @abstractmethod
    async def execute(self, context: ErrorContext) -> StrategyResult:
        """Run the strategy. May raise; the executor records the failure."""

    async def get_rollback_plan(self, context: ErrorContext) -> RemediationPlan | None:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, priority={self.priority})"


StrategyCallback = Callable[[ErrorContext], Awaitable[StrategyResult | bool]]
HandlePredicate = Callable[[ErrorAnalysisResult], bool]
ApplyPredicate = Callable[[ErrorContext], Awaitable[bool]]


class CallbackStrategy(RemediationStrategy):
    """Strategy assembled from callbacks.

    The execute callback may return a StrategyResult or a plain bool.

    Usage:
        async def restart(context: ErrorContext) -> bool:
            return await orchestrator.restart(context.service_name)

        executor.register_strategy(
            CallbackStrategy(
                "restart-service",
                restart,
                priority=10,
                handles=lambda analysis: analysis.error_type == "TimeoutException",
            )
        )
    """

    def __init__(
        self,
        name: str,
        callback: StrategyCallback,
        priority: int = 0,
        handles: HandlePredicate | None = None,
        applies: ApplyPredicate | None = None,
        rollback_plan: RemediationPlan | None = None,
    ) -> None:
        self.name = name
        self.priority = priority
        self.can_rollback = rollback_plan is not None
        self._callback = callback
        self._handles = handles
        self._applies = applies
        self._rollback_plan = rollback_plan

    def can_handle(self, analysis: ErrorAnalysisResult) -> bool:
        if self._handles is None:
            return True
        return self._handles(analysis)

    async def can_apply(self, context: ErrorContext) -> bool:
        if self._applies is None:
            return True
        return await self._applies(context)

    async def execute(self, context: ErrorContext) -> StrategyResult:
        outcome = await self._callback(context)
        if isinstance(outcome, StrategyResult):
            return outcome
        success = bool(outcome)
        return StrategyResult(
            success=success,
            message=f"{self.name} {'succeeded' if success else 'failed'}",
            error=None if success else f"{self.name} reported failure",
        )

    async def get_rollback_plan(self, context: ErrorContext) -> RemediationPlan | None:
        if self._rollback_plan is None:
            return None
        return self._rollback_plan.model_copy(deep=True)

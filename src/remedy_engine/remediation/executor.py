"""
Remediation executor.

Orchestrates one remediation run:

1. Create the execution (RUNNING) and persist it
2. Validate the plan; a ValidationError ends the run as FAILED
3. Select registered strategies that can handle the analysis, highest
   priority first (ties keep registration order)
4. For each candidate: stop if cancelled, skip it if it cannot be applied,
   otherwise execute it and record an action. Under STOP_ON_FIRST_SUCCESS
   the first success completes the run; under TRY_ALL every candidate runs.
   A strategy that raises becomes a failed action and iteration continues.
5. Without completion: any success gives PARTIAL, none gives FAILED
6. Collect metrics, stamp the end time and persist the final record. The
   final write happens even when the run is aborted by an exception. The
   collector forgets the run once its metrics are part of the record.

State machine:

    RUNNING -> COMPLETED | PARTIAL | FAILED | CANCELLED | SKIPPED
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import UTC, datetime

from remedy_engine.config.settings import ExecutionPolicy, ExecutorConfig
from remedy_engine.exceptions import (
    ExecutionError,
    MetricsCollectionError,
    TrackingError,
    ValidationError,
)
from remedy_engine.logging_config import bind_remediation_context
from remedy_engine.models.analysis import ErrorAnalysisResult
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.remediation import (
    ActionExecution,
    RemediationExecution,
    RemediationMetrics,
    RemediationPlan,
    RemediationStatus,
    RemediationStep,
    ValidationResult,
)
from remedy_engine.remediation.metrics import RemediationMetricsCollector
from remedy_engine.remediation.strategy import RemediationStrategy
from remedy_engine.remediation.tracker import RemediationTracker
from remedy_engine.remediation.validator import RemediationValidator

logger = logging.getLogger(__name__)

NO_SUCCESSFUL_STRATEGY = "no successful remediation strategy found."

Clock = Callable[[], datetime]


class RemediationExecutor:
    """Runs remediation strategies for analyzed errors.

    Args:
        validator: Plan, strategy and outcome validation
        metrics_collector: Per-remediation metrics
        tracker: Execution persistence
        config: Iteration policy, step retries, severity threshold
        clock: Source of "now", injectable for tests

    Example:
        executor = RemediationExecutor(validator, collector, tracker)
        executor.register_strategy(RestartServiceStrategy())
        execution = await executor.execute_remediation(analysis, context)
    """

    def __init__(
        self,
        validator: RemediationValidator,
        metrics_collector: RemediationMetricsCollector,
        tracker: RemediationTracker,
        config: ExecutorConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.validator = validator
        self.metrics_collector = metrics_collector
        self.tracker = tracker
        self.config = config or ExecutorConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._strategies: list[RemediationStrategy] = []
        self._running: dict[str, RemediationExecution] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}

    # -------------------------------------------------------------------------
    # Strategies and plans
    # -------------------------------------------------------------------------

    @property
    def strategies(self) -> list[RemediationStrategy]:
        return list(self._strategies)

    def register_strategy(self, strategy: RemediationStrategy) -> None:
        """Register a strategy.

        Raises:
            ValueError: If strategy is None or its name is already registered
        """
        if strategy is None:
            raise ValueError("strategy must not be None")
        if any(s.name == strategy.name for s in self._strategies):
            raise ValueError(f"Strategy '{strategy.name}' is already registered")
        self._strategies.append(strategy)
        logger.info("Registered strategy %s (priority %d)", strategy.name, strategy.priority)

    def create_remediation_plan(self, analysis: ErrorAnalysisResult) -> RemediationPlan:
        """Derive a plan from the suggested actions of an analysis."""
        if analysis is None:
            raise ValueError("analysis must not be None")
        return RemediationPlan(
            steps=[
                RemediationStep(
                    description=action.description,
                    action=action.action,
                    parameters=dict(action.parameters),
                    max_retries=self.config.default_step_max_retries,
                )
                for action in analysis.suggested_actions
            ],
            context=analysis.explanation,
        )

    def _candidates(self, analysis: ErrorAnalysisResult) -> list[RemediationStrategy]:
        candidates = []
        for strategy in self._strategies:
            try:
                if strategy.can_handle(analysis):
                    candidates.append(strategy)
            except Exception as e:
                logger.warning("Strategy %s can_handle raised: %s", strategy.name, str(e))
        # sorted() is stable, so equal priorities keep registration order
        return sorted(candidates, key=lambda s: -s.priority)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_remediation(
        self,
        analysis: ErrorAnalysisResult,
        context: ErrorContext,
        plan: RemediationPlan | None = None,
        execution_id: str | None = None,
    ) -> RemediationExecution:
        """Run a remediation for an analyzed error.

        Args:
            analysis: Analysis the strategies are selected for
            context: Error occurrence being remediated
            plan: Plan to validate (derived from the analysis when omitted)
            execution_id: Id to use for the execution (generated when omitted)

        Returns:
            The finished execution

        Raises:
            ValueError: If analysis or context is None
            TrackingError: If the execution cannot be persisted; when the
                final write fails, the error carries the finished execution
        """
        if analysis is None or context is None:
            raise ValueError("analysis and context must not be None")

        plan = plan if plan is not None else self.create_remediation_plan(analysis)
        execution = RemediationExecution(
            execution_id=execution_id or str(uuid.uuid4()),
            correlation_id=context.correlation_id,
            service_name=context.service_name,
            error_type=context.error_type,
            start_time=self._clock(),
        )
        bind_remediation_context(
            correlation_id=context.correlation_id,
            service_name=context.service_name,
            execution_id=execution.execution_id,
        )

        await self.tracker.track_execution(execution)
        self._running[execution.execution_id] = execution
        cancel_event = self._cancel_events.setdefault(execution.execution_id, asyncio.Event())

        logger.info(
            "Starting remediation %s for %s in %s",
            execution.execution_id,
            context.error_type,
            context.service_name,
        )

        try:
            await self._run(execution, analysis, context, plan, cancel_event)
        except asyncio.CancelledError:
            execution.status = RemediationStatus.CANCELLED
            execution.error = "Remediation task cancelled"
            raise
        finally:
            await self._finish(execution)

        return execution

    async def _run(
        self,
        execution: RemediationExecution,
        analysis: ErrorAnalysisResult,
        context: ErrorContext,
        plan: RemediationPlan,
        cancel_event: asyncio.Event,
    ) -> None:
        threshold = self.config.auto_remediation_severity
        if context.severity.rank < threshold.rank:
            execution.status = RemediationStatus.SKIPPED
            execution.error = (
                f"Error severity '{context.severity.value}' is below the "
                f"auto-remediation threshold '{threshold.value}'"
            )
            logger.info("Skipping remediation %s: %s", execution.execution_id, execution.error)
            return

        try:
            execution.validation = await self.validator.validate_plan(plan, context)
        except ValidationError as e:
            execution.status = RemediationStatus.FAILED
            execution.error = f"Remediation plan validation failed: {e}"
            execution.validation = ValidationResult(is_successful=False, message=str(e))
            logger.warning("Remediation %s: %s", execution.execution_id, execution.error)
            return

        await self._start_resource_snapshot(execution.execution_id)

        for strategy in self._candidates(analysis):
            if cancel_event.is_set():
                break

            validation = await self.validator.validate_strategy(strategy, context)
            if not validation.is_successful:
                logger.info(
                    "Skipping strategy %s for %s: %s",
                    strategy.name,
                    execution.execution_id,
                    validation.message,
                )
                continue

            action = await self._execute_strategy(execution.execution_id, strategy, context)
            execution.actions.append(action)

            if action.success and self.config.policy == ExecutionPolicy.STOP_ON_FIRST_SUCCESS:
                execution.status = RemediationStatus.COMPLETED
                break

        if cancel_event.is_set() and execution.status == RemediationStatus.RUNNING:
            execution.status = RemediationStatus.CANCELLED
            execution.error = "Remediation cancelled"
        elif execution.status == RemediationStatus.RUNNING:
            self._resolve_outcome(execution)

        try:
            execution.metrics = await self._collect_metrics(execution.execution_id, context)
        except MetricsCollectionError as e:
            logger.warning(
                "Metrics collection failed for %s: %s", execution.execution_id, str(e)
            )

    def _resolve_outcome(self, execution: RemediationExecution) -> None:
        successes = [a for a in execution.actions if a.success]
        if (
            self.config.policy == ExecutionPolicy.TRY_ALL
            and execution.actions
            and len(successes) == len(execution.actions)
        ):
            execution.status = RemediationStatus.COMPLETED
        elif successes:
            execution.status = RemediationStatus.PARTIAL
        else:
            execution.status = RemediationStatus.FAILED
            last_error = execution.actions[-1].error if execution.actions else None
            execution.error = last_error or NO_SUCCESSFUL_STRATEGY

    async def _execute_strategy(
        self, execution_id: str, strategy: RemediationStrategy, context: ErrorContext
    ) -> ActionExecution:
        action = ActionExecution(name=strategy.name, started_at=self._clock())
        started = time.monotonic()
        try:
            result = await strategy.execute(context)
            action.success = result.success
            action.error = result.error
            action.metadata = {"message": result.message, **result.metadata}
        except Exception as e:
            error = ExecutionError(strategy.name, str(e))
            logger.error("Remediation %s: %s", execution_id, str(error))
            action.success = False
            action.error = str(error)
            action.metadata = {"exception_type": type(e).__name__}
        action.ended_at = self._clock()

        await self.metrics_collector.record_strategy_metrics(
            execution_id, strategy.name, time.monotonic() - started, action.success
        )
        return action

    async def _start_resource_snapshot(self, execution_id: str) -> None:
        try:
            await self.metrics_collector.start_resource_snapshot(execution_id)
        except MetricsCollectionError as e:
            logger.warning("Resource snapshot failed for %s: %s", execution_id, str(e))

    async def _collect_metrics(
        self, execution_id: str, context: ErrorContext
    ) -> RemediationMetrics:
        await self.metrics_collector.finish_resource_snapshot(execution_id)
        return await self.metrics_collector.build_metrics(execution_id, context)

    async def _release_metrics(self, execution: RemediationExecution) -> None:
        # The final record owns the metrics from here on
        if execution.metrics is None and execution.actions:
            execution.metrics = await self.metrics_collector.build_metrics(execution.execution_id)
        await self.metrics_collector.clear(execution.execution_id)

    async def _finish(self, execution: RemediationExecution) -> None:
        if execution.status == RemediationStatus.RUNNING:
            execution.status = RemediationStatus.FAILED
            execution.error = execution.error or "Remediation aborted unexpectedly"
        execution.end_time = self._clock()
        self._running.pop(execution.execution_id, None)
        self._cancel_events.pop(execution.execution_id, None)
        await self._release_metrics(execution)

        logger.info(
            "Remediation %s finished: %s (%d actions)",
            execution.execution_id,
            execution.status.value,
            len(execution.actions),
        )
        try:
            await self.tracker.track_execution(execution)
        except TrackingError as e:
            raise TrackingError(
                str(e), remediation_id=execution.execution_id, execution=execution
            ) from e

    # -------------------------------------------------------------------------
    # Queries and control
    # -------------------------------------------------------------------------

    async def _lookup(self, execution_id: str) -> RemediationExecution | None:
        if execution_id is None:
            raise ValueError("execution_id must not be None")
        running = self._running.get(execution_id)
        if running is not None:
            return running
        return await self.tracker.get_execution(execution_id)

    async def get_remediation_status(self, execution_id: str) -> RemediationStatus | None:
        """Status of an execution; None if unknown."""
        execution = await self._lookup(execution_id)
        return execution.status if execution is not None else None

    async def get_execution(self, execution_id: str) -> RemediationExecution | None:
        return await self._lookup(execution_id)

    async def cancel_remediation(self, execution_id: str) -> bool:
        """Request cancellation of a running execution.

        Cancellation is cooperative: the run stops before its next strategy
        attempt and ends CANCELLED.

        Returns:
            True if the execution was running, False otherwise
        """
        if execution_id is None:
            raise ValueError("execution_id must not be None")
        event = self._cancel_events.get(execution_id)
        if event is None:
            logger.info("Cannot cancel %s: not running", execution_id)
            return False
        event.set()
        logger.info("Cancellation requested for %s", execution_id)
        return True

    async def get_execution_history(self, execution_id: str) -> list[RemediationExecution]:
        """Executions sharing the correlation id of the given execution."""
        execution = await self._lookup(execution_id)
        if execution is None:
            return []
        return await self.tracker.get_correlated_executions(
            execution.correlation_id, execution.service_name
        )

    async def get_execution_metrics(self, execution_id: str) -> RemediationMetrics | None:
        """Metrics of an execution; None if unknown."""
        execution = await self._lookup(execution_id)
        if execution is None:
            return None
        if execution.metrics is not None:
            return execution.metrics
        return await self.metrics_collector.build_metrics(execution_id)

    async def validate_remediation(
        self, analysis: ErrorAnalysisResult, context: ErrorContext
    ) -> ValidationResult:
        """Classify the outcome of a remediation for an analyzed error."""
        if analysis is None or context is None:
            raise ValueError("analysis and context must not be None")
        result = await self.validator.validate_remediation(context)
        result.details["analysis_confidence"] = analysis.confidence
        return result

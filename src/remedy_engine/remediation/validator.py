"""
Remediation validator.

Validates remediation plans before execution and the outcome of a
remediation afterwards.

Plan validation:
1. The plan must exist and hold at least one step or strategy
2. Each step/strategy spec ``type:key=value;key=value`` is parsed; the type
   must be allow-listed and every required parameter present
3. Pluggable plan-to-context checks (error type suitability, severity
   appropriateness, dependency consideration) must pass

Post-execution validation composes three checks (error resolved, system
healthy, metrics within thresholds) into one of four outcomes:

    resolved  healthy  within   outcome
    yes       yes      yes      successful
    yes       no       -        partially successful (unhealthy)
    no        yes      -        partially successful (unresolved)
    otherwise                   failed

Only the first row is a success.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from remedy_engine.config.settings import ValidatorConfig
from remedy_engine.exceptions import MetricsCollectionError, ValidationError
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.remediation import RemediationPlan, RemediationStep, ValidationResult
from remedy_engine.remediation.strategy import RemediationStrategy

if TYPE_CHECKING:
    from remedy_engine.remediation.metrics import RemediationMetricsCollector

logger = logging.getLogger(__name__)

PlanCheck = Callable[[RemediationPlan, ErrorContext], Awaitable[bool]]
OutcomeCheck = Callable[[ErrorContext], Awaitable[bool]]

MSG_SUCCESS = "Remediation successful: Error resolved and system healthy"
MSG_RESOLVED_UNHEALTHY = (
    "Remediation partially successful: Error resolved but system health issues detected"
)
MSG_HEALTHY_UNRESOLVED = (
    "Remediation partially successful: System healthy but error not fully resolved"
)
MSG_FAILED = "Remediation failed: Error not resolved and system health issues detected"


def parse_action_spec(spec: str) -> tuple[str, dict[str, str]]:
    """Parse ``type:key=value;key=value`` into (type, parameters).

    The type is lower-cased. Parameters are split on ``;`` and then on ``=``;
    a part that does not split into exactly two pieces is ignored. Keys and
    values are trimmed.

    Example:
        >>> parse_action_spec("restart:service=checkout; timeout=30")
        ('restart', {'service': 'checkout', 'timeout': '30'})
    """
    kind, _, raw_params = (spec or "").partition(":")
    params: dict[str, str] = {}
    for part in raw_params.split(";"):
        pieces = part.split("=")
        if len(pieces) == 2:
            params[pieces[0].strip()] = pieces[1].strip()
    return kind.strip().lower(), params


async def _pass(*_: object) -> bool:
    return True


class RemediationValidator:
    """Validates remediation plans, strategies and outcomes.

    Args:
        config: Allow-lists, strictness, timeout and retries
        metrics_collector: Used by the default metrics-threshold check
        error_type_check: Plan-to-context check for error type suitability
        severity_check: Plan-to-context check for severity appropriateness
        dependency_check: Plan-to-context check for dependency consideration
        error_resolved_check: Post-execution check: is the error gone?
        system_health_check: Post-execution check: is the system healthy?
        metrics_check: Post-execution check: are metrics within thresholds?
    """

    def __init__(
        self,
        config: ValidatorConfig | None = None,
        metrics_collector: RemediationMetricsCollector | None = None,
        *,
        error_type_check: PlanCheck | None = None,
        severity_check: PlanCheck | None = None,
        dependency_check: PlanCheck | None = None,
        error_resolved_check: OutcomeCheck | None = None,
        system_health_check: OutcomeCheck | None = None,
        metrics_check: OutcomeCheck | None = None,
    ) -> None:
        self.config = config or ValidatorConfig()
        self.metrics_collector = metrics_collector
        self.error_type_check: PlanCheck = error_type_check or _pass
        self.severity_check: PlanCheck = severity_check or _pass
        self.dependency_check: PlanCheck = dependency_check or _pass
        self.error_resolved_check: OutcomeCheck = error_resolved_check or _pass
        self.system_health_check: OutcomeCheck = system_health_check or _pass
        self.metrics_check: OutcomeCheck = metrics_check or self._metrics_within_thresholds

    @property
    def timeout(self) -> float:
        return self.config.validation_timeout_seconds

    # -------------------------------------------------------------------------
    # Plan validation
    # -------------------------------------------------------------------------

    async def validate_plan(
        self, plan: RemediationPlan | None, context: ErrorContext
    ) -> ValidationResult:
        """Validate a plan against the allow-lists and the error context.

        On success ``plan.is_validated`` is set.

        Raises:
            ValidationError: If the plan is non-conformant or validation
                exceeds the configured timeout
        """
        if plan is None:
            raise ValidationError("Remediation plan is null.")

        try:
            result = await asyncio.wait_for(self._validate_plan(plan, context), self.timeout)
        except TimeoutError:
            raise ValidationError(
                f"Remediation plan validation timed out after {self.timeout:g}s"
            ) from None

        plan.is_validated = True
        logger.debug("Validated plan with %d steps", len(plan.steps))
        return result

    async def _validate_plan(
        self, plan: RemediationPlan, context: ErrorContext
    ) -> ValidationResult:
        if not plan.steps and not plan.strategies:
            raise ValidationError("Remediation plan has no steps or strategies.")

        for step in plan.steps:
            self.validate_step(step)
        for spec in plan.strategies:
            self.validate_strategy_spec(spec)

        if not await self.error_type_check(plan, context):
            raise ValidationError(
                f"Remediation plan is not suitable for error type '{context.error_type}'"
            )
        if not await self.severity_check(plan, context):
            raise ValidationError(
                f"Remediation plan is not appropriate for severity '{context.severity.value}'"
            )
        if not await self.dependency_check(plan, context):
            raise ValidationError("Remediation plan does not account for service dependencies")

        return ValidationResult(
            is_successful=True,
            message="Remediation plan validated",
            details={"steps": len(plan.steps), "strategies": len(plan.strategies)},
        )

    def validate_step(self, step: RemediationStep) -> tuple[str, dict[str, str]]:
        """Validate one step; inline ``parameters`` override parsed ones.

        Raises:
            ValidationError: Unknown type (strict mode) or missing parameter
        """
        kind, params = parse_action_spec(step.action)
        params.update(step.parameters)
        self._check_spec("step", kind, params, self.config.allowed_step_types)
        return kind, params

    def validate_strategy_spec(self, spec: str) -> tuple[str, dict[str, str]]:
        """Validate one strategy spec string.

        Raises:
            ValidationError: Unknown type (strict mode) or missing parameter
        """
        kind, params = parse_action_spec(spec)
        self._check_spec("strategy", kind, params, self.config.allowed_strategy_types)
        return kind, params

    def _check_spec(
        self,
        label: str,
        kind: str,
        params: dict[str, str],
        allowed: dict[str, list[str]],
    ) -> None:
        required = allowed.get(kind)
        if required is None:
            if self.config.strict_validation:
                raise ValidationError(f"Invalid {label} type: {kind}")
            logger.warning("Unknown %s type '%s' accepted (strict validation off)", label, kind)
            return

        for param in required:
            if not params.get(param):
                raise ValidationError(
                    f"Missing required parameter '{param}' for {label} type '{kind}'"
                )

    # -------------------------------------------------------------------------
    # Strategy validation
    # -------------------------------------------------------------------------

    async def validate_strategy(
        self, strategy: RemediationStrategy, context: ErrorContext
    ) -> ValidationResult:
        """Check that a strategy can be applied to the context.

        Never raises for a misbehaving strategy: timeouts and exceptions
        produce an unsuccessful result.
        """
        if strategy is None:
            raise ValueError("strategy must not be None")

        try:
            applicable = await asyncio.wait_for(strategy.can_apply(context), self.timeout)
        except TimeoutError:
            return ValidationResult(
                is_successful=False,
                message=f"Strategy '{strategy.name}' validation timed out",
                details={"strategy": strategy.name, "timeout": self.timeout},
            )
        except Exception as e:
            logger.warning("Strategy %s validation raised: %s", strategy.name, str(e))
            return ValidationResult(
                is_successful=False,
                message=f"Strategy '{strategy.name}' validation failed: {e}",
                details={"strategy": strategy.name, "error": str(e)},
            )

        if not applicable:
            return ValidationResult(
                is_successful=False,
                message=f"Strategy '{strategy.name}' cannot be applied",
                details={"strategy": strategy.name},
            )
        return ValidationResult(
            is_successful=True,
            message=f"Strategy '{strategy.name}' can be applied",
            details={"strategy": strategy.name},
        )

    # -------------------------------------------------------------------------
    # Outcome validation
    # -------------------------------------------------------------------------

    async def validate_remediation(self, context: ErrorContext) -> ValidationResult:
        """Classify the outcome of a remediation."""
        if context is None:
            raise ValueError("context must not be None")

        resolved = await self._run_check("error_resolved", self.error_resolved_check, context)
        healthy = await self._run_check("system_healthy", self.system_health_check, context)
        within = await self._run_check("metrics_within_threshold", self.metrics_check, context)

        if resolved and healthy and within:
            message, success = MSG_SUCCESS, True
        elif resolved and not healthy:
            message, success = MSG_RESOLVED_UNHEALTHY, False
        elif not resolved and healthy:
            message, success = MSG_HEALTHY_UNRESOLVED, False
        else:
            message, success = MSG_FAILED, False

        return ValidationResult(
            is_successful=success,
            message=message,
            details={
                "error_resolved": resolved,
                "system_healthy": healthy,
                "metrics_within_threshold": within,
            },
        )

    async def _run_check(self, name: str, check: OutcomeCheck, context: ErrorContext) -> bool:
        """Run a check with timeout and retries; failures count as False."""
        attempts = self.config.max_validation_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return bool(await asyncio.wait_for(check(context), self.timeout))
            except TimeoutError:
                logger.warning("Check %s timed out (attempt %d/%d)", name, attempt, attempts)
            except Exception as e:
                logger.warning(
                    "Check %s raised (attempt %d/%d): %s", name, attempt, attempts, str(e)
                )
        return False

    async def _metrics_within_thresholds(self, context: ErrorContext) -> bool:
        if self.metrics_collector is None:
            return True
        try:
            snapshot = await self.metrics_collector.collect_metrics(context)
        except MetricsCollectionError as e:
            logger.warning("Metrics unavailable for threshold check: %s", str(e))
            return False
        return self.metrics_collector.within_thresholds(snapshot)

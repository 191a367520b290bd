"""
FastAPI routes for the remediation control plane.

Endpoints:
- GET  /remediations/{execution_id}          Execution record
- POST /remediations/{execution_id}/cancel   Cooperative cancellation
- GET  /remediations/{execution_id}/history  Executions sharing its correlation id
- GET  /remediations/{execution_id}/metrics  Execution metrics
- GET  /statistics                           Aggregates by service / error type
- GET  /health                               Store and model readiness

Unknown execution ids answer 404; store failures answer 503. /health answers
503 when the store is down and reports a model that is not ready as degraded.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status

from remedy_engine.api.schemas import (
    CancelResponse,
    DependencyCheck,
    ErrorResponse,
    HealthResponse,
    HealthStatus,
    HistoryResponse,
)
from remedy_engine.clients.llm import LLMClient
from remedy_engine.exceptions import TrackingError
from remedy_engine.models.remediation import (
    RemediationExecution,
    RemediationMetrics,
    RemediationStatistics,
)
from remedy_engine.remediation.executor import RemediationExecutor
from remedy_engine.remediation.tracker import RemediationTracker

logger = logging.getLogger(__name__)

NOT_FOUND = {404: {"model": ErrorResponse, "description": "Execution not found"}}


def _store_unavailable(e: TrackingError) -> HTTPException:
    logger.error("Execution store unavailable: %s", str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Execution store unavailable",
    )


def _not_found(execution_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Execution {execution_id} not found",
    )


def create_router(
    executor: RemediationExecutor,
    tracker: RemediationTracker,
    llm_client: LLMClient | None = None,
) -> APIRouter:
    """Create the control-plane router.

    Args:
        executor: Executor owning running remediations
        tracker: Tracker used for statistics and the store health check
        llm_client: Client whose model readiness /health reports (optional)

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["remediations"])

    @router.get(
        "/remediations/{execution_id}",
        response_model=RemediationExecution,
        summary="Get remediation execution",
        responses=NOT_FOUND,
    )
    async def get_remediation(execution_id: str) -> RemediationExecution:
        try:
            execution = await executor.get_execution(execution_id)
        except TrackingError as e:
            raise _store_unavailable(e) from e
        if execution is None:
            raise _not_found(execution_id)
        return execution

    @router.post(
        "/remediations/{execution_id}/cancel",
        response_model=CancelResponse,
        summary="Cancel a running remediation",
        responses=NOT_FOUND,
    )
    async def cancel_remediation(execution_id: str) -> CancelResponse:
        try:
            execution = await executor.get_execution(execution_id)
        except TrackingError as e:
            raise _store_unavailable(e) from e
        if execution is None:
            raise _not_found(execution_id)

        cancelled = await executor.cancel_remediation(execution_id)
        return CancelResponse(
            execution_id=execution_id, cancelled=cancelled, status=execution.status
        )

    @router.get(
        "/remediations/{execution_id}/history",
        response_model=HistoryResponse,
        summary="Get executions sharing the correlation id",
        responses=NOT_FOUND,
    )
    async def get_history(execution_id: str) -> HistoryResponse:
        try:
            execution = await executor.get_execution(execution_id)
            if execution is None:
                raise _not_found(execution_id)
            history = await executor.get_execution_history(execution_id)
        except TrackingError as e:
            raise _store_unavailable(e) from e
        return HistoryResponse(
            execution_id=execution_id,
            correlation_id=execution.correlation_id,
            executions=history,
        )

    @router.get(
        "/remediations/{execution_id}/metrics",
        response_model=RemediationMetrics,
        summary="Get remediation metrics",
        responses=NOT_FOUND,
    )
    async def get_metrics(execution_id: str) -> RemediationMetrics:
        try:
            metrics = await executor.get_execution_metrics(execution_id)
        except TrackingError as e:
            raise _store_unavailable(e) from e
        if metrics is None:
            raise _not_found(execution_id)
        return metrics

    @router.get(
        "/statistics",
        response_model=RemediationStatistics,
        summary="Get remediation statistics",
    )
    async def get_statistics(
        service: str | None = Query(default=None, description="Service filter"),
        error_type: str | None = Query(default=None, description="Error type filter"),
    ) -> RemediationStatistics:
        try:
            return await tracker.get_statistics(service_name=service, error_type=error_type)
        except TrackingError as e:
            raise _store_unavailable(e) from e

    @router.get(
        "/health",
        response_model=HealthResponse,
        summary="Check the execution store and the analysis model",
        responses={503: {"model": HealthResponse, "description": "Service unhealthy"}},
    )
    async def get_health(response: Response) -> HealthResponse:
        checks: dict[str, DependencyCheck] = {}
        if await tracker.is_available():
            checks["store"] = DependencyCheck(status=HealthStatus.HEALTHY)
        else:
            checks["store"] = DependencyCheck(
                status=HealthStatus.UNHEALTHY, message="Execution store unavailable"
            )

        if llm_client is not None:
            details = {"model": llm_client.config.model, "endpoint": llm_client.config.endpoint}
            if await llm_client.is_model_ready():
                checks["llm"] = DependencyCheck(status=HealthStatus.HEALTHY, details=details)
            else:
                # analysis still works through fallbacks
                checks["llm"] = DependencyCheck(
                    status=HealthStatus.DEGRADED,
                    message="LLM model is not ready",
                    details=details,
                )

        statuses = {check.status for check in checks.values()}
        if HealthStatus.UNHEALTHY in statuses:
            overall = HealthStatus.UNHEALTHY
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        elif HealthStatus.DEGRADED in statuses:
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.HEALTHY
        return HealthResponse(status=overall, checks=checks)

    return router

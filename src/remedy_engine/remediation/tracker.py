"""
Remediation tracker.

Persists remediation executions and keeps time-ordered secondary indices:

    {prefix}execution:{id}          JSON record, TTL = retention period
    {prefix}service:{service}       sorted set of ids, score = start time
    {prefix}errorType:{error_type}  sorted set of ids, score = start time
    {prefix}services                set of indexed service names
    {prefix}errorTypes              set of indexed error types

Each index is trimmed to ``max_stored_executions`` after every write by
removing its lowest-ranked (oldest) members. Record and index writes are
independent, so an index may briefly point at a missing record; such ids
are skipped on read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import ValidationError as PydanticValidationError

from remedy_engine.config.settings import TrackerConfig
from remedy_engine.exceptions import TrackingError
from remedy_engine.models.remediation import (
    RemediationExecution,
    RemediationStatistics,
    RemediationStatus,
)
from remedy_engine.remediation.background import PeriodicTask
from remedy_engine.remediation.store import ExecutionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _score(moment: datetime | None, default: float) -> float:
    return moment.timestamp() if moment is not None else default


class RemediationTracker:
    """Persists executions and answers history/statistics queries.

    Args:
        store: Backing execution store
        config: Key prefix, retention and index limits
        clock: Source of "now", injectable for tests
    """

    def __init__(
        self,
        store: ExecutionStore,
        config: TrackerConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.config = config or TrackerConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._cleanup_task = PeriodicTask(
            "tracker-cleanup", self.config.cleanup_interval_seconds, self.cleanup_expired
        )

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    def execution_key(self, execution_id: str) -> str:
        return f"{self.config.key_prefix}execution:{execution_id}"

    def service_key(self, service_name: str) -> str:
        return f"{self.config.key_prefix}service:{service_name}"

    def error_type_key(self, error_type: str) -> str:
        return f"{self.config.key_prefix}errorType:{error_type}"

    @property
    def services_key(self) -> str:
        return f"{self.config.key_prefix}services"

    @property
    def error_types_key(self) -> str:
        return f"{self.config.key_prefix}errorTypes"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic cleanup of expired executions."""
        self._cleanup_task.start()

    async def stop(self) -> None:
        await self._cleanup_task.stop()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def track_execution(self, execution: RemediationExecution) -> None:
        """Persist an execution and index it by service and error type.

        Writing the same execution again overwrites the record.

        Raises:
            ValueError: If execution is None
            TrackingError: If the store rejects a write
        """
        if execution is None:
            raise ValueError("execution must not be None")

        execution_id = execution.execution_id
        score = execution.start_time.timestamp()
        try:
            await self.store.set(
                self.execution_key(execution_id),
                execution.model_dump_json(),
                self.config.retention_period_seconds,
            )
            for index_key, registry_key, name in (
                (self.service_key(execution.service_name), self.services_key, execution.service_name),
                (
                    self.error_type_key(execution.error_type),
                    self.error_types_key,
                    execution.error_type,
                ),
            ):
                await self.store.zadd(index_key, execution_id, score)
                await self.store.sadd(registry_key, name)
                await self._trim(index_key)
        except TrackingError as e:
            logger.error("Failed to track execution %s: %s", execution_id, str(e))
            raise TrackingError(
                f"Failed to track execution {execution_id}: {e}", remediation_id=execution_id
            ) from e

        logger.debug("Tracked execution %s (%s)", execution_id, execution.status.value)

    async def _trim(self, index_key: str) -> None:
        limit = self.config.max_stored_executions
        if await self.store.zcard(index_key) > limit:
            removed = await self.store.zremrangebyrank(index_key, 0, -limit - 1)
            logger.debug("Trimmed %d oldest entries from %s", removed, index_key)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_execution(self, execution_id: str) -> RemediationExecution | None:
        """Fetch an execution; None if absent or expired.

        Raises:
            TrackingError: If the store fails or the record is corrupt
        """
        if execution_id is None:
            raise ValueError("execution_id must not be None")
        try:
            raw = await self.store.get(self.execution_key(execution_id))
        except TrackingError as e:
            raise TrackingError(str(e), remediation_id=execution_id) from e
        if raw is None:
            return None
        try:
            return RemediationExecution.model_validate_json(raw)
        except PydanticValidationError as e:
            raise TrackingError(
                f"Corrupt execution record {execution_id}: {e}", remediation_id=execution_id
            ) from e

    async def _resolve(self, execution_ids: list[str]) -> list[RemediationExecution]:
        executions = []
        for execution_id in execution_ids:
            execution = await self.get_execution(execution_id)
            if execution is None:
                logger.debug("Skipping dangling index entry %s", execution_id)
                continue
            executions.append(execution)
        return executions

    async def _query_index(
        self, index_key: str, start: datetime | None, end: datetime | None
    ) -> list[RemediationExecution]:
        ids = await self.store.zrangebyscore(
            index_key, _score(start, float("-inf")), _score(end, float("inf"))
        )
        return await self._resolve(ids)

    async def get_service_executions(
        self,
        service_name: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RemediationExecution]:
        """Executions of a service started within [start, end], oldest first."""
        return await self._query_index(self.service_key(service_name), start, end)

    async def get_error_type_executions(
        self,
        error_type: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RemediationExecution]:
        """Executions for an error type started within [start, end], oldest first."""
        return await self._query_index(self.error_type_key(error_type), start, end)

    async def get_correlated_executions(
        self, correlation_id: str, service_name: str
    ) -> list[RemediationExecution]:
        """Executions of a service that share a correlation id."""
        executions = await self.get_service_executions(service_name)
        return [e for e in executions if e.correlation_id == correlation_id]

    async def get_statistics(
        self,
        service_name: str | None = None,
        error_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> RemediationStatistics:
        """Aggregate counts, success rate and average duration.

        The service filter selects the index when given, otherwise the
        error type; with neither, every indexed service is included.
        """
        if service_name:
            executions = await self.get_service_executions(service_name, start, end)
            if error_type:
                executions = [e for e in executions if e.error_type == error_type]
        elif error_type:
            executions = await self.get_error_type_executions(error_type, start, end)
        else:
            executions = []
            seen: set[str] = set()
            for name in sorted(await self.store.smembers(self.services_key)):
                for execution in await self.get_service_executions(name, start, end):
                    if execution.execution_id not in seen:
                        seen.add(execution.execution_id)
                        executions.append(execution)

        return self.compute_statistics(executions)

    @staticmethod
    def compute_statistics(executions: list[RemediationExecution]) -> RemediationStatistics:
        total = len(executions)
        if total == 0:
            return RemediationStatistics()

        def count(status: RemediationStatus) -> int:
            return sum(1 for e in executions if e.status == status)

        durations = [e.duration_seconds for e in executions if e.duration_seconds is not None]
        successful = count(RemediationStatus.COMPLETED)
        return RemediationStatistics(
            total_executions=total,
            successful_executions=successful,
            failed_executions=count(RemediationStatus.FAILED),
            partial_executions=count(RemediationStatus.PARTIAL),
            skipped_executions=count(RemediationStatus.SKIPPED),
            cancelled_executions=count(RemediationStatus.CANCELLED),
            average_duration_seconds=sum(durations) / len(durations) if durations else 0.0,
            success_rate=successful / total,
        )

    async def is_available(self) -> bool:
        """Whether the store answers a ping; failures are logged, not raised."""
        try:
            return await self.store.ping()
        except TrackingError as e:
            logger.warning("Execution store ping failed: %s", str(e))
            return False

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    async def cleanup_expired(self) -> int:
        """Remove index entries and records older than the retention period.

        Service and error-type names whose index ends up empty are dropped
        from their registries.

        Returns:
            Number of distinct executions removed
        """
        cutoff = self._clock() - timedelta(seconds=self.config.retention_period_seconds)
        cutoff_score = cutoff.timestamp()
        removed: set[str] = set()

        for registry_key, key_for in (
            (self.services_key, self.service_key),
            (self.error_types_key, self.error_type_key),
        ):
            for name in await self.store.smembers(registry_key):
                index_key = key_for(name)
                expired = await self.store.zrangebyscore(index_key, float("-inf"), cutoff_score)
                if expired:
                    await self.store.delete(*(self.execution_key(i) for i in expired))
                    await self.store.zrem(index_key, *expired)
                    removed.update(expired)
                if await self.store.zcard(index_key) == 0:
                    await self.store.srem(registry_key, name)

        if removed:
            logger.info("Cleaned up %d expired executions", len(removed))
        return len(removed)

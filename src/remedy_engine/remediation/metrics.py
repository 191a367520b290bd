"""
Remediation metrics collector.

Captures metrics for remediations:

- Context snapshots with process/system resource readings (psutil)
- Named, timestamped series per remediation with a rolling history window
- Per-strategy and per-step metrics
- Resource usage deltas over a remediation
- Linear trends over the most recent samples

History is owned by the collector instance and keyed by remediation id.
Entries older than the history window (relative to the latest write) are
evicted lazily on write. Remediations with no recent samples are dropped
whole by ``evict_expired``, which the periodic sampler runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import psutil

from remedy_engine.config.settings import MetricsConfig
from remedy_engine.exceptions import MetricsCollectionError
from remedy_engine.models.context import ErrorContext
from remedy_engine.models.remediation import MetricValue, RemediationMetrics
from remedy_engine.remediation.background import PeriodicTask

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MAX_TREND_WINDOW = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RemediationMetricsCollector:
    """Collects and retains metrics per remediation.

    Args:
        config: Thresholds, timeouts and window sizes
        clock: Source of "now", injectable for tests
    """

    def __init__(self, config: MetricsConfig | None = None, clock: Clock | None = None) -> None:
        self.config = config or MetricsConfig()
        self._clock = clock or _utcnow
        self._history: dict[str, dict[str, list[MetricValue]]] = {}
        self._strategy_metrics: dict[str, dict[str, dict[str, Any]]] = {}
        self._step_metrics: dict[str, dict[str, dict[str, Any]]] = {}
        self._baselines: dict[str, dict[str, float]] = {}
        self._resource_usage: dict[str, dict[str, float]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self.system_samples: deque[dict[str, Any]] = deque(maxlen=60)
        self._sampler = PeriodicTask(
            "metrics-sampler", self.config.collection_interval_seconds, self.sample_system
        )

    def _lock_for(self, remediation_id: str) -> asyncio.Lock:
        lock = self._locks.get(remediation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[remediation_id] = lock
        return lock

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start periodic system sampling."""
        self._sampler.start()

    async def stop(self) -> None:
        await self._sampler.stop()

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def read_resources(self) -> dict[str, float]:
        """Read current process/system resource usage (blocking).

        Keys ``cpu.usage``, ``memory.usage`` and ``disk.usage`` are
        percentages comparable with the configured thresholds.
        """
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage("/")
        network = psutil.net_io_counters()
        readings: dict[str, float] = {
            "cpu.usage": psutil.cpu_percent(interval=None),
            "memory.usage": memory.percent,
            "disk.usage": disk.percent,
            "network.bytes_sent": float(network.bytes_sent),
            "network.bytes_recv": float(network.bytes_recv),
        }
        if self.config.enable_detailed_metrics:
            try:
                process = psutil.Process()
                readings["process.memory_rss_mb"] = process.memory_info().rss / (1024 * 1024)
                readings["process.threads"] = float(process.num_threads())
            except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
                logger.debug("Process details unavailable: %s", str(e))
        return readings

    async def _read_resources(self) -> dict[str, float]:
        try:
            return await asyncio.to_thread(self.read_resources)
        except (psutil.Error, OSError) as e:
            raise MetricsCollectionError(f"Failed to read resource usage: {e}") from e

    async def collect_metrics(self, context: ErrorContext) -> dict[str, Any]:
        """Take a metrics snapshot for an error context.

        The snapshot holds the standard identity fields, one ``context_<key>``
        entry per metadata/additional-context item and the current resource
        readings.

        Raises:
            ValueError: If context is None
            MetricsCollectionError: On failure or when the collection
                timeout is exceeded
        """
        if context is None:
            raise ValueError("context must not be None")
        timeout = self.config.collection_timeout_seconds
        try:
            return await asyncio.wait_for(self._collect(context), timeout)
        except TimeoutError:
            raise MetricsCollectionError(
                f"Metrics collection timed out after {timeout:g}s"
            ) from None

    async def _collect(self, context: ErrorContext) -> dict[str, Any]:
        snapshot: dict[str, Any] = {
            "timestamp": self._clock().isoformat(),
            "service_name": context.service_name,
            "operation_name": context.operation_name,
            "error_type": context.error_type,
            "correlation_id": context.correlation_id,
        }
        for key, value in {**context.metadata, **context.additional_context}.items():
            snapshot[f"context_{key}"] = value
        snapshot.update(await self._read_resources())
        return snapshot

    def within_thresholds(self, snapshot: dict[str, Any]) -> bool:
        """Whether every thresholded numeric reading is at or below its limit."""
        for name, limit in self.config.metric_thresholds.items():
            value = snapshot.get(name)
            if _is_number(value) and value > limit:
                logger.info("Metric %s=%.2f exceeds threshold %.2f", name, value, limit)
                return False
        return True

    async def sample_system(self) -> dict[str, Any]:
        """Record one system-wide sample (used by periodic sampling)."""
        sample: dict[str, Any] = {"timestamp": self._clock().isoformat()}
        sample.update(await self._read_resources())
        self.system_samples.append(sample)
        await self.evict_expired()
        return sample

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    async def record_metric(self, remediation_id: str, name: str, value: Any) -> None:
        """Append a timestamped value to a remediation's named series.

        Samples older than the history window relative to this write are
        evicted from every series of the remediation.
        """
        if remediation_id is None or name is None:
            raise ValueError("remediation_id and name must not be None")

        async with self._lock_for(remediation_id):
            now = self._clock()
            series = self._history.setdefault(remediation_id, {})
            series.setdefault(name, []).append(MetricValue(value=value, timestamp=now))

            cutoff = now - timedelta(seconds=self.config.history_window_seconds)
            for metric_name in list(series):
                kept = [m for m in series[metric_name] if m.timestamp >= cutoff]
                if kept:
                    series[metric_name] = kept
                else:
                    del series[metric_name]

    async def get_metrics_history(self, remediation_id: str) -> dict[str, list[MetricValue]]:
        """Retained series of a remediation (empty if unknown)."""
        async with self._lock_for(remediation_id):
            series = self._history.get(remediation_id, {})
            return {name: list(values) for name, values in series.items()}

    async def calculate_trends(
        self, remediation_id: str, window: int | None = None
    ) -> dict[str, float]:
        """Slope per metric, in units per second.

        Uses the most recent ``window`` (at most 10) numeric samples of each
        series: ``(last - first) / elapsed_seconds``. Series with fewer than
        two numeric samples are skipped.
        """
        size = min(window or self.config.trend_window, MAX_TREND_WINDOW)
        history = await self.get_metrics_history(remediation_id)
        trends: dict[str, float] = {}
        for name, values in history.items():
            samples = [m for m in values if _is_number(m.value)][-size:]
            if len(samples) < 2:
                continue
            elapsed = (samples[-1].timestamp - samples[0].timestamp).total_seconds()
            delta = float(samples[-1].value) - float(samples[0].value)
            trends[name] = delta / elapsed if elapsed > 0 else 0.0
        return trends

    # -------------------------------------------------------------------------
    # Strategy / step metrics
    # -------------------------------------------------------------------------

    async def record_strategy_metrics(
        self, remediation_id: str, strategy_name: str, duration_seconds: float, success: bool
    ) -> None:
        """Record the duration and outcome of one strategy attempt."""
        async with self._lock_for(remediation_id):
            self._strategy_metrics.setdefault(remediation_id, {})[strategy_name] = {
                "duration_seconds": duration_seconds,
                "success": success,
            }
        await self.record_metric(
            remediation_id, f"strategy.{strategy_name}.duration", duration_seconds
        )

    async def record_step_metrics(
        self, remediation_id: str, step_name: str, metrics: dict[str, Any]
    ) -> None:
        async with self._lock_for(remediation_id):
            self._step_metrics.setdefault(remediation_id, {})[step_name] = dict(metrics)

    # -------------------------------------------------------------------------
    # Resource usage
    # -------------------------------------------------------------------------

    async def start_resource_snapshot(self, remediation_id: str) -> None:
        """Remember the resource readings at the start of a remediation."""
        readings = await self._read_resources()
        async with self._lock_for(remediation_id):
            self._baselines[remediation_id] = readings

    async def finish_resource_snapshot(self, remediation_id: str) -> dict[str, float]:
        """Compute cpu/memory/disk/network deltas since the start snapshot.

        Returns an empty dict when no start snapshot exists.
        """
        async with self._lock_for(remediation_id):
            baseline = self._baselines.pop(remediation_id, None)
        if baseline is None:
            return {}

        current = await self._read_resources()

        def total_bytes(readings: dict[str, float]) -> float:
            return readings["network.bytes_sent"] + readings["network.bytes_recv"]

        usage = {
            "cpu": current["cpu.usage"] - baseline["cpu.usage"],
            "memory": current["memory.usage"] - baseline["memory.usage"],
            "disk": current["disk.usage"] - baseline["disk.usage"],
            "network": total_bytes(current) - total_bytes(baseline),
        }
        async with self._lock_for(remediation_id):
            self._resource_usage[remediation_id] = usage
        return usage

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    async def build_metrics(
        self, remediation_id: str, context: ErrorContext | None = None
    ) -> RemediationMetrics:
        """Assemble everything recorded for a remediation.

        Raises:
            MetricsCollectionError: If a context snapshot was requested and
                could not be collected
        """
        snapshot = await self.collect_metrics(context) if context is not None else {}
        series = await self.get_metrics_history(remediation_id)
        trends = await self.calculate_trends(remediation_id)
        async with self._lock_for(remediation_id):
            return RemediationMetrics(
                execution_id=remediation_id,
                resource_usage=dict(self._resource_usage.get(remediation_id, {})),
                step_metrics=dict(self._step_metrics.get(remediation_id, {})),
                strategy_metrics=dict(self._strategy_metrics.get(remediation_id, {})),
                series=series,
                trends=trends,
                snapshot=snapshot,
            )

    async def evict_expired(self) -> list[str]:
        """Forget remediations whose newest sample is older than the history window.

        Returns:
            Ids of the evicted remediations
        """
        cutoff = self._clock() - timedelta(seconds=self.config.history_window_seconds)
        expired = []
        for remediation_id in list(self._locks):
            if remediation_id in self._baselines or self._locks[remediation_id].locked():
                continue
            series = self._history.get(remediation_id, {})
            newest = [values[-1].timestamp for values in series.values() if values]
            if newest and max(newest) >= cutoff:
                continue
            expired.append(remediation_id)

        for remediation_id in expired:
            await self.clear(remediation_id)
        if expired:
            logger.debug("Evicted metrics of %d finished remediations", len(expired))
        return expired

    async def clear(self, remediation_id: str) -> None:
        """Forget everything recorded for a remediation."""
        async with self._lock_for(remediation_id):
            self._history.pop(remediation_id, None)
            self._strategy_metrics.pop(remediation_id, None)
            self._step_metrics.pop(remediation_id, None)
            self._baselines.pop(remediation_id, None)
            self._resource_usage.pop(remediation_id, None)
        self._locks.pop(remediation_id, None)

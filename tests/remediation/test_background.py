"""Tests for PeriodicTask."""

from __future__ import annotations

import asyncio

import pytest

from remedy_engine.remediation.background import PeriodicTask


class TestPeriodicTask:
    """Tests for scheduling, failure handling and shutdown."""

    def test_interval_must_be_positive(self) -> None:
        async def noop() -> None:
            return None

        with pytest.raises(ValueError):
            PeriodicTask("bad", 0, noop)

    @pytest.mark.asyncio
    async def test_runs_repeatedly_until_stopped(self) -> None:
        ran = asyncio.Event()
        calls: list[int] = []

        async def tick() -> None:
            calls.append(1)
            if len(calls) >= 3:
                ran.set()

        task = PeriodicTask("tick", 0.01, tick)
        task.start()
        await asyncio.wait_for(ran.wait(), timeout=2)
        await task.stop()

        assert not task.is_running
        assert task.run_count >= 3

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_schedule(self) -> None:
        ran = asyncio.Event()
        calls: list[int] = []

        async def flaky() -> None:
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("transient")
            ran.set()

        task = PeriodicTask("flaky", 0.01, flaky)
        task.start()
        await asyncio.wait_for(ran.wait(), timeout=2)
        await task.stop()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_run_immediately(self) -> None:
        ran = asyncio.Event()

        async def tick() -> None:
            ran.set()

        task = PeriodicTask("eager", 3600, tick, run_immediately=True)
        task.start()
        await asyncio.wait_for(ran.wait(), timeout=2)
        await task.stop()

        assert task.run_count == 1

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_safe(self) -> None:
        async def noop() -> None:
            return None

        task = PeriodicTask("idle", 3600, noop)
        await task.stop()

        task.start()
        first = task._task
        task.start()

        assert task._task is first
        await task.stop()
        assert task._task is None

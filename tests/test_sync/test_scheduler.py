"""Tests for the periodic sync scheduler."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from nfl_data_sync.core.scheduler import FULL_SYNC_JOB_ID, SyncScheduler
from nfl_data_sync.services.sync import SyncAlreadyRunningError


def mock_orchestrator(is_running: bool = False) -> MagicMock:
    orchestrator = MagicMock()
    orchestrator.is_running = is_running
    orchestrator.sync_all = AsyncMock(return_value=MagicMock(succeeded=[], failed=[], skipped=[]))
    orchestrator.wait_until_idle = AsyncMock()
    return orchestrator


@pytest.mark.asyncio
async def test_start_registers_interval_job_and_stop_waits_for_run():
    orchestrator = mock_orchestrator()
    scheduler = SyncScheduler(orchestrator, interval_hours=6)

    await scheduler.start()
    try:
        job = scheduler.scheduler.get_job(FULL_SYNC_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 6 * 3600
        assert scheduler.next_run_time() is not None
    finally:
        await scheduler.stop()

    assert scheduler.running is False
    orchestrator.wait_until_idle.assert_awaited_once()


@pytest.mark.asyncio
async def test_start_twice_is_a_no_op():
    scheduler = SyncScheduler(mock_orchestrator())

    await scheduler.start()
    first = scheduler.scheduler
    await scheduler.start()

    assert scheduler.scheduler is first
    await scheduler.stop()


@pytest.mark.asyncio
async def test_run_full_sync_skips_while_a_run_is_in_flight():
    orchestrator = mock_orchestrator(is_running=True)

    await SyncScheduler(orchestrator).run_full_sync()

    orchestrator.sync_all.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_full_sync_swallows_lock_race_and_failures():
    orchestrator = mock_orchestrator()
    orchestrator.sync_all.side_effect = SyncAlreadyRunningError("busy")
    scheduler = SyncScheduler(orchestrator)

    await scheduler.run_full_sync()

    orchestrator.sync_all.side_effect = RuntimeError("database went away")
    await scheduler.run_full_sync()

    assert orchestrator.sync_all.await_count == 2


def test_next_run_time_before_start_is_none():
    assert SyncScheduler(mock_orchestrator()).next_run_time() is None

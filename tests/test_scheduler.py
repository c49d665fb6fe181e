"""
Tests for the scheduler module.

Validates due-job selection, failure isolation, and shutdown handling.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from tcgvault.pipeline.scheduler import Scheduler
from tcgvault.sync.base import SyncJob, SyncResult


def make_job(domain: str, needed: bool = True, active: bool = False, success: bool = True) -> MagicMock:
    job = MagicMock(spec=SyncJob)
    job.domain = domain
    job.interval_hours = 24
    job.is_sync_active.return_value = active
    job.is_sync_needed = AsyncMock(return_value=needed)
    job.trigger_sync = AsyncMock(
        return_value=SyncResult(domain=domain, success=success, items_synced=10 if success else 0)
    )
    return job


@pytest.mark.asyncio
async def test_run_once_triggers_due_jobs_only() -> None:
    due = make_job("pricing")
    fresh = make_job("catalog", needed=False)
    busy = make_job("tcgcsv", active=True)
    scheduler = Scheduler([due, fresh, busy], check_interval=60)

    results = await scheduler.run_once()

    assert [r.domain for r in results] == ["pricing"]
    due.trigger_sync.assert_awaited_once()
    fresh.trigger_sync.assert_not_awaited()
    busy.is_sync_needed.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_once_isolates_job_errors() -> None:
    broken = make_job("pricing")
    broken.is_sync_needed.side_effect = RuntimeError("db down")
    failed = make_job("catalog", success=False)
    healthy = make_job("tcgcsv")
    scheduler = Scheduler([broken, failed, healthy], check_interval=60)

    results = await scheduler.run_once()

    assert [(r.domain, r.success) for r in results] == [("catalog", False), ("tcgcsv", True)]
    healthy.trigger_sync.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_once_stops_after_shutdown() -> None:
    job = make_job("pricing")
    scheduler = Scheduler([job], check_interval=60)

    await scheduler.shutdown()

    assert scheduler.is_shutting_down
    assert await scheduler.run_once() == []
    job.is_sync_needed.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_loops_until_shutdown() -> None:
    job = make_job("pricing", needed=False)
    scheduler = Scheduler([job], check_interval=0.01)

    task = asyncio.create_task(scheduler.run())
    await asyncio.sleep(0.05)
    await scheduler.shutdown()
    await asyncio.wait_for(task, timeout=1)

    assert job.is_sync_needed.await_count >= 2
    job.trigger_sync.assert_not_awaited()

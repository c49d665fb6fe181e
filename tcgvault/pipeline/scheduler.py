"""
TCG Vault — Sync Scheduler

Long-running loop that checks each sync job's is_sync_needed() and triggers
it. Jobs run one after another; a failing job never stops the others, and
failures are left on the sync_status row for a manual re-trigger.

Default cadences:
- Pricing sync: 12 hours
- Catalog sync: 24 hours
- Sealed product (CSV mirror) sync: 24 hours
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Sequence
from typing import Any

import structlog

from tcgvault.config import settings
from tcgvault.sync.base import SyncJob, SyncResult

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Async scheduler for sync jobs.

    Job state (last success, running/failed) lives in sync_status, so a
    restart picks up where the previous process left off.
    """

    def __init__(
        self,
        jobs: Sequence[SyncJob],
        check_interval: float | None = None,
    ):
        self.jobs = list(jobs)
        self.check_interval = (
            check_interval if check_interval is not None else settings.SCHEDULER_CHECK_INTERVAL_SECONDS
        )
        self._shutdown_event = asyncio.Event()

    async def shutdown(self) -> None:
        """Signal graceful shutdown to the scheduler loop."""
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutdown_event.is_set()

    async def run_once(self) -> list[SyncResult]:
        """
        One pass over every job: trigger those that are due.

        Returns:
            Results of the jobs that ran.
        """
        results: list[SyncResult] = []
        for job in self.jobs:
            if self._shutdown_event.is_set():
                break
            if job.is_sync_active():
                continue
            try:
                if not await job.is_sync_needed():
                    continue
                result = await job.trigger_sync()
            except Exception as e:
                logger.error(
                    "scheduler_job_error",
                    domain=job.domain,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue

            results.append(result)
            logger.info(
                "scheduler_job_finished",
                domain=job.domain,
                success=result.success,
                items_synced=result.items_synced,
                next_check_in_hours=job.interval_hours,
            )
        return results

    async def run(self) -> None:
        """
        Main scheduler loop. Runs until shutdown is signaled.
        """
        logger.info(
            "scheduler_started",
            jobs={job.domain: job.interval_hours for job in self.jobs},
            check_interval_seconds=self.check_interval,
        )

        try:
            while not self._shutdown_event.is_set():
                try:
                    await self.run_once()

                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.check_interval,
                    )
                except asyncio.TimeoutError:
                    # No shutdown signal; next pass
                    continue
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(self.check_interval)

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(jobs: Sequence[SyncJob], check_interval: float | None = None) -> None:
    """
    Run the scheduler with SIGTERM/SIGINT triggering graceful shutdown.

    Args:
        jobs: Sync jobs to drive.
        check_interval: Seconds between passes.
    """
    scheduler = Scheduler(jobs, check_interval)

    def handle_signal(_signum: int, _frame: Any) -> None:
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise

"""
TCG Vault — Sync Job Base

Shared lifecycle for the bulk refresh jobs:

- is_sync_needed(): age of the last successful run against the job interval
- trigger_sync(): runs the job unless one is already in flight (in-memory
  guard, overlapping calls are rejected, not queued), records running /
  completed / failed on the domain's sync_status row
- get_status() / get_stats()

Failures are never retried automatically. They are recorded on the
sync_status row and returned as SyncResult(success=False) for a manual
re-trigger.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcgvault.config import SyncState
from tcgvault.models.sync_status import SyncStatus
from tcgvault.utils.db import as_utc, utcnow

logger = structlog.get_logger(__name__)

ALREADY_RUNNING_MESSAGE = "Sync already in progress"


class SyncResult(BaseModel):
    """Outcome of one trigger_sync() call."""
    domain: str
    success: bool
    message: str = ""
    items_synced: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class SyncJob:
    """
    Base class for sync jobs. Subclasses set `domain` and implement `_run`,
    returning (items_synced, details).
    """

    domain: str = ""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_hours: float,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._interval_hours = interval_hours
        self._clock = clock
        self._active = False

    @property
    def interval_hours(self) -> float:
        return self._interval_hours

    def is_sync_active(self) -> bool:
        return self._active

    async def get_status(self) -> SyncStatus | None:
        async with self._session_factory() as session:
            return await session.get(SyncStatus, self.domain)

    async def is_sync_needed(self) -> bool:
        """
        True when the last successful run is older than the job interval,
        when there has never been one, or when status can't be read.
        """
        try:
            status = await self.get_status()
        except SQLAlchemyError as e:
            logger.error(
                "sync_status_check_failed",
                domain=self.domain,
                error=str(e),
                error_type=type(e).__name__,
            )
            return True

        last_success = as_utc(status.last_success_at) if status else None
        if last_success is None:
            return True

        age_hours = (self._clock() - last_success).total_seconds() / 3600
        logger.debug("sync_age_checked", domain=self.domain, age_hours=round(age_hours, 1))
        return age_hours >= self._interval_hours

    async def trigger_sync(self, **options: Any) -> SyncResult:
        """
        Run the job now.

        Args:
            **options: Passed through to the job implementation.

        Returns:
            SyncResult; success=False with an "already in progress" message
            when another run is active.
        """
        if self._active:
            logger.info("sync_already_running", domain=self.domain)
            return SyncResult(domain=self.domain, success=False, message=ALREADY_RUNNING_MESSAGE)

        self._active = True
        started_at = self._clock()
        logger.info("sync_started", domain=self.domain, options=options or None)

        try:
            await self._mark_running(started_at)
            items_synced, details = await self._run(**options)
            finished_at = self._clock()
            await self._mark_completed(finished_at, items_synced)
        except Exception as e:
            logger.error(
                "sync_failed",
                domain=self.domain,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._record_failure(e)
            return SyncResult(
                domain=self.domain,
                success=False,
                message="Sync failed",
                started_at=started_at,
                finished_at=self._clock(),
                error=str(e),
            )
        finally:
            self._active = False

        logger.info(
            "sync_completed",
            domain=self.domain,
            items_synced=items_synced,
            duration_seconds=round((finished_at - started_at).total_seconds(), 2),
        )
        return SyncResult(
            domain=self.domain,
            success=True,
            message="Sync completed",
            items_synced=items_synced,
            started_at=started_at,
            finished_at=finished_at,
            details=details,
        )

    async def auto_sync_if_needed(self, **options: Any) -> SyncResult | None:
        """Trigger a sync when is_sync_needed(); None when nothing ran."""
        if not await self.is_sync_needed():
            logger.debug("sync_not_needed", domain=self.domain)
            return None
        return await self.trigger_sync(**options)

    async def get_stats(self) -> dict[str, Any]:
        status = await self.get_status()
        return {
            "domain": self.domain,
            "is_active": self._active,
            "status": status.status if status else SyncState.IDLE.value,
            "last_run_at": as_utc(status.last_run_at) if status else None,
            "last_success_at": as_utc(status.last_success_at) if status else None,
            "last_error": status.last_error if status else None,
            "items_synced": status.items_synced if status else 0,
            "run_count": status.run_count if status else 0,
            "interval_hours": self._interval_hours,
        }

    # -----------------------------------------------------------------------
    # Job body
    # -----------------------------------------------------------------------

    async def _run(self, **options: Any) -> tuple[int, dict[str, Any]]:
        raise NotImplementedError

    # -----------------------------------------------------------------------
    # sync_status bookkeeping
    # -----------------------------------------------------------------------

    async def _load_status(self, session: AsyncSession) -> SyncStatus:
        status = await session.get(SyncStatus, self.domain)
        if status is None:
            status = SyncStatus(domain=self.domain, status=SyncState.IDLE.value, items_synced=0, run_count=0)
            session.add(status)
        return status

    async def _mark_running(self, started_at: datetime) -> None:
        async with self._session_factory() as session:
            status = await self._load_status(session)
            status.status = SyncState.RUNNING.value
            status.last_run_at = started_at
            status.last_error = None
            status.run_count = (status.run_count or 0) + 1
            await session.commit()

    async def _mark_completed(self, finished_at: datetime, items_synced: int) -> None:
        async with self._session_factory() as session:
            status = await self._load_status(session)
            status.status = SyncState.COMPLETED.value
            status.last_success_at = finished_at
            status.items_synced = items_synced
            await session.commit()

    async def _record_failure(self, error: Exception) -> None:
        try:
            async with self._session_factory() as session:
                status = await self._load_status(session)
                status.status = SyncState.FAILED.value
                status.last_error = f"{type(error).__name__}: {error}"
                await session.commit()
        except Exception as e:
            logger.error(
                "sync_status_update_failed",
                domain=self.domain,
                error=str(e),
                error_type=type(e).__name__,
            )

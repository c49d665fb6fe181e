"""
TCG Vault — Provider Request Quotas

Local counters against documented provider limits. Each outbound request
calls consume() first; when the daily or monthly allowance is used up the
call raises QuotaExceededError before anything is sent.

Counters roll over on UTC calendar boundaries and are process-local.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class QuotaExceededError(RuntimeError):
    """Raised when a provider's local request allowance is exhausted."""

    def __init__(self, provider: str, window: str, limit: int):
        super().__init__(f"{provider} {window} request limit reached ({limit})")
        self.provider = provider
        self.window = window
        self.limit = limit


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class RequestQuota:
    """
    Daily + monthly request counter for one provider.

    Usage:
        quota = RequestQuota("pricecharting", daily_limit=100, monthly_limit=1000)
        quota.consume()   # raises QuotaExceededError when exhausted
    """

    def __init__(
        self,
        provider: str,
        daily_limit: int,
        monthly_limit: int,
        today: Callable[[], date] = _utc_today,
    ):
        self.provider = provider
        self.daily_limit = daily_limit
        self.monthly_limit = monthly_limit
        self._today = today
        current = today()
        self._day = current
        self._month = (current.year, current.month)
        self.daily_used = 0
        self.monthly_used = 0

    def _roll_over(self) -> None:
        current = self._today()
        if current != self._day:
            self._day = current
            self.daily_used = 0
        month = (current.year, current.month)
        if month != self._month:
            self._month = month
            self.monthly_used = 0

    def consume(self, count: int = 1) -> None:
        """Reserve `count` requests or raise QuotaExceededError."""
        self._roll_over()
        if self.daily_used + count > self.daily_limit:
            logger.warning("quota_exceeded", provider=self.provider, window="daily", limit=self.daily_limit)
            raise QuotaExceededError(self.provider, "daily", self.daily_limit)
        if self.monthly_used + count > self.monthly_limit:
            logger.warning("quota_exceeded", provider=self.provider, window="monthly", limit=self.monthly_limit)
            raise QuotaExceededError(self.provider, "monthly", self.monthly_limit)
        self.daily_used += count
        self.monthly_used += count

    def remaining(self) -> dict[str, Any]:
        self._roll_over()
        return {
            "provider": self.provider,
            "daily_remaining": max(0, self.daily_limit - self.daily_used),
            "monthly_remaining": max(0, self.monthly_limit - self.monthly_used),
            "daily_used": self.daily_used,
            "monthly_used": self.monthly_used,
        }

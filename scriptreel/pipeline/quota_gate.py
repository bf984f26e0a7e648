"""
Admission control for the shared daily generation budget.

One unit is reserved (counter incremented and persisted) BEFORE any provider
call. The read-decide-write cycle is retried when another request
updated the record in between.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Union

from .errors import QuotaStoreError
from .models import QuotaState, QuotaStatus
from .quota_store import QuotaStore

logger = logging.getLogger(__name__)

MAX_CAS_ATTEMPTS = 20


@dataclass(frozen=True)
class Admitted:
    state: QuotaState


@dataclass(frozen=True)
class Rejected:
    state: QuotaState
    resets_at: datetime
    retry_after_seconds: int


AdmitResult = Union[Admitted, Rejected]


def _as_utc(now: datetime) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def next_reset(now: datetime) -> datetime:
    """The next UTC midnight after `now`."""
    now = _as_utc(now)
    tomorrow = now.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=timezone.utc)


def seconds_until_reset(now: datetime) -> int:
    delta = next_reset(now) - _as_utc(now)
    return max(1, math.ceil(delta.total_seconds()))


class QuotaGate:
    def __init__(self, store: QuotaStore, daily_limit: int = 50, max_attempts: int = MAX_CAS_ATTEMPTS):
        self.store = store
        self.daily_limit = daily_limit
        self.max_attempts = max_attempts

    def _effective(self, state: QuotaState, now: datetime) -> QuotaState:
        # Lazy reset on the first request of a new UTC day; no catch-up for skipped days
        today = _as_utc(now).date()
        if state.last_reset_date != today:
            return QuotaState.fresh(today)
        return state

    def admit(self, now: datetime) -> AdmitResult:
        for attempt in range(self.max_attempts):
            stored = self.store.read()
            state = self._effective(stored, now)
            if state is not stored:
                logger.info(
                    f"New day detected ({state.last_reset_date}), resetting global counter "
                    f"(was {stored.count} on {stored.last_reset_date})"
                )

            if state.count >= self.daily_limit:
                logger.warning(f"Global daily limit of {self.daily_limit} reached")
                return Rejected(
                    state=state,
                    resets_at=next_reset(now),
                    retry_after_seconds=seconds_until_reset(now),
                )

            admitted = QuotaState(count=state.count + 1, last_reset_date=state.last_reset_date)
            if self.store.compare_and_set(stored, admitted):
                logger.info(f"Generation {admitted.count}/{self.daily_limit} for {admitted.last_reset_date}")
                return Admitted(state=admitted)

            logger.debug(f"Quota update conflict (attempt {attempt + 1}), re-reading")

        raise QuotaStoreError("Could not reserve generation quota. Please try again.")

    def status(self, now: datetime) -> QuotaStatus:
        """Read-only view of today's budget. Never writes."""
        state = self._effective(self.store.read(), now)
        used = min(state.count, self.daily_limit)
        return QuotaStatus(
            limit=self.daily_limit,
            used=state.count,
            remaining=self.daily_limit - used,
            resets_at=next_reset(now),
        )

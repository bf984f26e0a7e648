"""
Storage for the shared daily generation counter.

A single record, {"count": n, "lastResetDate": "YYYY-MM-DD"}, is read and
replaced as a unit. `compare_and_set` is the only write the gate uses; it
succeeds only when the stored record still equals what the caller read, so
two concurrent admissions can never both spend the same unit.

Backends:
  RedisQuotaStore: durable, shared by every worker (WATCH/MULTI/EXEC)
  MemoryQuotaStore: single-process fallback when Redis is unreachable
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Callable, Optional

import redis

from .models import QuotaState

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class QuotaStore(ABC):
    """read / write / compare_and_set over the single counter record."""

    backend = "abstract"

    @abstractmethod
    def read(self) -> QuotaState:
        """Return the current record, creating {0, today} on first access."""

    @abstractmethod
    def write(self, state: QuotaState) -> None:
        """Unconditionally replace the record."""

    @abstractmethod
    def compare_and_set(self, expected: QuotaState, new: QuotaState) -> bool:
        """Replace the record with `new` only if it still equals `expected`."""


# ── In-memory fallback ───────────────────────────────────────────────────────

class MemoryQuotaStore(QuotaStore):
    """
    Process-local counter guarded by a lock.

    Correct for a single worker process only. Every extra process or replica
    gets its own counter, so the effective limit multiplies.
    """

    backend = "memory"

    def __init__(
        self,
        initial: Optional[QuotaState] = None,
        today: Callable[[], date] = utc_today,
    ):
        self._lock = threading.Lock()
        self._state = initial
        self._today = today

    def read(self) -> QuotaState:
        with self._lock:
            if self._state is None:
                self._state = QuotaState.fresh(self._today())
            return self._state

    def write(self, state: QuotaState) -> None:
        with self._lock:
            self._state = state

    def compare_and_set(self, expected: QuotaState, new: QuotaState) -> bool:
        with self._lock:
            if self._state is not None and self._state != expected:
                return False
            self._state = new
            return True


# ── Redis ────────────────────────────────────────────────────────────────────

class RedisQuotaStore(QuotaStore):
    """Counter stored as one JSON string under a fixed key. The key never expires."""

    backend = "redis"

    def __init__(
        self,
        redis_client,
        key: str = "quota:dailyCounter",
        today: Callable[[], date] = utc_today,
    ):
        self._redis = redis_client
        self._key = key
        self._today = today

    def read(self) -> QuotaState:
        # SET NX so concurrent first readers agree on one initial record
        self._redis.set(self._key, QuotaState.fresh(self._today()).to_json(), nx=True)
        raw = self._redis.get(self._key)
        return QuotaState.from_json(raw)

    def write(self, state: QuotaState) -> None:
        self._redis.set(self._key, state.to_json())

    def compare_and_set(self, expected: QuotaState, new: QuotaState) -> bool:
        with self._redis.pipeline(transaction=True) as pipe:
            try:
                pipe.watch(self._key)
                raw = pipe.get(self._key)
                if raw is not None and QuotaState.from_json(raw) != expected:
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.set(self._key, new.to_json())
                pipe.execute()
                return True
            except redis.WatchError:
                logger.info(f"Quota record {self._key} changed during update, retrying")
                return False


def build_quota_store(redis_client, key: str) -> QuotaStore:
    """Redis-backed store when a client is available, else the in-memory fallback."""
    if redis_client is not None:
        logger.info(f"Quota store: redis (key={key})")
        return RedisQuotaStore(redis_client, key=key)

    logger.warning(
        "Quota store: in-memory fallback. The daily limit is per process; "
        "set REDIS_URL to share it across workers."
    )
    return MemoryQuotaStore()

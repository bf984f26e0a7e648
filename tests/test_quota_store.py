"""Tests for the quota record backends."""

from datetime import date
from unittest.mock import MagicMock

import redis

from scriptreel.pipeline import MemoryQuotaStore, QuotaState, RedisQuotaStore, build_quota_store

DAY = date(2026, 10, 18)


class TestQuotaStateLayout:
    def test_serializes_with_camel_case_date_key(self):
        state = QuotaState(count=7, last_reset_date=DAY)
        assert state.to_json() == '{"count":7,"lastResetDate":"2026-10-18"}'

    def test_parses_stored_record(self):
        state = QuotaState.from_json(b'{"count": 3, "lastResetDate": "2026-10-18"}')
        assert state == QuotaState(count=3, last_reset_date=DAY)


class TestMemoryQuotaStore:
    def test_first_read_creates_fresh_record_for_today(self):
        store = MemoryQuotaStore(today=lambda: DAY)
        assert store.read() == QuotaState(count=0, last_reset_date=DAY)

    def test_write_replaces_the_whole_record(self):
        store = MemoryQuotaStore(today=lambda: DAY)
        store.write(QuotaState(count=9, last_reset_date=date(2026, 1, 1)))
        assert store.read() == QuotaState(count=9, last_reset_date=date(2026, 1, 1))

    def test_compare_and_set_applies_when_unchanged(self):
        store = MemoryQuotaStore(initial=QuotaState(count=1, last_reset_date=DAY))
        current = store.read()
        assert store.compare_and_set(current, QuotaState(count=2, last_reset_date=DAY))
        assert store.read().count == 2

    def test_compare_and_set_refuses_stale_expectation(self):
        store = MemoryQuotaStore(initial=QuotaState(count=1, last_reset_date=DAY))
        stale = store.read()
        store.write(QuotaState(count=5, last_reset_date=DAY))
        assert not store.compare_and_set(stale, QuotaState(count=2, last_reset_date=DAY))
        assert store.read().count == 5


class TestRedisQuotaStore:
    def _client(self):
        client = MagicMock()
        pipe = client.pipeline.return_value.__enter__.return_value
        return client, pipe

    def test_read_initialises_with_set_nx(self):
        client, _ = self._client()
        client.get.return_value = '{"count":4,"lastResetDate":"2026-10-18"}'
        store = RedisQuotaStore(client, key="quota:dailyCounter", today=lambda: DAY)

        assert store.read() == QuotaState(count=4, last_reset_date=DAY)
        client.set.assert_called_once_with(
            "quota:dailyCounter", '{"count":0,"lastResetDate":"2026-10-18"}', nx=True
        )

    def test_compare_and_set_commits_inside_transaction(self):
        client, pipe = self._client()
        expected = QuotaState(count=4, last_reset_date=DAY)
        new = QuotaState(count=5, last_reset_date=DAY)
        pipe.get.return_value = expected.to_json()

        assert RedisQuotaStore(client).compare_and_set(expected, new)
        pipe.watch.assert_called_once_with("quota:dailyCounter")
        pipe.multi.assert_called_once()
        pipe.set.assert_called_once_with("quota:dailyCounter", new.to_json())
        pipe.execute.assert_called_once()

    def test_compare_and_set_refuses_when_record_differs(self):
        client, pipe = self._client()
        pipe.get.return_value = QuotaState(count=6, last_reset_date=DAY).to_json()

        ok = RedisQuotaStore(client).compare_and_set(
            QuotaState(count=4, last_reset_date=DAY), QuotaState(count=5, last_reset_date=DAY)
        )
        assert not ok
        pipe.unwatch.assert_called_once()
        pipe.execute.assert_not_called()

    def test_compare_and_set_reports_watch_conflict(self):
        client, pipe = self._client()
        expected = QuotaState(count=4, last_reset_date=DAY)
        pipe.get.return_value = expected.to_json()
        pipe.execute.side_effect = redis.WatchError()

        assert not RedisQuotaStore(client).compare_and_set(
            expected, QuotaState(count=5, last_reset_date=DAY)
        )


class TestBuildQuotaStore:
    def test_falls_back_to_memory_without_redis(self):
        store = build_quota_store(None, "quota:dailyCounter")
        assert isinstance(store, MemoryQuotaStore)
        assert store.backend == "memory"

    def test_uses_redis_when_client_available(self):
        store = build_quota_store(MagicMock(), "custom:key")
        assert isinstance(store, RedisQuotaStore)
        assert store.backend == "redis"

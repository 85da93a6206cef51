# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for musicview.decision_cache.

Tests: get/put, recency refresh, single-entry eviction, snapshot
(de)serialization, malformed-entry dropping, coalesced persistence,
store failure tolerance.
"""

from __future__ import annotations

import asyncio

import pytest

from musicview import Decision, Reason
from musicview.decision_cache import (
    MAX_ENTRIES,
    DecisionCache,
    decision_from_raw,
    decision_to_raw,
)
from musicview.settings import CACHE_KEY
from musicview.store import MemoryStore


def _d(is_match: bool = True, reason: Reason = Reason.STRONG, ts: float = 1.0) -> Decision:
    return Decision(is_match=is_match, reason=reason, timestamp=ts)


# =========================================================================
# In-memory behaviour
# =========================================================================


class TestGetPut:
    def test_miss(self):
        cache = DecisionCache()
        assert cache.get("id:x") is None
        assert cache.stats.misses == 1

    def test_none_key(self):
        cache = DecisionCache()
        cache.put(None, _d())
        assert len(cache) == 0
        assert cache.get(None) is None

    def test_put_then_get(self):
        cache = DecisionCache()
        d = _d(False, Reason.NON)
        cache.put("id:a", d)
        assert cache.get("id:a") == d
        assert cache.get("id:a") == d
        assert cache.get("id:a").timestamp == 1.0
        assert cache.stats.hits == 3

    def test_put_overwrites(self):
        cache = DecisionCache()
        cache.put("id:a", _d(True))
        cache.put("id:a", _d(False, Reason.NON))
        assert cache.get("id:a").is_match is False
        assert len(cache) == 1

    def test_get_refreshes_recency(self):
        cache = DecisionCache()
        for key in ("a", "b", "c"):
            cache.put(key, _d())
        cache.get("a")
        assert cache.keys() == ["b", "c", "a"]

    def test_peek_does_not_refresh(self):
        cache = DecisionCache()
        cache.put("a", _d())
        cache.put("b", _d())
        cache.peek("a")
        assert cache.keys() == ["a", "b"]


class TestBound:
    def test_default_bound(self):
        assert MAX_ENTRIES == 5000

    def test_overflow_evicts_exactly_one(self):
        cache = DecisionCache()
        for i in range(MAX_ENTRIES + 1):
            cache.put(f"id:{i}", _d())
        assert len(cache) == MAX_ENTRIES
        assert "id:0" not in cache
        assert "id:1" in cache
        assert cache.stats.evictions == 1

    def test_evicts_least_recently_touched(self):
        cache = DecisionCache(max_entries=3)
        cache.put("a", _d())
        cache.put("b", _d())
        cache.put("c", _d())
        cache.get("a")  # b is now the oldest
        cache.put("d", _d())
        assert cache.keys() == ["c", "a", "d"]

    def test_overwrite_does_not_evict(self):
        cache = DecisionCache(max_entries=2)
        cache.put("a", _d())
        cache.put("b", _d())
        cache.put("a", _d(False, Reason.NON))
        assert len(cache) == 2
        assert cache.stats.evictions == 0


# =========================================================================
# Snapshot format
# =========================================================================


class TestSnapshot:
    def test_to_raw(self):
        assert decision_to_raw(_d(False, Reason.MODERATE_DURATION, 5.0)) == {
            "isMatch": False,
            "reason": "moderate+duration",
            "timestamp": 5.0,
        }

    def test_from_raw_without_reason(self):
        d = decision_from_raw({"isMatch": True, "timestamp": 10})
        assert d == Decision(is_match=True, reason=Reason.RESTORED, timestamp=10.0)

    @pytest.mark.parametrize(
        "raw",
        [None, "yes", [], {}, {"isMatch": "true"}, {"isMatch": 1}, {"isMusic": True}],
    )
    def test_from_raw_malformed(self, raw):
        assert decision_from_raw(raw) is None

    def test_from_raw_bad_timestamp(self):
        assert decision_from_raw({"isMatch": False, "timestamp": "soon"}).timestamp == 0.0

    def test_merge_drops_malformed_only(self):
        cache = DecisionCache()
        merged = cache.merge_snapshot(
            {
                "id:good": {"isMatch": True, "reason": "strong", "timestamp": 1},
                "id:bad": {"isMatch": "nope"},
                "id:worse": 42,
                "title:ok": {"isMatch": False},
            }
        )
        assert merged == 2
        assert cache.keys() == ["id:good", "title:ok"]
        assert cache.stats.dropped_on_load == 2

    def test_merge_non_mapping(self):
        assert DecisionCache().merge_snapshot("garbage") == 0

    def test_merge_respects_bound(self):
        cache = DecisionCache(max_entries=2)
        cache.merge_snapshot({k: {"isMatch": True} for k in ("a", "b", "c")})
        assert cache.keys() == ["b", "c"]


# =========================================================================
# Persistence
# =========================================================================


class TestPersistence:
    async def test_load_from_store(self):
        store = MemoryStore({CACHE_KEY: {"id:a": {"isMatch": False, "reason": "non", "timestamp": 3}}})
        cache = DecisionCache(store)
        assert await cache.load() == 1
        assert cache.get("id:a") == Decision(False, Reason.NON, 3.0)

    async def test_load_without_store(self):
        assert await DecisionCache().load() == 0

    async def test_burst_coalesces_into_one_persist(self):
        store = MemoryStore()
        saves = []
        store.subscribe(lambda changes: saves.append(changes))
        cache = DecisionCache(store, persist_delay=0.02)

        for i in range(10):
            cache.put(f"id:{i}", _d())
        assert cache.persist_pending
        assert store.peek(CACHE_KEY) is None

        await asyncio.sleep(0.08)
        assert len(saves) == 1
        assert len(store.peek(CACHE_KEY)) == 10
        assert cache.stats.persists == 1

    async def test_put_after_persist_schedules_again(self):
        store = MemoryStore()
        cache = DecisionCache(store, persist_delay=0.01)
        cache.put("a", _d())
        await asyncio.sleep(0.05)
        cache.put("b", _d())
        assert cache.persist_pending
        await asyncio.sleep(0.05)
        assert set(store.peek(CACHE_KEY)) == {"a", "b"}

    async def test_flush_writes_now(self):
        store = MemoryStore()
        cache = DecisionCache(store, persist_delay=10.0)
        cache.put("a", _d())
        await cache.flush()
        assert not cache.persist_pending
        assert store.peek(CACHE_KEY) == {"a": decision_to_raw(_d())}

    async def test_store_write_failure_keeps_memory(self):
        store = MemoryStore()
        store.fail_writes = True
        cache = DecisionCache(store, persist_delay=0.01)
        cache.put("a", _d())
        await asyncio.sleep(0.05)
        assert cache.get("a") == _d()
        assert store.peek(CACHE_KEY) is None

    async def test_store_read_failure_loads_nothing(self):
        store = MemoryStore({CACHE_KEY: {"a": {"isMatch": True}}})
        store.fail_reads = True
        cache = DecisionCache(store)
        assert await cache.load() == 0
        assert len(cache) == 0

    async def test_snapshot_reloads_in_order(self):
        store = MemoryStore()
        first = DecisionCache(store)
        for key in ("a", "b", "c"):
            first.put(key, _d())
        first.get("a")
        await first.flush()

        second = DecisionCache(store)
        await second.load()
        assert second.keys() == ["b", "c", "a"]

    async def test_raising_store_is_contained(self):
        class BrokenStore(MemoryStore):
            async def save(self, data):
                raise RuntimeError("disk gone")

        cache = DecisionCache(BrokenStore(), persist_delay=0.01)
        cache.put("a", _d())
        await asyncio.sleep(0.05)
        assert cache._persist_task.done()
        assert cache._persist_task.exception() is None

        await cache.flush()
        assert cache.stats.persists == 0
        assert cache.get("a") == _d()

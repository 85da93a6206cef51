# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Bounded LRU of per-item decisions with coalesced write-back.

Keys are ``ItemRecord.cache_key`` values (``id:<id>`` or ``title:<title>``).
Insertion order doubles as recency order: a hit moves the entry to the
most-recent end, and an insert that pushes the size past ``max_entries``
evicts exactly one entry from the oldest end.

Writes never hit the store directly.  ``put`` arms a single persist timer;
everything written before it fires lands in one snapshot.  Store failures
are logged and ignored; the in-memory map is authoritative for the session.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from . import Decision, Reason
from .settings import CACHE_KEY
from .store import StoreProtocol
from .timers import Timer

logger = logging.getLogger("musicview.decision_cache")

MAX_ENTRIES = 5000
PERSIST_DELAY_SECONDS = 1.0


# ---------------------------------------------------------------------------
# Snapshot (de)serialization
# ---------------------------------------------------------------------------


def decision_to_raw(decision: Decision) -> dict[str, Any]:
    return {
        "isMatch": decision.is_match,
        "reason": decision.reason.value,
        "timestamp": decision.timestamp,
    }


def decision_from_raw(raw: Any) -> Decision | None:
    """Parse one persisted entry.  None when ``isMatch`` is missing or not a bool."""
    if not isinstance(raw, dict):
        return None
    is_match = raw.get("isMatch")
    if not isinstance(is_match, bool):
        return None

    try:
        reason = Reason(raw.get("reason"))
    except ValueError:
        reason = Reason.RESTORED

    ts = raw.get("timestamp")
    timestamp = float(ts) if isinstance(ts, (int, float)) and not isinstance(ts, bool) else 0.0
    return Decision(is_match=is_match, reason=reason, timestamp=timestamp)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass
class DecisionCacheStats:
    """Counters for cache behaviour."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    persists: int = 0
    loaded: int = 0
    dropped_on_load: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


# ---------------------------------------------------------------------------
# DecisionCache
# ---------------------------------------------------------------------------


class DecisionCache:
    """In-memory LRU, optionally backed by a store.

    Without a store the cache is purely in-memory and ``put`` never needs an
    event loop.
    """

    def __init__(
        self,
        store: StoreProtocol | None = None,
        *,
        max_entries: int = MAX_ENTRIES,
        persist_delay: float = PERSIST_DELAY_SECONDS,
        store_key: str = CACHE_KEY,
    ) -> None:
        self._store = store
        self._max_entries = max_entries
        self._persist_delay = persist_delay
        self._store_key = store_key
        self._entries: OrderedDict[str, Decision] = OrderedDict()
        self._persist_timer = Timer("cache-persist")
        self._persist_task: asyncio.Task | None = None
        self._stats = DecisionCacheStats()

    # -- Lookup --

    def get(self, key: str | None) -> Decision | None:
        """Return the cached decision and mark it most recently used."""
        if not key:
            return None
        decision = self._entries.get(key)
        if decision is None:
            self._stats.misses += 1
            return None
        self._entries.move_to_end(key)
        self._stats.hits += 1
        return decision

    def peek(self, key: str) -> Decision | None:
        """Return a decision without touching recency or stats."""
        return self._entries.get(key)

    # -- Store --

    def put(self, key: str | None, decision: Decision) -> None:
        """Insert or replace.  Evicts the single least recently touched entry on overflow."""
        if not key:
            return
        self._entries[key] = decision
        self._entries.move_to_end(key)

        if len(self._entries) > self._max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            self._stats.evictions += 1
            logger.debug("Decision evicted: %s", evicted_key)

        self._schedule_persist()

    def clear(self) -> None:
        self._entries.clear()
        self._schedule_persist()

    # -- Persistence --

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Oldest-first plain mapping, as persisted."""
        return {key: decision_to_raw(decision) for key, decision in self._entries.items()}

    def merge_snapshot(self, raw: Any) -> int:
        """Merge a persisted snapshot.  Malformed entries are dropped.  Returns count merged."""
        if not isinstance(raw, dict):
            return 0
        merged = 0
        for key, value in raw.items():
            decision = decision_from_raw(value)
            if not isinstance(key, str) or not key or decision is None:
                self._stats.dropped_on_load += 1
                continue
            self._entries[key] = decision
            self._entries.move_to_end(key)
            merged += 1
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
            self._stats.evictions += 1
        self._stats.loaded += merged
        return merged

    async def load(self) -> int:
        """Merge the persisted snapshot into memory."""
        if self._store is None:
            return 0
        data = await self._store.load({self._store_key: {}})
        merged = self.merge_snapshot(data.get(self._store_key))
        logger.debug(
            "Decision cache loaded: merged=%d dropped=%d size=%d",
            merged,
            self._stats.dropped_on_load,
            len(self._entries),
        )
        return merged

    async def flush(self) -> None:
        """Write the snapshot now, superseding any pending persist."""
        self._persist_timer.cancel()
        await self._persist()

    def _schedule_persist(self) -> None:
        if self._store is None:
            return
        self._persist_timer.schedule(self._persist_delay, self._start_persist)

    def _start_persist(self) -> None:
        self._persist_task = asyncio.get_running_loop().create_task(self._persist())

    async def _persist(self) -> None:
        if self._store is None:
            return
        try:
            await self._store.save({self._store_key: self.snapshot()})
        except Exception:
            logger.debug("Decision cache persist failed: size=%d", len(self._entries), exc_info=True)
            return
        self._stats.persists += 1
        logger.debug("Decision cache persisted: size=%d", len(self._entries))

    @property
    def persist_pending(self) -> bool:
        return self._persist_timer.pending

    # -- Introspection --

    @property
    def stats(self) -> DecisionCacheStats:
        return self._stats

    def keys(self) -> list[str]:
        """Keys oldest-first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

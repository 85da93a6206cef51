# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""One scan pass over the page: enumerate, dedupe, decide, apply.

Per candidate element:
  1. skip if already visited in this epoch (overlapping targets);
  2. extract; skip if neither title nor id has rendered (retried next pass);
  3. if the page's active identity changed since the element last saw it,
     forget its previous decision (the node now shows a different item);
  4. skip if already processed for the same key, unless the target is
     marked ``reprocess_always``;
  5. apply the cached decision, or classify, apply and cache.

A pass runs synchronously to completion; the epoch dedupe relies on no
other pass interleaving.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import lxml.html

from . import Decision, ItemRecord
from .classifier import FilterState
from .decision_cache import DecisionCache
from .element_state import ElementState, ElementStateTracker
from .errors import ExtractionError
from .extraction import require_item
from .page_context import PageContext, ScanTarget
from .visibility import VisibilityController

logger = logging.getLogger("musicview.scanner")

MAX_ELEMENT_KEY_LENGTH = 200
CACHE_REASON = "cache"

# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


@dataclass
class ScanStats:
    """Counters for one scan pass."""

    epoch: int = 0
    path: str = ""
    contexts: list[str] = field(default_factory=list)
    candidates: int = 0
    classified: int = 0
    blocked: int = 0
    allowed: int = 0
    skipped_no_data: int = 0
    skipped_processed: int = 0
    cache_hits: int = 0
    last_reason: str = ""
    started_at: float = field(default_factory=time.time)


def render_debug_report(stats: ScanStats | None) -> str:
    """Multi-line summary of the last pass, for the debug log."""
    if stats is None:
        return "MV DEBUG\nLast: never"
    last = time.strftime("%H:%M:%S", time.localtime(stats.started_at))
    return "\n".join(
        [
            "MV DEBUG",
            f"Context: {','.join(stats.contexts) or '-'}",
            f"Path: {stats.path or '-'}",
            f"Candidates: {stats.candidates}",
            f"Classified: {stats.classified}",
            f"Blocked: {stats.blocked}",
            f"Allowed: {stats.allowed}",
            f"Skipped(no data): {stats.skipped_no_data}",
            f"Skipped(processed): {stats.skipped_processed}",
            f"Cache hits: {stats.cache_hits}",
            f"Last: {last}",
            f"Reason: {stats.last_reason or '-'}",
        ]
    )


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TileResult:
    """Outcome for one element in the most recent pass it was decided in."""

    context: str
    key: str | None
    title: str
    is_match: bool
    reason: str


class Scanner:
    """Runs scan passes against the current page context."""

    def __init__(
        self,
        state: FilterState,
        cache: DecisionCache,
        tracker: ElementStateTracker,
        visibility: VisibilityController,
        page_context: PageContext | None = None,
        *,
        extract: Callable[[lxml.html.HtmlElement], ItemRecord] = require_item,
    ) -> None:
        self._state = state
        self._cache = cache
        self._tracker = tracker
        self._visibility = visibility
        self._extract = extract
        self.page_context = page_context
        self.last_stats: ScanStats | None = None
        self.results: dict[str, TileResult] = {}  # element handle -> latest decision

    # -- Pass --

    def targets(self) -> list[ScanTarget]:
        if self.page_context is None:
            return []
        return self.page_context.scan_targets()

    def scan(self, epoch: int) -> ScanStats:
        """Run one full pass for ``epoch``."""
        stats = ScanStats(epoch=epoch, path=getattr(self.page_context, "path", ""))
        targets = self.targets()
        stats.contexts = [t.context for t in targets]
        active_identity = self.page_context.active_identity() if self.page_context is not None else None

        for target in targets:
            candidates = target.collect_candidates()
            stats.candidates += len(candidates)
            for el in candidates:
                self.process_candidate(el, target, epoch, active_identity, stats)

        if self.page_context is not None and self._tracker.prune(self.page_context.document):
            self.results = {h: r for h, r in self.results.items() if h in self._tracker}

        self.last_stats = stats
        logger.debug(
            "Scan complete: epoch=%d classified=%d blocked=%d allowed=%d cache_hits=%d",
            epoch,
            stats.classified,
            stats.blocked,
            stats.allowed,
            stats.cache_hits,
        )
        return stats

    def process_candidate(
        self,
        el: lxml.html.HtmlElement,
        target: ScanTarget,
        epoch: int,
        active_identity: str | None,
        stats: ScanStats,
    ) -> None:
        state = self._tracker.state_for(el)
        if state.epoch == epoch:
            return
        state.epoch = epoch

        try:
            record = self._extract(el)
        except ExtractionError as exc:
            stats.skipped_no_data += 1
            logger.debug("Skipping element: %s", exc)
            return
        if not record.has_data:
            stats.skipped_no_data += 1
            return

        element_key = (record.cache_key or record.title)[:MAX_ELEMENT_KEY_LENGTH]
        previous_key = state.key

        if active_identity is not None and state.watch_id != active_identity:
            state.invalidate()
            state.watch_id = active_identity

        if not target.reprocess_always and state.processed and previous_key == element_key:
            stats.skipped_processed += 1
            return

        state.key = element_key

        cache_key = record.cache_key
        cached = self._cache.get(cache_key)
        if cached is not None:
            self._visibility.apply(el, cached.is_match)
            stats.cache_hits += 1
            state.processed = True
            self._record(el, state, target, record, cached, CACHE_REASON)
            return

        decision = self._state.classify(record)
        self._visibility.apply(el, decision.is_match)
        if cache_key:
            self._cache.put(cache_key, decision)

        stats.classified += 1
        if decision.is_match:
            stats.allowed += 1
        else:
            stats.blocked += 1
        stats.last_reason = decision.reason.value
        state.processed = True
        self._record(el, state, target, record, decision, decision.reason.value)

    def _record(
        self,
        el: lxml.html.HtmlElement,
        state: ElementState,
        target: ScanTarget,
        record: ItemRecord,
        decision: Decision,
        reason: str,
    ) -> None:
        state.reason = reason
        state.title = record.title[:80]
        state.item_id = record.item_id or ""
        self.results[state.handle] = TileResult(
            context=target.context,
            key=record.cache_key,
            title=record.title,
            is_match=decision.is_match,
            reason=reason,
        )
        if self._state.settings.debug_mode:
            el.set("data-mv-reason", reason)
            el.set("data-mv-title", record.title[:80])
            el.set("data-mv-id", record.item_id or "")

    # -- Rescan --

    def reset_for_rescan(self) -> int:
        """Forget every "already handled" marker and un-flag current candidates.

        The decision cache is left intact.  Returns the number of candidates reset.
        """
        self._tracker.reset_all()
        count = 0
        for target in self.targets():
            for el in target.collect_candidates():
                state = self._tracker.get(el)
                if state is not None:
                    state.invalidate()
                self._visibility.reveal(el)
                count += 1
        return count

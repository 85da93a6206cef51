# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Wires settings, cache, scheduler, scanner and visibility together.

Inputs:
- ``notify_mutation()``      DOM mutations and navigation events
- ``on_storage_changed()``   settings replaced / rescan token written
- ``handle_message()``       ``MV_TOGGLE_SHOW_BLOCKED`` and ``MV_REFRESH`` commands

Everything runs on one asyncio loop.  ``start()`` awaits the persisted
settings and decision cache, then schedules the first scan.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import lxml.html

from . import ItemRecord
from .classifier import FilterState
from .decision_cache import DecisionCache
from .element_state import ElementStateTracker
from .extraction import require_item
from .logging_config import set_debug
from .page_context import PageContext
from .scanner import Scanner, ScanStats, render_debug_report
from .scheduler import ScanScheduler
from .settings import DEFAULT_SETTINGS, RESCAN_KEY, SETTINGS_KEY, Settings, load_settings
from .store import StoreChange, StoreProtocol
from .visibility import HIDE_DELAY_SECONDS, VisibilityController

logger = logging.getLogger("musicview.engine")

MSG_TOGGLE_SHOW_BLOCKED = "MV_TOGGLE_SHOW_BLOCKED"
MSG_REFRESH = "MV_REFRESH"


class FilterEngine:
    """One engine per page (tab)."""

    def __init__(
        self,
        store: StoreProtocol,
        page_context: PageContext | None = None,
        *,
        extract: Callable[[lxml.html.HtmlElement], ItemRecord] = require_item,
        hide_delay: float = HIDE_DELAY_SECONDS,
        cache: DecisionCache | None = None,
    ) -> None:
        self._store = store
        self._unsubscribe: Callable[[], None] | None = None
        self.state = FilterState(DEFAULT_SETTINGS)
        self.cache = cache if cache is not None else DecisionCache(store)
        self.tracker = ElementStateTracker()
        self.visibility = VisibilityController(hide_delay=hide_delay)
        self.scanner = Scanner(
            self.state,
            self.cache,
            self.tracker,
            self.visibility,
            page_context,
            extract=extract,
        )
        self.scheduler = ScanScheduler(self._run_scan, lambda: self.state.settings.debounce_seconds)
        self._started = False

    # -- Lifecycle --

    @property
    def settings(self) -> Settings:
        return self.state.settings

    @property
    def started(self) -> bool:
        return self._started

    @property
    def page_context(self) -> PageContext | None:
        return self.scanner.page_context

    @page_context.setter
    def page_context(self, ctx: PageContext | None) -> None:
        self.scanner.page_context = ctx

    async def start(self) -> None:
        """Load settings and cache, apply the reveal override, schedule the first scan."""
        data = await self._store.load({SETTINGS_KEY: DEFAULT_SETTINGS.to_raw()})
        self.state.replace_settings(load_settings(data.get(SETTINGS_KEY)))
        set_debug(self.settings.debug_mode)

        await self.cache.load()

        self._apply_reveal_override(self.settings.show_blocked)
        self._unsubscribe = self._store.subscribe(self.on_storage_changed)
        self._started = True
        self.scheduler.request()
        logger.debug("Engine started: cache_size=%d debounce_ms=%d", len(self.cache), self.settings.debounce_ms)

    async def close(self) -> None:
        """Stop timers and write the decision cache out."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.cancel()
        self.visibility.cancel_pending()
        await self.cache.flush()
        self._started = False

    # -- Change signals --

    def notify_mutation(self) -> bool:
        """A DOM mutation or navigation happened.  Returns True if a scan was newly scheduled."""
        return self.scheduler.request()

    def on_storage_changed(self, changes: dict[str, StoreChange]) -> None:
        settings_change = changes.get(SETTINGS_KEY)
        if settings_change is not None and isinstance(settings_change.new_value, dict):
            self.apply_settings(load_settings(settings_change.new_value))
            return
        if RESCAN_KEY in changes:
            self.rescan_all()

    def handle_message(self, message: Any) -> None:
        """Handle a popup command.  Anything not shaped like a known command is ignored."""
        if not isinstance(message, dict):
            return
        kind = message.get("type")
        if kind == MSG_TOGGLE_SHOW_BLOCKED:
            self.set_reveal_override(bool(message.get("show")))
        elif kind == MSG_REFRESH:
            self.rescan_all()

    # -- Operations --

    def apply_settings(self, settings: Settings) -> None:
        """Replace settings wholesale, recompile matchers, reset element state, rescan."""
        self.state.replace_settings(settings)
        set_debug(settings.debug_mode)
        self._apply_reveal_override(settings.show_blocked)
        logger.debug("Settings replaced: policy=%s show_blocked=%s", settings.default_policy, settings.show_blocked)
        self.rescan_all()

    def set_reveal_override(self, enabled: bool) -> None:
        if enabled != self.settings.show_blocked:
            self.state.replace_settings(self.settings.with_show_blocked(enabled))
        self._apply_reveal_override(enabled)

    def _apply_reveal_override(self, enabled: bool) -> None:
        root = self.page_context.document if self.page_context is not None else None
        self.visibility.set_reveal_override(enabled, root)

    def rescan_all(self) -> ScanStats | None:
        """Forced full recompute: clear per-element markers (not the cache) and scan now."""
        reset = self.scanner.reset_for_rescan()
        logger.debug("Rescan: reset %d candidate(s)", reset)
        self.scheduler.run_now()
        return self.scanner.last_stats

    def _run_scan(self, epoch: int) -> None:
        stats = self.scanner.scan(epoch)
        if self.settings.debug_mode:
            logger.debug("%s", render_debug_report(stats))

    def debug_report(self) -> str:
        return render_debug_report(self.scanner.last_stats)

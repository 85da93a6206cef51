# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Per-element processing state, kept in a side table.

Each visited element is stamped with a ``data-mv-handle`` attribute; the
tracker maps that handle to an ``ElementState``.  The state therefore
follows the node for as long as the node exists, even when the page reuses
it for a different item, and can be dropped once the node is detached.

Lifecycle:
  created   lazily, on first visit (``state_for``)
  reset     on active-identity change or explicit rescan (``invalidate``)
  removed   by ``prune`` when the handle no longer appears in the document
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass

import lxml.html

logger = logging.getLogger("musicview.element_state")

HANDLE_ATTR = "data-mv-handle"


@dataclass(slots=True)
class ElementState:
    """Processing metadata for one live element."""

    handle: str
    epoch: int = 0  # last scan pass that visited the element
    key: str = ""  # element key the current decision was made for
    watch_id: str | None = None  # active page identity last seen by the element
    processed: bool = False  # terminal visibility decision applied for ``key``
    reason: str = ""
    title: str = ""
    item_id: str = ""

    def invalidate(self) -> None:
        self.processed = False
        self.key = ""


class ElementStateTracker:
    """Side table ``handle → ElementState``.  Not thread-safe (single event loop)."""

    def __init__(self) -> None:
        self._states: dict[str, ElementState] = {}
        self._counter = itertools.count(1)

    def state_for(self, el: lxml.html.HtmlElement) -> ElementState:
        """Return the element's state, creating it (and its handle) on first visit."""
        handle = el.get(HANDLE_ATTR)
        if handle:
            state = self._states.get(handle)
            if state is not None:
                return state
        else:
            handle = str(next(self._counter))
            el.set(HANDLE_ATTR, handle)
        state = self._states[handle] = ElementState(handle=handle)
        return state

    def get(self, el: lxml.html.HtmlElement) -> ElementState | None:
        handle = el.get(HANDLE_ATTR)
        return self._states.get(handle) if handle else None

    def reset_all(self) -> int:
        """Clear processed flag and key on every tracked element.  Returns count."""
        for state in self._states.values():
            state.invalidate()
        return len(self._states)

    def prune(self, document: lxml.html.HtmlElement) -> int:
        """Drop states whose element is no longer in ``document``.  Returns count removed."""
        live = {str(value) for value in document.xpath(f"descendant-or-self::*/@{HANDLE_ATTR}")}
        stale = [handle for handle in self._states if handle not in live]
        for handle in stale:
            del self._states[handle]
        if stale:
            logger.debug("Pruned %d detached element state(s)", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, item: object) -> bool:
        """Accepts an element or a handle string."""
        if isinstance(item, str):
            return item in self._states
        if not isinstance(item, lxml.html.HtmlElement):
            return False
        handle = item.get(HANDLE_ATTR)
        return handle is not None and handle in self._states

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Two-phase suppression of non-music tiles.

A suppressed tile is first flagged (``mv-blocked``, styled as faded and
instantly reversible).  ``HIDE_DELAY_SECONDS`` later it also gets
``mv-hidden`` (removed from layout) if it is still flagged and the reveal
override is off.  A match clears both classes at once.
"""

from __future__ import annotations

import logging

import lxml.html
from lxml.cssselect import CSSSelector

from .timers import TimerGroup

logger = logging.getLogger("musicview.visibility")

BLOCKED_CLASS = "mv-blocked"
HIDDEN_CLASS = "mv-hidden"
SHOW_BLOCKED_CLASS = "mv-show-blocked"

HIDE_DELAY_SECONDS = 0.150

_BLOCKED_SELECTOR = CSSSelector(f".{BLOCKED_CLASS}", translator="html")


def is_flagged(el: lxml.html.HtmlElement) -> bool:
    return BLOCKED_CLASS in el.classes


def is_hidden(el: lxml.html.HtmlElement) -> bool:
    return HIDDEN_CLASS in el.classes


class VisibilityController:
    """Applies and reverts suppression markers on tile elements."""

    def __init__(self, *, reveal_override: bool = False, hide_delay: float = HIDE_DELAY_SECONDS) -> None:
        self._reveal_override = reveal_override
        self._hide_delay = hide_delay
        self._hide_timers = TimerGroup("hide")

    @property
    def reveal_override(self) -> bool:
        return self._reveal_override

    def apply(self, el: lxml.html.HtmlElement, is_match: bool) -> None:
        if is_match:
            self.reveal(el)
        else:
            self.suppress(el)

    def suppress(self, el: lxml.html.HtmlElement) -> None:
        el.classes.add(BLOCKED_CLASS)
        if self._reveal_override:
            return
        self._hide_timers.schedule(el, self._hide_delay, lambda: self._finish_hide(el))

    def reveal(self, el: lxml.html.HtmlElement) -> None:
        self._hide_timers.cancel(el)
        el.classes.discard(HIDDEN_CLASS)
        el.classes.discard(BLOCKED_CLASS)

    def _finish_hide(self, el: lxml.html.HtmlElement) -> None:
        if not self._reveal_override and is_flagged(el):
            el.classes.add(HIDDEN_CLASS)

    def set_reveal_override(self, enabled: bool, root: lxml.html.HtmlElement | None = None) -> int:
        """Switch the override and re-apply it to every flagged element under ``root``.

        Enabling strips ``mv-hidden`` at once; disabling re-runs the delayed
        hide.  Returns the number of flagged elements touched.
        """
        self._reveal_override = enabled
        if root is None:
            if enabled:
                self._hide_timers.cancel_all()
            return 0

        if enabled:
            root.classes.add(SHOW_BLOCKED_CLASS)
            self._hide_timers.cancel_all()
        else:
            root.classes.discard(SHOW_BLOCKED_CLASS)

        flagged = _BLOCKED_SELECTOR(root)
        for el in flagged:
            if enabled:
                el.classes.discard(HIDDEN_CLASS)
            elif not is_hidden(el):
                self.suppress(el)

        logger.debug("Reveal override=%s applied to %d flagged element(s)", enabled, len(flagged))
        return len(flagged)

    def pending_hides(self) -> int:
        return len(self._hide_timers)

    def cancel_pending(self) -> int:
        return self._hide_timers.cancel_all()

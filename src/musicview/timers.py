# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Named one-shot timers on the running asyncio loop.

Each ``Timer`` is one logical timer with at most one pending callback:
``schedule`` is a no-op while one is pending (bursts coalesce), ``cancel``
drops it when superseded.  ``TimerGroup`` keeps one such slot per key
(e.g. one delayed hide per element).

NOTE: must be used from inside the event loop thread.  Not thread-safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable

logger = logging.getLogger("musicview.timers")


class Timer:
    """Single-flight delayed callback."""

    __slots__ = ("name", "_handle")

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, delay: float, callback: Callable[[], None]) -> bool:
        """Run ``callback`` after ``delay`` seconds unless one is already pending.

        Returns True if a new callback was scheduled.
        """
        if self._handle is not None:
            return False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(delay, 0.0), self._fire, callback)
        return True

    def cancel(self) -> bool:
        """Drop the pending callback.  Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    def _fire(self, callback: Callable[[], None]) -> None:
        # Cleared first so the callback may reschedule this timer.
        self._handle = None
        callback()


class TimerGroup:
    """One ``Timer`` per key, created on demand and dropped once idle."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._timers: dict[Hashable, Timer] = {}

    def schedule(self, key: Hashable, delay: float, callback: Callable[[], None]) -> bool:
        timer = self._timers.get(key)
        if timer is None:
            timer = self._timers[key] = Timer(f"{self.name}:{key!r}")

        def _run() -> None:
            self._timers.pop(key, None)
            callback()

        return timer.schedule(delay, _run)

    def cancel(self, key: Hashable) -> bool:
        timer = self._timers.pop(key, None)
        return timer.cancel() if timer is not None else False

    def cancel_all(self) -> int:
        count = sum(1 for timer in self._timers.values() if timer.cancel())
        self._timers.clear()
        if count:
            logger.debug("Cancelled %d pending %s timer(s)", count, self.name or "group")
        return count

    def pending(self, key: Hashable) -> bool:
        timer = self._timers.get(key)
        return timer is not None and timer.pending

    def __len__(self) -> int:
        return len(self._timers)

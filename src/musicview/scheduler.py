# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Single-flight debounce of scan requests.

Any number of ``request()`` calls inside the debounce window produce one
scan.  The window is not extended by later requests, so a page that mutates
continuously is still scanned at least once per window.  Every executed
scan gets the next value of a monotonic epoch.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from .timers import Timer

logger = logging.getLogger("musicview.scheduler")


class ScanScheduler:
    """Debounces change signals into epoch-numbered scan passes.

    ``run_scan`` receives the new epoch and must run synchronously to
    completion.  ``delay`` is read on every request so debounce changes in
    settings apply to the next window.
    """

    def __init__(self, run_scan: Callable[[int], None], delay: Callable[[], float]) -> None:
        self._run_scan = run_scan
        self._delay = delay
        self._timer = Timer("scan")
        self._epoch = 0
        self._requests = 0
        self._coalesced = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def pending(self) -> bool:
        return self._timer.pending

    @property
    def coalesced(self) -> int:
        """Requests absorbed by an already pending scan."""
        return self._coalesced

    def request(self) -> bool:
        """Ask for a scan.  Returns False when one is already pending."""
        self._requests += 1
        scheduled = self._timer.schedule(self._delay(), self._fire)
        if not scheduled:
            self._coalesced += 1
        return scheduled

    def run_now(self) -> int:
        """Run a scan immediately, superseding any pending one.  Returns its epoch."""
        if self._timer.cancel():
            logger.debug("Pending scan superseded by immediate scan")
        return self._fire()

    def cancel(self) -> bool:
        return self._timer.cancel()

    def _fire(self) -> int:
        self._epoch += 1
        self._run_scan(self._epoch)
        return self._epoch

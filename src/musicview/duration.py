# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Displayed-duration parsing and the duration heuristics used by the classifier."""

from __future__ import annotations

import re

MUSIC_MIN_SECONDS = 90
MUSIC_MAX_SECONDS = 600
EXTREME_SHORT_SECONDS = 30
EXTREME_LONG_SECONDS = 30 * 60

_DIGIT_RE = re.compile(r"\d")
_STRIP_RE = re.compile(r"[^0-9:]")


def parse_duration(text: str | None) -> int | None:
    """Convert ``[h:]m:s`` style text to seconds.

    Segments are read right to left (seconds, minutes, hours, ...), each
    further segment multiplying by 60.  Returns None when there is no digit
    at all or a segment is not numeric.
    """
    if not text or not _DIGIT_RE.search(text):
        return None

    parts = [p for p in _STRIP_RE.sub("", text).split(":") if p]
    if not parts:
        return None

    seconds = 0
    multiplier = 1
    for part in reversed(parts):
        if not part.isdigit():
            return None
        seconds += int(part) * multiplier
        multiplier *= 60
    return seconds


def in_target_range(seconds: int | None) -> bool:
    """Typical track length: 90-600 s inclusive."""
    if seconds is None:
        return False
    return MUSIC_MIN_SECONDS <= seconds <= MUSIC_MAX_SECONDS


def strongly_contradicts(seconds: int | None) -> bool:
    """Too short or too long to plausibly be a single track."""
    if seconds is None:
        return False
    return seconds < EXTREME_SHORT_SECONDS or seconds > EXTREME_LONG_SECONDS

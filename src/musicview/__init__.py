# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""musicview: local, rule-based music filter for recommendation tiles.

Scans a continuously mutating page for recommendation tiles and keeps only
the ones that look like music:
- classifier: keyword/duration rule cascade (no network, no ML)
- decision_cache: bounded LRU of per-item decisions, persisted lazily
- scanner: debounced, epoch-deduplicated scan passes over the DOM
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum

from .text import normalize_text


class Reason(StrEnum):
    """Which rule produced a decision."""

    STRONG = "strong"
    NON = "non"
    MODERATE = "moderate"
    MODERATE_DURATION = "moderate+duration"
    DURATION_CHANNEL = "duration+channel"
    DEFAULT = "default"
    RESTORED = "restored"  # persisted without a reason


@dataclass(frozen=True, slots=True)
class Decision:
    """Immutable classification outcome for one item."""

    is_match: bool
    reason: Reason
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class ItemRecord:
    """Fields extracted from one tile.  Best effort: empty string / None when missing."""

    title: str = ""
    channel: str = ""
    duration_text: str = ""
    duration_seconds: int | None = None
    item_id: str | None = None
    href: str = ""
    normalized_title: str = ""

    @classmethod
    def build(
        cls,
        *,
        title: str = "",
        channel: str = "",
        duration_text: str = "",
        duration_seconds: int | None = None,
        item_id: str | None = None,
        href: str = "",
    ) -> ItemRecord:
        """Create a record, deriving ``normalized_title`` from ``title``."""
        return cls(
            title=title,
            channel=channel,
            duration_text=duration_text,
            duration_seconds=duration_seconds,
            item_id=item_id or None,
            href=href,
            normalized_title=normalize_text(title),
        )

    @property
    def cache_key(self) -> str | None:
        if self.item_id:
            return f"id:{self.item_id}"
        if self.normalized_title:
            return f"title:{self.normalized_title}"
        return None

    @property
    def has_data(self) -> bool:
        return bool(self.title or self.item_id)

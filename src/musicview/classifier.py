# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""First-match rule cascade deciding whether a tile is music.

Rules are evaluated in table order and the first one that fires decides:

  1. strong keyword in title+channel           → match      (strong)
  2. negative keyword in title+channel         → no match   (non)
  3. moderate keyword in title+channel         → match      (moderate),
     unless the duration strongly contradicts  → no match   (moderate+duration)
  4. track-length duration + channel token     → match      (duration+channel)
  5. nothing fired                             → default policy (default)

There is no scoring: a strong keyword outranks a negative one outright.
Hiding needs an explicit negative signal, a contradiction, or an explicit
"hide by default" policy.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from . import Decision, ItemRecord, Reason
from .duration import in_target_range, strongly_contradicts
from .settings import DefaultPolicy, Settings
from .text import contains_any, normalize_list, normalize_text

# ---------------------------------------------------------------------------
# Matcher set
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MatcherSet:
    """Normalized keyword tokens, derived from Settings."""

    strong: tuple[str, ...] = ()
    moderate: tuple[str, ...] = ()
    non: tuple[str, ...] = ()
    channel: tuple[str, ...] = ()


def compile_matchers(settings: Settings) -> MatcherSet:
    return MatcherSet(
        strong=normalize_list(settings.strong_keywords),
        moderate=normalize_list(settings.moderate_keywords),
        non=normalize_list(settings.non_keywords),
        channel=normalize_list(settings.channel_tokens),
    )


# ---------------------------------------------------------------------------
# Rule table
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _Features:
    """Normalized text views of one record, computed once per classification."""

    combined: str
    channel: str
    duration_seconds: int | None


@dataclass(frozen=True, slots=True)
class Rule:
    """``predicate`` fires → ``outcome`` returns (is_match, reason)."""

    name: str
    predicate: Callable[[_Features, MatcherSet], bool]
    outcome: Callable[[_Features], tuple[bool, Reason]]


def _moderate_outcome(f: _Features) -> tuple[bool, Reason]:
    if strongly_contradicts(f.duration_seconds):
        return False, Reason.MODERATE_DURATION
    return True, Reason.MODERATE


RULES: tuple[Rule, ...] = (
    Rule(
        name="strong",
        predicate=lambda f, m: contains_any(f.combined, m.strong),
        outcome=lambda f: (True, Reason.STRONG),
    ),
    Rule(
        name="non",
        predicate=lambda f, m: contains_any(f.combined, m.non),
        outcome=lambda f: (False, Reason.NON),
    ),
    Rule(
        name="moderate",
        predicate=lambda f, m: contains_any(f.combined, m.moderate),
        outcome=_moderate_outcome,
    ),
    Rule(
        name="duration+channel",
        predicate=lambda f, m: in_target_range(f.duration_seconds) and contains_any(f.channel, m.channel),
        outcome=lambda f: (True, Reason.DURATION_CHANNEL),
    ),
)


def classify(
    record: ItemRecord,
    matchers: MatcherSet,
    policy: DefaultPolicy = DefaultPolicy.ASSUME_MATCH,
    *,
    now: float | None = None,
) -> Decision:
    """Classify one record.  Pure apart from the decision timestamp (pin it with ``now``)."""
    features = _Features(
        combined=normalize_text(f"{record.title} {record.channel}"),
        channel=normalize_text(record.channel),
        duration_seconds=record.duration_seconds,
    )
    timestamp = time.time() if now is None else now

    for rule in RULES:
        if rule.predicate(features, matchers):
            is_match, reason = rule.outcome(features)
            return Decision(is_match=is_match, reason=reason, timestamp=timestamp)

    return Decision(
        is_match=policy is not DefaultPolicy.ASSUME_NO_MATCH,
        reason=Reason.DEFAULT,
        timestamp=timestamp,
    )


# ---------------------------------------------------------------------------
# Process-scoped state
# ---------------------------------------------------------------------------


class FilterState:
    """Current settings and the matchers compiled from them.

    Both are replaced together, never mutated in place.
    """

    __slots__ = ("_settings", "_matchers")

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()
        self._matchers = compile_matchers(self._settings)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def matchers(self) -> MatcherSet:
        return self._matchers

    def replace_settings(self, settings: Settings) -> None:
        self._settings = settings
        self._matchers = compile_matchers(settings)

    def classify(self, record: ItemRecord) -> Decision:
        return classify(record, self._matchers, self._settings.default_policy)

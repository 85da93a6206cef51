# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Text normalization and whole-word token matching.

Leaf module: no musicview imports.  Both keyword lists and extracted tile
text go through ``normalize_text`` so every comparison is case- and
punctuation-insensitive.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LIST_SPLIT_RE = re.compile(r"\n|,")


def normalize_text(text: str | None) -> str:
    """Lower-case, collapse non-alphanumeric runs to one space, trim."""
    if not text:
        return ""
    return _NON_ALNUM_RE.sub(" ", str(text).lower()).strip()


def contains_token(haystack: str, token: str) -> bool:
    """Whole-word (or whole-phrase) match of a normalized token."""
    if not haystack or not token:
        return False
    return f" {token} " in f" {haystack} "


def contains_any(haystack: str, tokens: Iterable[str]) -> bool:
    return any(contains_token(haystack, token) for token in tokens)


def normalize_list(value: object) -> tuple[str, ...]:
    """Normalize a keyword list.

    Accepts a list/tuple of strings, or a single string split on newlines
    and commas.  Empty tokens are dropped; anything else yields ``()``.
    """
    if isinstance(value, (list, tuple)):
        items = [normalize_text(v) for v in value if isinstance(v, str)]
    elif isinstance(value, str):
        items = [normalize_text(v) for v in _LIST_SPLIT_RE.split(value)]
    else:
        return ()
    return tuple(item for item in items if item)

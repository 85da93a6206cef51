# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Where to look on the current page.

A ``PageContext`` yields zero or more ``ScanTarget`` entries per scan plus
the identity of the item the page is currently showing (if any).  An empty
target list means "nothing to scan this pass".

``YouTubePageContext`` covers the home feed (``/``) and the watch-page
sidebar (``/watch``).  Sidebar tiles are reused across videos, so that
target is marked ``reprocess_always`` and also collects tiles reachable only
through their watch links.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable
from urllib.parse import parse_qs, urlparse

import lxml.html
from lxml.cssselect import CSSSelector

from .extraction import WATCH_LINK_SELECTOR

logger = logging.getLogger("musicview.page_context")

HOME_CONTEXT = "home"
WATCH_SIDEBAR_CONTEXT = "watch-sidebar"

HOME_TILE_TAGS: tuple[str, ...] = (
    "ytd-rich-item-renderer",
    "ytd-rich-grid-media",
    "ytd-grid-video-renderer",
)

WATCH_TILE_TAGS: tuple[str, ...] = (
    "ytd-compact-video-renderer",
    "ytd-compact-autoplay-renderer",
    "ytd-grid-video-renderer",
    "ytd-rich-item-renderer",
    "ytd-video-renderer",
    "ytd-compact-playlist-renderer",
    "ytd-playlist-renderer",
    "ytd-compact-radio-renderer",
    "ytd-compact-mix-renderer",
    "ytd-compact-movie-renderer",
    "ytd-compact-show-renderer",
    "ytd-compact-station-renderer",
    "yt-lockup-view-model",
)

# Any of these may wrap a watch link the sidebar selector missed.
VIDEO_CONTAINER_TAGS: frozenset[str] = frozenset(WATCH_TILE_TAGS) | {"ytd-rich-grid-media"}

FALLBACK_LINK_SELECTOR = f"a#video-title, a#video-title-link, {WATCH_LINK_SELECTOR}"

_HIDDEN_STYLE_RE = re.compile(r"(display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Scan target
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanTarget:
    """One (root, candidate selector, context) triple."""

    context: str
    root: lxml.html.HtmlElement
    selector: str
    reprocess_always: bool = False
    link_selector: str | None = None  # fallback: tiles found via their links
    container_tags: frozenset[str] = field(default_factory=frozenset)

    def collect_candidates(self) -> list[lxml.html.HtmlElement]:
        """Candidates in document order, each element once."""
        candidates: dict[lxml.html.HtmlElement, None] = {}
        for el in _compiled(self.selector)(self.root):
            candidates.setdefault(el, None)

        if self.link_selector and self.container_tags:
            for link in _compiled(self.link_selector)(self.root):
                container = closest(link, self.container_tags)
                if container is not None:
                    candidates.setdefault(container, None)

        return list(candidates)


_SELECTOR_CACHE: dict[str, CSSSelector] = {}


def _compiled(css: str) -> CSSSelector:
    selector = _SELECTOR_CACHE.get(css)
    if selector is None:
        selector = _SELECTOR_CACHE[css] = CSSSelector(css, translator="html")
    return selector


def closest(el: lxml.html.HtmlElement, tags: frozenset[str]) -> lxml.html.HtmlElement | None:
    """Nearest ancestor-or-self whose tag is in ``tags``."""
    if el.tag in tags:
        return el
    for ancestor in el.iterancestors(*tags):
        return ancestor
    return None


def is_element_visible(el: lxml.html.HtmlElement | None) -> bool:
    """Static visibility: no ``hidden`` attribute, no inline display:none / visibility:hidden."""
    if el is None:
        return False
    if el.get("hidden") is not None:
        return False
    return not _HIDDEN_STYLE_RE.search(el.get("style", ""))


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class PageContext(Protocol):
    """Supplies scan targets and the page's active item identity."""

    @property
    def document(self) -> lxml.html.HtmlElement: ...

    def scan_targets(self) -> list[ScanTarget]: ...

    def active_identity(self) -> str | None: ...


# ---------------------------------------------------------------------------
# YouTube
# ---------------------------------------------------------------------------


class YouTubePageContext:
    """Home feed and watch sidebar of a YouTube document at ``url``."""

    def __init__(self, document: lxml.html.HtmlElement, url: str) -> None:
        self._document = document
        self._set_url(url)

    def _set_url(self, url: str) -> None:
        parsed = urlparse(url)
        self.url = url
        self._path = parsed.path or "/"
        self._query = parse_qs(parsed.query)

    @property
    def document(self) -> lxml.html.HtmlElement:
        return self._document

    @property
    def path(self) -> str:
        return self._path

    def navigate(self, url: str, document: lxml.html.HtmlElement | None = None) -> None:
        """In-app navigation: same document (or a new one), new URL."""
        if document is not None:
            self._document = document
        self._set_url(url)

    def _find(self, css: str) -> lxml.html.HtmlElement | None:
        matches = _compiled(css)(self._document)
        return matches[0] if matches else None

    def home_root(self) -> lxml.html.HtmlElement | None:
        if self._path != "/":
            return None
        browse = self._find('ytd-browse[page-subtype="home"], ytd-browse[page-subtype="home-feed"]')
        if is_element_visible(browse):
            return browse
        grid = self._find("ytd-rich-grid-renderer")
        if is_element_visible(grid):
            return grid
        return None

    def watch_sidebar_root(self) -> lxml.html.HtmlElement | None:
        if self._path != "/watch":
            return None
        related = self._find("#secondary #related")
        if is_element_visible(related):
            return related
        secondary_results = self._find("ytd-watch-next-secondary-results-renderer")
        if is_element_visible(secondary_results):
            return secondary_results
        secondary = self._find("ytd-watch-flexy #secondary")
        if is_element_visible(secondary):
            return secondary
        # Watch page without a recognisable sidebar: scan the whole body.
        return self._find("body")

    def scan_targets(self) -> list[ScanTarget]:
        targets: list[ScanTarget] = []

        home = self.home_root()
        if home is not None:
            targets.append(ScanTarget(context=HOME_CONTEXT, root=home, selector=", ".join(HOME_TILE_TAGS)))

        sidebar = self.watch_sidebar_root()
        if sidebar is not None:
            targets.append(
                ScanTarget(
                    context=WATCH_SIDEBAR_CONTEXT,
                    root=sidebar,
                    selector=", ".join(WATCH_TILE_TAGS),
                    reprocess_always=True,
                    link_selector=FALLBACK_LINK_SELECTOR,
                    container_tags=VIDEO_CONTAINER_TAGS,
                )
            )

        if not targets:
            logger.debug("No scan targets for path=%s", self._path)
        return targets

    def active_identity(self) -> str | None:
        if self._path != "/watch":
            return None
        values = self._query.get("v")
        return values[0] if values and values[0] else None

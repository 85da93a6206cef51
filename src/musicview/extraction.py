# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Field extraction from YouTube recommendation tiles.

Best effort: every extractor returns ``""`` / ``None`` when its field has
not rendered yet.  The scanner treats a record with neither title nor id as
incomplete and retries on the next pass.

Each field walks a cascade of selectors, newest markup last.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urljoin, urlparse

import lxml.html
from lxml.cssselect import CSSSelector

from . import ItemRecord
from .duration import parse_duration
from .errors import ExtractionError

logger = logging.getLogger("musicview.extraction")

BASE_URL = "https://www.youtube.com"

ID_ATTRIBUTES = ("video-id", "data-video-id", "data-videoid")

WATCH_LINK_SELECTOR = (
    'a[href*="watch?v="], a[href*="/shorts/"], a[href^="https://youtu.be/"], a[href^="https://www.youtube.com/watch"]'
)


def _sel(css: str) -> CSSSelector:
    return CSSSelector(css, translator="html")


_TITLE_LINK = _sel("a#video-title, a#video-title-link")
_THUMB_LINK = _sel("a#thumbnail")
_ANY_WATCH_LINK = _sel(WATCH_LINK_SELECTOR)
_FORMATTED_TITLE = _sel("yt-formatted-string#video-title, #video-title, h3 a, h3 span")
_CHANNEL_CONTAINER = _sel("ytd-channel-name, #channel-name")
_ANCHOR = _sel("a")
_FORMATTED_CHANNEL_LINK = _sel("a.yt-simple-endpoint.yt-formatted-string:not(#video-title)")
_CHANNEL_HREF_LINK = _sel('a[href*="/channel/"], a[href*="/user/"], a[href*="/@"]')
_DURATION_OVERLAY = _sel("ytd-thumbnail-overlay-time-status-renderer")
_DURATION_TEXT = _sel("#text")
_DURATION_SPAN = _sel("span.ytd-thumbnail-overlay-time-status-renderer")


def _first(selector: CSSSelector, root: lxml.html.HtmlElement) -> lxml.html.HtmlElement | None:
    """First matching descendant (``root`` itself excluded)."""
    for el in selector(root):
        if el is not root:
            return el
    return None


def _text(el: lxml.html.HtmlElement | None) -> str:
    if el is None:
        return ""
    return (el.text_content() or "").strip()


def _attr(el: lxml.html.HtmlElement | None, name: str) -> str:
    if el is None:
        return ""
    return (el.get(name) or "").strip()


def _text_or_attrs(el: lxml.html.HtmlElement | None, *attrs: str) -> str:
    """Visible text first, then the given attributes in order."""
    text = _text(el)
    if text:
        return text
    for name in attrs:
        value = _attr(el, name)
        if value:
            return value
    return ""


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def find_best_link(root: lxml.html.HtmlElement) -> lxml.html.HtmlElement | None:
    """Title link, else thumbnail link, else any watch/shorts link."""
    for selector in (_TITLE_LINK, _THUMB_LINK, _ANY_WATCH_LINK):
        link = _first(selector, root)
        if link is not None:
            return link
    return None


def extract_title(root: lxml.html.HtmlElement) -> str:
    title = _text_or_attrs(_first(_TITLE_LINK, root), "title", "aria-label")
    if title:
        return title

    title = _text(_first(_FORMATTED_TITLE, root))
    if title:
        return title

    return _text_or_attrs(find_best_link(root), "title", "aria-label")


def extract_href(root: lxml.html.HtmlElement) -> str:
    link = find_best_link(root)
    return link.get("href", "") if link is not None else ""


def extract_channel(root: lxml.html.HtmlElement) -> str:
    container = _first(_CHANNEL_CONTAINER, root)
    if container is not None:
        channel = _text_or_attrs(_first(_ANCHOR, container), "title")
        if channel:
            return channel
        channel = _text(container)
        if channel:
            return channel

    channel = _text_or_attrs(_first(_FORMATTED_CHANNEL_LINK, root), "title")
    if channel:
        return channel

    return _text(_first(_CHANNEL_HREF_LINK, root))


def extract_duration_text(root: lxml.html.HtmlElement) -> str:
    overlay = _first(_DURATION_OVERLAY, root)
    if overlay is not None:
        text = _text(_first(_DURATION_TEXT, overlay)) or _text(overlay)
        if text:
            return text
    return _text(_first(_DURATION_SPAN, root))


def extract_video_id(href: str, root: lxml.html.HtmlElement | None = None) -> str | None:
    """Video id from the tile's own attributes, else from a watch/shorts/youtu.be URL."""
    if root is not None:
        for name in ID_ATTRIBUTES:
            value = _attr(root, name)
            if value:
                return value

    if not href:
        return None
    try:
        url = urlparse(urljoin(BASE_URL, href))
    except ValueError:
        return None

    v = parse_qs(url.query).get("v")
    if v and v[0]:
        return v[0]

    parts = [p for p in url.path.split("/") if p]
    if url.path.startswith("/shorts/") and len(parts) >= 2:
        return parts[1]
    if url.hostname == "youtu.be" and parts:
        return parts[0]
    return None


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


def extract_item(root: lxml.html.HtmlElement) -> ItemRecord:
    """Build an ItemRecord from one tile.  Never raises on missing fields."""
    title = extract_title(root)
    href = extract_href(root)
    duration_text = extract_duration_text(root)
    return ItemRecord.build(
        title=title,
        channel=extract_channel(root),
        duration_text=duration_text,
        duration_seconds=parse_duration(duration_text),
        item_id=extract_video_id(href, root),
        href=href,
    )


def require_item(root: lxml.html.HtmlElement) -> ItemRecord:
    """Like ``extract_item`` but raises when the tile has neither title nor id.

    Raises:
        ExtractionError: The tile has not rendered enough to be classified.
    """
    record = extract_item(root)
    if not record.has_data:
        raise ExtractionError(f"tile <{root.tag}> has no title or id yet")
    return record

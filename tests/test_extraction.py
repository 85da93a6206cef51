# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for musicview.extraction — field cascades and video ids."""

from __future__ import annotations

import lxml.html
import pytest

from musicview.errors import ExtractionError
from musicview.extraction import (
    extract_channel,
    extract_duration_text,
    extract_item,
    extract_title,
    extract_video_id,
    require_item,
)

from tests._tile_helpers import tile


def _el(html: str) -> lxml.html.HtmlElement:
    doc = lxml.html.document_fromstring(f"<html><body>{html}</body></html>")
    return doc.body[0]


class TestTitle:
    def test_title_link_text(self):
        assert extract_title(_el(tile("  Song Name  ", video_id="abc"))) == "Song Name"

    def test_title_attribute_fallback(self):
        el = _el(
            '<ytd-rich-item-renderer><a id="video-title" title="From Attr" href="/watch?v=1"></a></ytd-rich-item-renderer>'
        )
        assert extract_title(el) == "From Attr"

    def test_aria_label_fallback(self):
        el = _el(
            '<ytd-rich-item-renderer><a id="video-title-link" aria-label="Aria Title"></a></ytd-rich-item-renderer>'
        )
        assert extract_title(el) == "Aria Title"

    def test_formatted_string(self):
        el = _el(
            "<ytd-compact-video-renderer><yt-formatted-string id='video-title'>Formatted</yt-formatted-string>"
            "</ytd-compact-video-renderer>"
        )
        assert extract_title(el) == "Formatted"

    def test_h3_span(self):
        el = _el("<yt-lockup-view-model><h3><span>Lockup Title</span></h3></yt-lockup-view-model>")
        assert extract_title(el) == "Lockup Title"

    def test_any_watch_link(self):
        el = _el('<yt-lockup-view-model><a href="https://youtu.be/xyz" title="Short Link"></a></yt-lockup-view-model>')
        assert extract_title(el) == "Short Link"

    def test_missing(self):
        assert extract_title(_el("<ytd-rich-item-renderer></ytd-rich-item-renderer>")) == ""


class TestChannel:
    def test_channel_name_link(self):
        assert extract_channel(_el(tile("t", channel="ArtistVEVO"))) == "ArtistVEVO"

    def test_channel_container_text(self):
        el = _el("<ytd-rich-item-renderer><div id='channel-name'> Plain Text </div></ytd-rich-item-renderer>")
        assert extract_channel(el) == "Plain Text"

    def test_formatted_link_not_title(self):
        el = _el(
            "<ytd-rich-item-renderer>"
            "<a id='video-title' class='yt-simple-endpoint yt-formatted-string'>The Title</a>"
            "<a class='yt-simple-endpoint yt-formatted-string'>The Channel</a>"
            "</ytd-rich-item-renderer>"
        )
        assert extract_channel(el) == "The Channel"

    def test_handle_link(self):
        el = _el("<ytd-rich-item-renderer><a href='/@someone'>Someone</a></ytd-rich-item-renderer>")
        assert extract_channel(el) == "Someone"

    def test_missing(self):
        assert extract_channel(_el("<ytd-rich-item-renderer></ytd-rich-item-renderer>")) == ""


class TestDuration:
    def test_overlay_text(self):
        assert extract_duration_text(_el(tile("t", duration=" 3:45 "))) == "3:45"

    def test_overlay_without_text_node(self):
        el = _el(
            "<ytd-rich-item-renderer><ytd-thumbnail-overlay-time-status-renderer>10:00"
            "</ytd-thumbnail-overlay-time-status-renderer></ytd-rich-item-renderer>"
        )
        assert extract_duration_text(el) == "10:00"

    def test_span_fallback(self):
        el = _el(
            "<ytd-rich-item-renderer><span class='ytd-thumbnail-overlay-time-status-renderer'>1:02:03</span>"
            "</ytd-rich-item-renderer>"
        )
        assert extract_duration_text(el) == "1:02:03"


class TestVideoId:
    @pytest.mark.parametrize(
        "href, expected",
        [
            ("/watch?v=abc123&list=x", "abc123"),
            ("https://www.youtube.com/watch?v=zzz", "zzz"),
            ("/shorts/short1", "short1"),
            ("https://youtu.be/tiny9", "tiny9"),
            ("/channel/UC123", None),
            ("", None),
            ("/shorts/", None),
        ],
    )
    def test_from_href(self, href, expected):
        assert extract_video_id(href) == expected

    @pytest.mark.parametrize("attr", ["video-id", "data-video-id", "data-videoid"])
    def test_root_attribute_wins(self, attr):
        el = _el(f'<yt-lockup-view-model {attr}="fromattr"></yt-lockup-view-model>')
        assert extract_video_id("/watch?v=fromhref", el) == "fromattr"


class TestExtractItem:
    def test_full_record(self):
        record = extract_item(_el(tile("Dancing Queen (Official)", video_id="q1", channel="ABBA", duration="3:52")))
        assert record.title == "Dancing Queen (Official)"
        assert record.channel == "ABBA"
        assert record.duration_text == "3:52"
        assert record.duration_seconds == 232
        assert record.item_id == "q1"
        assert record.href == "/watch?v=q1"
        assert record.normalized_title == "dancing queen official"
        assert record.cache_key == "id:q1"

    def test_title_key_without_id(self):
        record = extract_item(_el(tile("Some Title!")))
        assert record.item_id is None
        assert record.cache_key == "title:some title"

    def test_unparseable_duration(self):
        assert extract_item(_el(tile("t", duration="LIVE"))).duration_seconds is None

    def test_empty_tile(self):
        record = extract_item(_el("<ytd-rich-item-renderer></ytd-rich-item-renderer>"))
        assert not record.has_data
        assert record.cache_key is None

    def test_require_item_raises_when_empty(self):
        with pytest.raises(ExtractionError):
            require_item(_el("<ytd-rich-item-renderer></ytd-rich-item-renderer>"))

    def test_require_item_accepts_id_only(self):
        assert require_item(_el(tile("", video_id="only-id"))).cache_key == "id:only-id"

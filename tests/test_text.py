# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for musicview.text — normalization and whole-word matching."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from musicview.text import contains_any, contains_token, normalize_list, normalize_text


class TestNormalizeText:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Hello, World!", "hello world"),
            ("  ABBA -- Dancing   Queen (Official) ", "abba dancing queen official"),
            ("lo-fi/chill__beats", "lo fi chill beats"),
            ("Track #1", "track 1"),
            ("", ""),
            (None, ""),
            ("!!!", ""),
        ],
    )
    def test_examples(self, raw, expected):
        assert normalize_text(raw) == expected

    def test_non_ascii_letters_are_separators(self):
        assert normalize_text("Beyoncé Live") == "beyonc live"

    @given(st.text(max_size=200))
    def test_idempotent(self, text):
        once = normalize_text(text)
        assert normalize_text(once) == once

    @given(st.text(max_size=200))
    def test_output_alphabet(self, text):
        out = normalize_text(text)
        assert out == out.strip()
        assert "  " not in out
        assert all(c.isascii() and (c.isalnum() or c == " ") for c in out)
        assert out == out.lower()


class TestContainsToken:
    def test_whole_word_only(self):
        assert contains_token("official music video", "music")
        assert not contains_token("musical theatre", "music")

    def test_phrase_is_contiguous(self):
        assert contains_token("live session highlights", "live session")
        assert not contains_token("session recorded live", "live session")

    def test_edges(self):
        assert contains_token("remix", "remix")
        assert contains_token("the remix", "remix")
        assert contains_token("remix edition", "remix")

    def test_empty_inputs(self):
        assert not contains_token("", "x")
        assert not contains_token("x", "")

    def test_contains_any(self):
        assert contains_any("deep house mix", ("podcast", "house"))
        assert not contains_any("deep house mix", ())


class TestNormalizeList:
    def test_list(self):
        assert normalize_list(["Official Video", "", "  ", "LYRICS!"]) == ("official video", "lyrics")

    def test_string_split_on_newline_and_comma(self):
        assert normalize_list("Remix, Cover\nAcoustic") == ("remix", "cover", "acoustic")

    def test_non_strings_dropped(self):
        assert normalize_list(["a", 3, None]) == ("a",)

    @pytest.mark.parametrize("value", [None, 42, {"a": 1}])
    def test_unsupported_types(self, value):
        assert normalize_list(value) == ()

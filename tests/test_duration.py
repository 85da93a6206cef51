# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for musicview.duration — parsing and range predicates."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from musicview.duration import (
    EXTREME_LONG_SECONDS,
    EXTREME_SHORT_SECONDS,
    MUSIC_MAX_SECONDS,
    MUSIC_MIN_SECONDS,
    in_target_range,
    parse_duration,
    strongly_contradicts,
)


class TestParseDuration:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1:02:03", 3723),
            ("2:30", 150),
            ("0:45", 45),
            ("45", 45),
            ("1:00:00:00", 216000),
            ("  3:05 ", 185),
            ("\n 12:34\n", 754),
            ("LIVE 4:20", 260),
            ("99:99", 99 * 60 + 99),
        ],
    )
    def test_parses(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["abc", "", None, "LIVE", ":", "::"])
    def test_unparseable(self, text):
        assert parse_duration(text) is None

    def test_empty_segments_ignored(self):
        assert parse_duration("1::30") == 90

    @given(st.integers(0, 99), st.integers(0, 59), st.integers(0, 59))
    def test_hms_round_trip(self, h, m, s):
        assert parse_duration(f"{h}:{m:02d}:{s:02d}") == h * 3600 + m * 60 + s

    @given(st.text(max_size=50))
    def test_never_raises(self, text):
        result = parse_duration(text)
        assert result is None or result >= 0


class TestPredicates:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (MUSIC_MIN_SECONDS - 1, False),
            (MUSIC_MIN_SECONDS, True),
            (240, True),
            (MUSIC_MAX_SECONDS, True),
            (MUSIC_MAX_SECONDS + 1, False),
            (None, False),
        ],
    )
    def test_in_target_range(self, seconds, expected):
        assert in_target_range(seconds) is expected

    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (0, True),
            (EXTREME_SHORT_SECONDS - 1, True),
            (EXTREME_SHORT_SECONDS, False),
            (600, False),
            (EXTREME_LONG_SECONDS, False),
            (EXTREME_LONG_SECONDS + 1, True),
            (5400, True),
            (None, False),
        ],
    )
    def test_strongly_contradicts(self, seconds, expected):
        assert strongly_contradicts(seconds) is expected

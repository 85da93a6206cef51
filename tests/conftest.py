# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Shared test configuration and fixtures."""

try:
    import musicview  # noqa: F401
except ImportError:
    raise ImportError("musicview is not installed. Run: pip install -e '.[dev]'") from None

import logging

import pytest

from musicview.classifier import FilterState
from musicview.settings import Settings


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """``set_debug`` changes the package logger level; restore it after each test."""
    pkg = logging.getLogger("musicview")
    old_level = pkg.level
    yield
    pkg.setLevel(old_level)


@pytest.fixture
def music_settings() -> Settings:
    """Keyword lists used across scanner/engine tests."""
    return Settings(
        strong_keywords=("official music video", "lyrics", "live session"),
        moderate_keywords=("remix", "cover", "acoustic"),
        non_keywords=("live", "podcast", "reaction", "tutorial"),
        channel_tokens=("vevo", "records", "topic"),
    )


@pytest.fixture
def music_state(music_settings) -> FilterState:
    return FilterState(music_settings)

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""musicview exception hierarchy.

None of these reach the scan loop: storage and extraction failures are
caught at their module boundary and degrade to defaults.  They exist so
the boundaries can catch one precise type instead of everything.
"""

from __future__ import annotations


class MusicViewError(Exception):
    """Base exception for all musicview errors."""


class StorageError(MusicViewError):
    """Persisted store read/write failure."""

    def __init__(self, message: str, *, key: str = "") -> None:
        super().__init__(message)
        self.key = key


class SettingsError(MusicViewError):
    """A settings file could not be read or parsed."""

    def __init__(self, message: str, *, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ExtractionError(MusicViewError):
    """A tile has not rendered enough fields to be classified yet."""

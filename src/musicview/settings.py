# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""User settings: keyword lists, default policy, reveal override, debounce, debug.

Persisted under ``SETTINGS_KEY`` with camelCase keys so blobs written by
older clients still load.  The model is frozen: a settings change always
replaces the whole object.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger("musicview.settings")

SETTINGS_KEY = "mvSettings"
CACHE_KEY = "mvCache"
RESCAN_KEY = "mvRescanToken"

DEFAULT_DEBOUNCE_MS = 60


class DefaultPolicy(StrEnum):
    """Outcome when no rule fires."""

    ASSUME_MATCH = "show"
    ASSUME_NO_MATCH = "hide"


class Settings(BaseModel):
    """Process-wide settings snapshot."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    strong_keywords: tuple[str, ...] = Field(default=(), alias="strongMusicKeywords")
    moderate_keywords: tuple[str, ...] = Field(default=(), alias="moderateMusicKeywords")
    non_keywords: tuple[str, ...] = Field(default=(), alias="nonMusicKeywords")
    channel_tokens: tuple[str, ...] = Field(default=(), alias="channelMusicTokens")
    default_policy: DefaultPolicy = Field(default=DefaultPolicy.ASSUME_MATCH, alias="defaultPolicy")
    show_blocked: bool = Field(default=False, alias="showBlocked")
    debounce_ms: int = Field(default=DEFAULT_DEBOUNCE_MS, alias="debounceMs")
    debug_mode: bool = Field(default=False, alias="debugMode")

    @field_validator("strong_keywords", "moderate_keywords", "non_keywords", "channel_tokens", mode="before")
    @classmethod
    def _coerce_keyword_list(cls, value: Any) -> tuple[str, ...]:
        if isinstance(value, str):
            value = value.replace(",", "\n").split("\n")
        if not isinstance(value, (list, tuple)):
            return ()
        return tuple(v.strip() for v in value if isinstance(v, str) and v.strip())

    @field_validator("default_policy", mode="before")
    @classmethod
    def _coerce_policy(cls, value: Any) -> DefaultPolicy:
        if value == DefaultPolicy.ASSUME_NO_MATCH.value:
            return DefaultPolicy.ASSUME_NO_MATCH
        return DefaultPolicy.ASSUME_MATCH

    @field_validator("debounce_ms", mode="before")
    @classmethod
    def _coerce_debounce(cls, value: Any) -> int:
        if isinstance(value, bool):
            return DEFAULT_DEBOUNCE_MS
        try:
            ms = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return DEFAULT_DEBOUNCE_MS
        return ms if ms > 0 else DEFAULT_DEBOUNCE_MS

    @field_validator("show_blocked", "debug_mode", mode="before")
    @classmethod
    def _coerce_flag(cls, value: Any) -> bool:
        return bool(value)

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def to_raw(self) -> dict[str, Any]:
        """Serialize with persisted (camelCase) keys."""
        return self.model_dump(mode="json", by_alias=True)

    def with_show_blocked(self, show: bool) -> Settings:
        return self.model_copy(update={"show_blocked": show})


DEFAULT_SETTINGS = Settings()


def load_settings(raw: Any) -> Settings:
    """Build Settings from a persisted blob, merged over the defaults.

    A non-mapping blob yields the defaults.  A field that fails validation
    falls back to its default; the other fields are kept.
    """
    if not isinstance(raw, dict):
        return DEFAULT_SETTINGS
    defaults = DEFAULT_SETTINGS.to_raw()
    merged = {**defaults, **raw}
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        bad = {str(err["loc"][0]) for err in exc.errors() if err["loc"]}
        logger.warning("Invalid settings field(s), using their defaults: %s", ", ".join(sorted(bad)))

    kept = {key: value for key, value in merged.items() if key not in bad}
    try:
        return Settings.model_validate({**defaults, **kept})
    except ValidationError:
        logger.warning("Settings still invalid after field fallback, using defaults")
        return DEFAULT_SETTINGS

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""structlog + stdlib bridge for the CLI and the engine's debug mode.

Leaf module: no musicview imports.  Every module logs through
``logging.getLogger("musicview.<module>")``; ``configure`` renders those
records (and structlog's own) through one handler, and ``set_debug``
follows the ``debugMode`` setting at runtime.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

PACKAGE_LOGGER = "musicview"


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(json_output: bool, stream: IO[str]):
    if json_output:
        return structlog.processors.JSONRenderer()
    isatty = getattr(stream, "isatty", None)
    return structlog.dev.ConsoleRenderer(colors=bool(isatty and isatty()))


def configure(
    *,
    json_output: bool = False,
    level: str = "WARNING",
    debug: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Install a single handler on the root logger.

    Args:
        json_output: JSON lines (``--json-logs``) instead of console output.
        level: Root level for everything outside musicview; unknown names mean WARNING.
        debug: Start with musicview loggers at DEBUG (``--debug``); the engine
            later follows the ``debugMode`` setting.
        stream: Defaults to ``sys.stderr`` at call time.
    """
    stream = stream if stream is not None else sys.stderr
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output, stream),
            ],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.WARNING))
    set_debug(debug)


def set_debug(enabled: bool) -> None:
    """Follow the ``debugMode`` setting: DEBUG for musicview loggers, or inherit from root.

    Handlers filter by their own level, so the root handler must not be
    stricter than DEBUG for the extra records to come through.
    """
    pkg = logging.getLogger(PACKAGE_LOGGER)
    if enabled:
        pkg.setLevel(logging.DEBUG)
        for handler in logging.getLogger().handlers:
            if handler.level > logging.DEBUG:
                handler.setLevel(logging.DEBUG)
    else:
        pkg.setLevel(logging.NOTSET)

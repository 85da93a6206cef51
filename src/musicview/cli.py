# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""musicview CLI: classify a single item or scan an HTML snapshot.

Usage:
    python -m musicview.cli classify --title TITLE [--channel NAME] [--duration 3:45] [--settings FILE]
    python -m musicview.cli [--json-logs] [--debug] scan FILE --url URL [--settings FILE] [--output OUT]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

import lxml.html
import yaml

from . import ItemRecord
from .classifier import classify, compile_matchers
from .duration import parse_duration
from .engine import FilterEngine
from .errors import SettingsError
from .logging_config import configure
from .page_context import YouTubePageContext
from .settings import DEFAULT_SETTINGS, SETTINGS_KEY, Settings, load_settings
from .store import MemoryStore

logger = logging.getLogger("musicview.cli")


def read_settings_file(path_str: str | None) -> Settings:
    """Load settings from JSON or YAML (by suffix).  No path → defaults.

    Raises:
        SettingsError: The file is missing or not a mapping.
    """
    if not path_str:
        return DEFAULT_SETTINGS
    path = Path(path_str)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"Cannot read settings file: {exc}", path=str(path)) from exc

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            raw: Any = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise SettingsError(f"Cannot parse settings file: {exc}", path=str(path)) from exc

    if not isinstance(raw, dict):
        raise SettingsError("Settings file must contain a mapping", path=str(path))
    return load_settings(raw)


def cmd_classify(args: argparse.Namespace) -> int:
    settings = read_settings_file(args.settings)
    duration_text = args.duration or ""
    record = ItemRecord.build(
        title=args.title,
        channel=args.channel or "",
        duration_text=duration_text,
        duration_seconds=parse_duration(duration_text),
        item_id=args.id,
    )
    decision = classify(record, compile_matchers(settings), settings.default_policy)
    print(
        json.dumps(
            {
                "key": record.cache_key,
                "isMatch": decision.is_match,
                "reason": decision.reason.value,
                "durationSeconds": record.duration_seconds,
            },
            ensure_ascii=False,
        )
    )
    return 0


async def run_scan(html: str, url: str, settings: Settings, hide_delay: float = 0.0) -> tuple[list[dict], str]:
    """Scan one snapshot through a full engine.  Returns (tile results, annotated HTML)."""
    document = lxml.html.document_fromstring(html)
    store = MemoryStore({SETTINGS_KEY: settings.to_raw()})
    engine = FilterEngine(store, YouTubePageContext(document, url), hide_delay=hide_delay)
    await engine.start()
    engine.rescan_all()
    # Let delayed hides land before serializing.
    await asyncio.sleep(hide_delay + 0.01)
    await engine.close()

    results = [
        {
            "context": r.context,
            "key": r.key,
            "title": r.title,
            "isMatch": r.is_match,
            "reason": r.reason,
        }
        for r in engine.scanner.results.values()
    ]
    annotated = lxml.html.tostring(document, encoding="unicode")
    return results, annotated


def cmd_scan(args: argparse.Namespace) -> int:
    settings = read_settings_file(args.settings)
    html = Path(args.file).read_text(encoding="utf-8")
    results, annotated = asyncio.run(run_scan(html, args.url, settings))
    print(json.dumps(results, indent=2, ensure_ascii=False))
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(annotated, encoding="utf-8")
        logger.info("Annotated HTML written to %s", out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="musicview", description="Local music filter for recommendation tiles")
    parser.add_argument("--json-logs", action="store_true", help="Emit logs as JSON lines")
    parser.add_argument("--log-level", default="WARNING", help="Root log level (default WARNING)")
    parser.add_argument("--debug", action="store_true", help="Debug logging for musicview modules")
    sub = parser.add_subparsers(dest="command", required=True)

    p_classify = sub.add_parser("classify", help="Classify one item from its fields")
    p_classify.add_argument("--title", required=True)
    p_classify.add_argument("--channel", default="")
    p_classify.add_argument("--duration", default="", help="Displayed duration, e.g. 3:45")
    p_classify.add_argument("--id", default=None, help="Video id (affects the cache key only)")
    p_classify.add_argument("--settings", default=None, help="Settings file (.json/.yaml)")
    p_classify.set_defaults(func=cmd_classify)

    p_scan = sub.add_parser("scan", help="Scan a saved HTML page")
    p_scan.add_argument("file", help="HTML snapshot")
    p_scan.add_argument("--url", required=True, help="URL the snapshot was taken at")
    p_scan.add_argument("--settings", default=None, help="Settings file (.json/.yaml)")
    p_scan.add_argument("--output", default=None, help="Write annotated HTML here")
    p_scan.set_defaults(func=cmd_scan)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure(json_output=args.json_logs, level=args.log_level, debug=args.debug)
    try:
        return args.func(args)
    except SettingsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

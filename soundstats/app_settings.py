from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_DIR = Path(
    os.environ.get("SOUNDSTATS_CONFIG_DIR", REPO_ROOT / ".soundstats")
)
SETTINGS_PATH = DEFAULT_CONFIG_DIR / "settings.json"


def _default_settings() -> dict[str, Any]:
    return {
        "stats": {
            "min_listen_ms": 30 * 1000,
            "default_limit": 10,
            "max_limit": 100,
            "default_range_days": 30,
            "previous_overfetch_factor": 2,
        },
        "leaderboard": {
            "default_limit": 10,
        },
        "feed": {
            "window_hours": 24,
            "default_limit": 20,
        },
    }


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            merged[key] = _deep_merge(base[key], value)
        else:
            merged[key] = value
    return merged


def load_settings() -> dict[str, Any]:
    defaults = _default_settings()
    if not SETTINGS_PATH.exists():
        return defaults
    try:
        data = json.loads(SETTINGS_PATH.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return defaults
    if not isinstance(data, dict):
        return defaults
    return _deep_merge(defaults, data)


def update_settings(patch: dict[str, Any]) -> dict[str, Any]:
    current = load_settings()
    updated = _deep_merge(current, patch)
    SETTINGS_PATH.parent.mkdir(parents=True, exist_ok=True)
    SETTINGS_PATH.write_text(
        json.dumps(updated, indent=2, sort_keys=True, ensure_ascii=True) + "\n",
        encoding="utf-8",
    )
    return updated


def _section(name: str, settings: dict[str, Any] | None = None) -> dict[str, Any]:
    settings = settings or load_settings()
    defaults = _default_settings()[name]
    section = settings.get(name) if isinstance(settings, dict) else None
    if not isinstance(section, dict):
        return defaults
    return _deep_merge(defaults, section)


def stats_settings(settings: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("stats", settings)


def leaderboard_settings(settings: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("leaderboard", settings)


def feed_settings(settings: dict[str, Any] | None = None) -> dict[str, Any]:
    return _section("feed", settings)

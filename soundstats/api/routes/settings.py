from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, StrictInt

from soundstats import app_settings
from soundstats.api.auth import current_user_id
from soundstats.services.stats_cache import get_stats_cache

router = APIRouter()
logger = logging.getLogger(__name__)


class StatsSettingsPatch(BaseModel):
    min_listen_ms: StrictInt | None = Field(None, ge=0)
    default_limit: StrictInt | None = Field(None, ge=1, le=100)
    max_limit: StrictInt | None = Field(None, ge=1, le=100)
    default_range_days: StrictInt | None = Field(None, ge=1)
    previous_overfetch_factor: StrictInt | None = Field(None, ge=1)


class LeaderboardSettingsPatch(BaseModel):
    default_limit: StrictInt | None = Field(None, ge=1, le=100)


class FeedSettingsPatch(BaseModel):
    window_hours: StrictInt | None = Field(None, ge=1)
    default_limit: StrictInt | None = Field(None, ge=1, le=100)


class SettingsPatch(BaseModel):
    stats: StatsSettingsPatch | None = None
    leaderboard: LeaderboardSettingsPatch | None = None
    feed: FeedSettingsPatch | None = None


@router.get("")
async def get_settings() -> dict[str, Any]:
    return app_settings.load_settings()


@router.put("")
async def update_settings(
    payload: SettingsPatch,
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    for section in ("stats", "leaderboard", "feed"):
        values = getattr(payload, section)
        if values is None:
            continue
        changed = values.model_dump(exclude_none=True)
        if changed:
            patch[section] = changed

    updated = app_settings.update_settings(patch)
    # Cached results were computed under the old settings
    get_stats_cache().invalidate_all()
    logger.info("Settings updated by %s: %s", user_id, sorted(patch))
    return updated


@router.delete("/cache")
async def clear_cache(
    user: str | None = None,
    user_id: str = Depends(current_user_id),
) -> dict[str, Any]:
    """Drop cached statistics, for one user or entirely."""
    cache = get_stats_cache()
    if user:
        cleared = cache.invalidate_user(user)
    else:
        cleared = cache.invalidate_all()
    logger.info("Stats cache cleared by %s (%d entries)", user_id, cleared)
    return {"success": True, "cleared": cleared}

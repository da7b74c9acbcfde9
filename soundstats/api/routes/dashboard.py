"""
Dashboard API Routes

Endpoints for a user's dashboard: totals, top artists/tracks/albums with
period-over-period changes, and daily playtime.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from soundstats import app_settings
from soundstats.api.auth import current_user_id
from soundstats.services.errors import AccessDeniedError, StatsError
from soundstats.services.friends import users_are_friends
from soundstats.services.period_window import (
    PRESET_NAMES,
    DateWindow,
    preset_window,
    resolve_dashboard_window,
)
from soundstats.services.stats_aggregator import get_stats_aggregator

router = APIRouter()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DashboardScope:
    """Whose statistics are shown, and over which window."""

    user_id: str
    window: DateWindow


def _target_user(viewer_id: str, user: str | None) -> str:
    if not user or user == viewer_id:
        return viewer_id
    if not users_are_friends(viewer_id, user):
        logger.info("Dashboard access denied: %s requested %s", viewer_id, user)
        raise AccessDeniedError("You can only view dashboards for users who are your friends.")
    return user


async def dashboard_scope(
    viewer_id: str = Depends(current_user_id),
    user: str | None = Query(None, description="User to show (defaults to the signed-in user)"),
    from_: str | None = Query(None, alias="from", description="Start date, YYYY-MM-DD"),
    to: str | None = Query(None, description="End date, YYYY-MM-DD"),
    preset: str | None = Query(None, description=f"Date preset: {', '.join(PRESET_NAMES)}"),
) -> DashboardScope:
    """Resolve the target user and the normalized date window of a request."""
    now = datetime.now(timezone.utc)
    try:
        user_id = _target_user(viewer_id, user)
        if preset:
            window = preset_window(preset, now)
        else:
            window = resolve_dashboard_window(
                from_,
                to,
                get_stats_aggregator().get_first_play(user_id),
                now,
                app_settings.stats_settings()["default_range_days"],
            )
    except StatsError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Failed to resolve dashboard scope")
        raise HTTPException(status_code=500, detail=str(e))
    return DashboardScope(user_id=user_id, window=window)


def _limit(limit: int | None) -> int:
    """Rows per top table: the configured default, capped at the configured max."""
    stats = app_settings.stats_settings()
    if limit is None:
        return stats["default_limit"]
    return min(limit, stats["max_limit"])


@router.get("")
async def get_dashboard(
    scope: DashboardScope = Depends(dashboard_scope),
    limit: int | None = Query(None, ge=1, description="Rows per top table (capped at 100)"),
) -> dict[str, Any]:
    """
    Get every dashboard section for a user.

    Top tables include rank changes against the previous period of equal length.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_dashboard(scope.user_id, scope.window, _limit(limit))
    except Exception as e:
        logger.exception("Failed to get dashboard")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/top-artists")
async def get_top_artists(
    scope: DashboardScope = Depends(dashboard_scope),
    limit: int | None = Query(None, ge=1, description="Max artists to return"),
) -> dict[str, Any]:
    """
    Get most played primary artists with rank and count changes.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_top_artists(scope.user_id, scope.window, _limit(limit))
    except Exception as e:
        logger.exception("Failed to get top artists")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/top-tracks")
async def get_top_tracks(
    scope: DashboardScope = Depends(dashboard_scope),
    limit: int | None = Query(None, ge=1, description="Max tracks to return"),
) -> dict[str, Any]:
    """
    Get most played tracks with rank and count changes.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_top_tracks(scope.user_id, scope.window, _limit(limit))
    except Exception as e:
        logger.exception("Failed to get top tracks")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/top-albums")
async def get_top_albums(
    scope: DashboardScope = Depends(dashboard_scope),
    limit: int | None = Query(None, ge=1, description="Max albums to return"),
) -> dict[str, Any]:
    """
    Get most played albums with rank and count changes.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_top_albums(scope.user_id, scope.window, _limit(limit))
    except Exception as e:
        logger.exception("Failed to get top albums")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/totals")
async def get_totals(scope: DashboardScope = Depends(dashboard_scope)) -> dict[str, Any]:
    """
    Get total minutes, artists and tracks with changes since the previous period.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_totals(scope.user_id, scope.window)
    except Exception as e:
        logger.exception("Failed to get totals")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/daily")
async def get_daily_playtime(scope: DashboardScope = Depends(dashboard_scope)) -> dict[str, Any]:
    """
    Get minutes listened per day.
    """
    aggregator = get_stats_aggregator()

    try:
        return aggregator.get_daily_playtime(scope.user_id, scope.window)
    except Exception as e:
        logger.exception("Failed to get daily playtime")
        raise HTTPException(status_code=500, detail=str(e))

"""
Leaderboard API Routes
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from soundstats import app_settings
from soundstats.api.auth import current_user_id
from soundstats.services.errors import StatsError
from soundstats.services.leaderboard import SortBy, get_leaderboard_service
from soundstats.services.period_window import Timeframe

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def get_leaderboard(
    user_id: str = Depends(current_user_id),
    sort_by: SortBy = Query(SortBy.PLAYTIME, description="Playtime or Count"),
    timeframe: Timeframe = Query(Timeframe.LAST_7_DAYS, description="Rolling timeframe"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int | None = Query(None, ge=1, le=100, description="Users per page"),
) -> dict[str, Any]:
    """
    Rank the signed-in user and their friends.

    Each entry carries its rank change against the previous timeframe.
    """
    service = get_leaderboard_service()

    try:
        if limit is None:
            limit = app_settings.leaderboard_settings()["default_limit"]
        return service.get_leaderboard(user_id, sort_by, timeframe, page, limit)
    except StatsError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        logger.exception("Failed to get leaderboard")
        raise HTTPException(status_code=500, detail=str(e))

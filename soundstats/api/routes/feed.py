"""
Activity Feed API Routes
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from soundstats import app_settings
from soundstats.api.auth import current_user_id
from soundstats.services.feed import get_feed_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def get_feed(
    _user_id: str = Depends(current_user_id),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    limit: int | None = Query(None, ge=1, le=100, description="Listens per page"),
) -> dict[str, Any]:
    """
    Get recent listens from the last day, newest first.
    """
    service = get_feed_service()

    try:
        if limit is None:
            limit = app_settings.feed_settings()["default_limit"]
        listens = service.get_recent_listens(offset, limit)
        return {"offset": offset, "limit": limit, "listens": listens}
    except Exception as e:
        logger.exception("Failed to get feed")
        raise HTTPException(status_code=500, detail=str(e))

"""
Leaderboard Service

Ranks a user and their friends by listening activity over a rolling
timeframe, with each entry's rank and metric change against the previous
timeframe of the same length.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from soundstats import app_settings
from soundstats.db.connection import get_connection
from soundstats.services.errors import InvalidRequestError, NotAuthenticatedError
from soundstats.services.friends import get_friend_ids
from soundstats.services.period_window import (
    DateWindow,
    Timeframe,
    derive_previous_window,
    timeframe_window,
)
from soundstats.services.rank_comparison import previous_fetch_limit
from soundstats.services.stats_aggregator import comparison_rows
from soundstats.services.stats_cache import cached

logger = logging.getLogger(__name__)


class SortBy(str, Enum):
    PLAYTIME = "Playtime"
    COUNT = "Count"


# Playtime is summed seconds over every listen; Count only counts listens
# above the minimum duration.
_METRICS: dict[SortBy, str] = {
    SortBy.PLAYTIME: "SUM(lh.progress_ms) / 1000",
    SortBy.COUNT: "COUNT(*)",
}


class LeaderboardService:
    """Service for friend leaderboards."""

    def _filters(
        self,
        sort_by: SortBy,
        window: DateWindow | None,
        closed: bool,
        user_ids: list[str],
        min_listen_ms: int,
    ) -> tuple[str, list[Any]]:
        clauses = ["lh.user_id = ANY(%s)"]
        params: list[Any] = [user_ids]
        if window is not None:
            end_op = "<=" if closed else "<"
            clauses.append(f"lh.played_at >= %s AND lh.played_at {end_op} %s")
            params.extend([window.start, window.end])
        if sort_by == SortBy.COUNT:
            clauses.append("lh.progress_ms >= %s")
            params.append(min_listen_ms)
        return " AND ".join(clauses), params

    def _count_users(self, where: str, params: list[Any]) -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT COUNT(DISTINCT lh.user_id) FROM listening_history lh WHERE {where}",
                    params,
                )
                row = cur.fetchone()
        return int(row[0]) if row and row[0] else 0

    def _ranked_users(
        self,
        sort_by: SortBy,
        where: str,
        params: list[Any],
        limit: int,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        metric = _METRICS[sort_by]
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT lh.user_id, {metric} AS metric
                    FROM listening_history lh
                    WHERE {where}
                    GROUP BY lh.user_id
                    ORDER BY metric DESC, SUM(lh.progress_ms) DESC, lh.user_id ASC
                    LIMIT %s OFFSET %s
                    """,
                    [*params, limit, offset],
                )
                rows = cur.fetchall()

        return [{"user_id": row[0], "metric": float(row[1] or 0)} for row in rows]

    @cached("leaderboard")
    def get_leaderboard(
        self,
        user_id: str,
        sort_by: SortBy = SortBy.PLAYTIME,
        timeframe: Timeframe = Timeframe.LAST_7_DAYS,
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """
        Get one page of the leaderboard for a user and their friends.

        Args:
            user_id: Authenticated user; they and their accepted friends are ranked
            sort_by: Playtime (seconds listened) or Count (qualifying plays)
            timeframe: Rolling period; all-time has no previous period
            page: 1-based page, clamped to the available pages
            limit: Users per page

        Returns:
            Dict with ``users`` (rank, metric and changes), ``total_pages``
            and ``current_page``

        Raises:
            NotAuthenticatedError: If no user id is given
            InvalidRequestError: If ``limit`` is not positive
        """
        if not user_id:
            raise NotAuthenticatedError("Not authenticated")
        if limit < 1:
            raise InvalidRequestError(f"Limit must be positive, got {limit}")

        sort_by = SortBy(sort_by)
        stats = app_settings.stats_settings()
        min_listen_ms = stats["min_listen_ms"]
        allowed_user_ids = [user_id, *get_friend_ids(user_id)]

        window = timeframe_window(timeframe, datetime.now(timezone.utc))
        where, params = self._filters(sort_by, window, True, allowed_user_ids, min_listen_ms)

        total_users = self._count_users(where, params)
        total_pages = math.ceil(total_users / limit)
        current_page = max(1, min(page, total_pages or 1))
        offset = (current_page - 1) * limit

        current = self._ranked_users(sort_by, where, params, limit, offset)

        previous: list[dict[str, Any]] = []
        if window is not None:
            prev_where, prev_params = self._filters(
                sort_by,
                derive_previous_window(window),
                False,
                allowed_user_ids,
                min_listen_ms,
            )
            previous = self._ranked_users(
                sort_by,
                prev_where,
                prev_params,
                previous_fetch_limit(limit, offset, stats["previous_overfetch_factor"]),
            )

        logger.debug(
            f"Leaderboard for {user_id}: page {current_page}/{total_pages}, "
            f"{len(current)} current, {len(previous)} previous"
        )

        return {
            "sort_by": sort_by.value,
            "timeframe": Timeframe(timeframe).value,
            "users": comparison_rows(current, previous, "user_id", "metric", rank_offset=offset),
            "total_pages": total_pages,
            "current_page": current_page,
        }


# Singleton instance
_leaderboard_service: LeaderboardService | None = None


def get_leaderboard_service() -> LeaderboardService:
    """Get the singleton LeaderboardService instance."""
    global _leaderboard_service
    if _leaderboard_service is None:
        _leaderboard_service = LeaderboardService()
    return _leaderboard_service

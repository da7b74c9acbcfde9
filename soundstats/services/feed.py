"""
Activity Feed Service

Recent listens across all users for the activity feed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from soundstats import app_settings
from soundstats.db.connection import get_connection
from soundstats.services.stats_cache import cached

logger = logging.getLogger(__name__)


class FeedService:
    """Service for the recent-listens activity feed."""

    @cached("feed", per_user=False)
    def get_recent_listens(self, offset: int = 0, limit: int = 20) -> list[dict[str, Any]]:
        """
        Get recent listens, newest first.

        Only listens from the configured window (default 24 hours) that pass
        the minimum listen duration are included, attributed to the track's
        primary artist.

        Args:
            offset: Pagination offset
            limit: Maximum number of listens to return

        Returns:
            List of listen dicts
        """
        settings = app_settings.load_settings()
        window_hours = app_settings.feed_settings(settings)["window_hours"]
        min_listen_ms = app_settings.stats_settings(settings)["min_listen_ms"]
        cutoff = datetime.now(timezone.utc) - timedelta(hours=window_hours)

        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT
                        lh.id,
                        lh.user_id,
                        t.name,
                        a.name,
                        lh.played_at,
                        al.image_url,
                        t.id
                    FROM listening_history lh
                    LEFT JOIN tracks t ON lh.track_id = t.id
                    LEFT JOIN artist_tracks at ON t.id = at.track_id
                    LEFT JOIN artists a ON at.artist_id = a.id
                    LEFT JOIN albums al ON t.album_id = al.id
                    WHERE at.is_primary_artist = TRUE
                    AND lh.played_at >= %s
                    AND lh.progress_ms >= %s
                    ORDER BY lh.played_at DESC
                    LIMIT %s OFFSET %s
                    """,
                    (cutoff, min_listen_ms, limit, offset),
                )
                rows = cur.fetchall()

        return [
            {
                "id": str(row[0]),
                "user_id": row[1],
                "track": row[2] or "Unknown",
                "artist": row[3] or "Unknown",
                "played_at": int(row[4].timestamp() * 1000) if row[4] else None,
                "album_image": row[5],
                "track_id": row[6],
            }
            for row in rows
        ]


# Singleton instance
_feed_service: FeedService | None = None


def get_feed_service() -> FeedService:
    """Get the singleton FeedService instance."""
    global _feed_service
    if _feed_service is None:
        _feed_service = FeedService()
    return _feed_service

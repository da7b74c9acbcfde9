"""
Statistics Aggregator Service

Builds a user's dashboard statistics: top artists, tracks and albums with
their change since the previous period, period totals and daily playtime.
"""

from __future__ import annotations

import logging
from datetime import datetime
from operator import itemgetter
from typing import Any, Callable

from soundstats import app_settings
from soundstats.db.connection import get_connection
from soundstats.services.period_window import DateWindow, derive_previous_window
from soundstats.services.rank_comparison import (
    compare_rankings,
    describe_rank_change,
    format_percent_change,
    percent_change,
    previous_fetch_limit,
    rank_direction,
)
from soundstats.services.stats_cache import cached

logger = logging.getLogger(__name__)

# Ranked entity queries. Each selects (id, name, image_url, count) for one
# user's qualifying listens inside a time filter, in the deterministic
# ranking order: play count, then total listened time, then name.
_TOP_QUERIES: dict[str, str] = {
    "artists": """
        SELECT a.id, a.name, a.image_url, COUNT(*) AS play_count
        FROM listening_history lh
        JOIN tracks t ON lh.track_id = t.id
        JOIN artist_tracks at ON t.id = at.track_id
        JOIN artists a ON at.artist_id = a.id
        WHERE {time_filter}
        AND lh.user_id = %s
        AND lh.progress_ms >= %s
        AND at.is_primary_artist = TRUE
        GROUP BY a.id, a.name, a.image_url
        ORDER BY play_count DESC, SUM(lh.progress_ms) DESC, a.name ASC
        LIMIT %s
    """,
    "tracks": """
        SELECT t.id, t.name, al.image_url, COUNT(*) AS play_count
        FROM listening_history lh
        JOIN tracks t ON lh.track_id = t.id
        LEFT JOIN albums al ON t.album_id = al.id
        WHERE {time_filter}
        AND lh.user_id = %s
        AND lh.progress_ms >= %s
        GROUP BY t.id, t.name, al.image_url
        ORDER BY play_count DESC, SUM(lh.progress_ms) DESC, t.name ASC
        LIMIT %s
    """,
    "albums": """
        SELECT al.id, al.name, al.image_url, COUNT(*) AS play_count
        FROM listening_history lh
        JOIN tracks t ON lh.track_id = t.id
        JOIN albums al ON t.album_id = al.id
        WHERE {time_filter}
        AND lh.user_id = %s
        AND lh.progress_ms >= %s
        GROUP BY al.id, al.name, al.image_url
        ORDER BY play_count DESC, SUM(lh.progress_ms) DESC, al.name ASC
        LIMIT %s
    """,
}

_ID_KEYS = {"artists": "artist_id", "tracks": "track_id", "albums": "album_id"}


def _to_minutes(ms: float) -> float:
    return round(ms / 60000, 1)


def time_filter(closed: bool) -> str:
    """
    SQL predicate on ``lh.played_at`` taking (start, end) parameters.

    Requested windows are closed (their end is 23:59:59.999999); derived
    previous windows end where the current one starts and are half-open so
    no listen is counted in both periods.
    """
    end_op = "<=" if closed else "<"
    return f"lh.played_at >= %s AND lh.played_at {end_op} %s"


def comparison_rows(
    current: list[dict[str, Any]],
    previous: list[dict[str, Any]],
    id_key: str,
    metric_key: str,
    rank_offset: int = 0,
) -> list[dict[str, Any]]:
    """Compare two ranked row lists and shape the result for the API."""
    comparisons = compare_rankings(
        current,
        previous,
        id_of=itemgetter(id_key),
        metric_of=itemgetter(metric_key),
        rank_offset=rank_offset,
    )
    rows = []
    for index, comparison in enumerate(comparisons):
        row = comparison.as_dict()
        row["rank"] = rank_offset + index + 1
        row["rank_direction"] = rank_direction(comparison.rank_change)
        row["rank_tooltip"] = describe_rank_change(
            comparison.rank_change, comparison.previous_rank
        )
        row["percent_change_text"] = format_percent_change(comparison.percent_change)
        rows.append(row)
    return rows


class StatsAggregator:
    """Service for aggregating a user's listening statistics."""

    def _fetch_top(
        self,
        kind: str,
        user_id: str,
        window: DateWindow,
        limit: int,
        closed: bool,
        min_listen_ms: int,
    ) -> list[dict[str, Any]]:
        query = _TOP_QUERIES[kind].format(time_filter=time_filter(closed))
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    query,
                    (window.start, window.end, user_id, min_listen_ms, limit),
                )
                rows = cur.fetchall()

        id_key = _ID_KEYS[kind]
        return [
            {
                id_key: row[0],
                "name": row[1] or "Unknown",
                "image_url": row[2],
                "count": int(row[3]),
            }
            for row in rows
        ]

    def _top_with_comparison(
        self, kind: str, user_id: str, window: DateWindow, limit: int
    ) -> dict[str, Any]:
        stats = app_settings.stats_settings()
        previous_window = derive_previous_window(window)
        min_listen_ms = stats["min_listen_ms"]

        current = self._fetch_top(kind, user_id, window, limit, True, min_listen_ms)
        previous = self._fetch_top(
            kind,
            user_id,
            previous_window,
            previous_fetch_limit(limit, factor=stats["previous_overfetch_factor"]),
            False,
            min_listen_ms,
        )
        logger.debug(
            f"Top {kind} for {user_id}: {len(current)} current, {len(previous)} previous"
        )

        return {
            **window.to_dict(),
            "previous_from": previous_window.start.isoformat(),
            "previous_to": previous_window.end.isoformat(),
            kind: comparison_rows(current, previous, _ID_KEYS[kind], "count"),
        }

    @cached("top_artists")
    def get_top_artists(self, user_id: str, window: DateWindow, limit: int = 10) -> dict[str, Any]:
        """
        Get a user's most played primary artists with rank changes.

        Args:
            user_id: User whose listens are counted
            window: Current period
            limit: Maximum number of artists to return

        Returns:
            Window bounds plus ``artists``, each with rank, count and changes
        """
        return self._top_with_comparison("artists", user_id, window, limit)

    @cached("top_tracks")
    def get_top_tracks(self, user_id: str, window: DateWindow, limit: int = 10) -> dict[str, Any]:
        """Get a user's most played tracks with rank changes."""
        return self._top_with_comparison("tracks", user_id, window, limit)

    @cached("top_albums")
    def get_top_albums(self, user_id: str, window: DateWindow, limit: int = 10) -> dict[str, Any]:
        """Get a user's most played albums with rank changes."""
        return self._top_with_comparison("albums", user_id, window, limit)

    def _fetch_totals(
        self, user_id: str, window: DateWindow, closed: bool, min_listen_ms: int
    ) -> tuple[int, int, int]:
        predicate = time_filter(closed)
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT
                        (
                            SELECT COALESCE(SUM(lh.progress_ms), 0)
                            FROM listening_history lh
                            WHERE {predicate} AND lh.user_id = %s
                        ) AS total_ms,
                        (
                            SELECT COUNT(DISTINCT at.artist_id)
                            FROM listening_history lh
                            JOIN artist_tracks at ON lh.track_id = at.track_id
                            WHERE {predicate} AND lh.user_id = %s
                            AND lh.progress_ms >= %s
                            AND at.is_primary_artist = TRUE
                        ) AS artists,
                        (
                            SELECT COUNT(DISTINCT lh.track_id)
                            FROM listening_history lh
                            WHERE {predicate} AND lh.user_id = %s
                            AND lh.progress_ms >= %s
                        ) AS tracks
                    """,
                    (
                        window.start, window.end, user_id,
                        window.start, window.end, user_id, min_listen_ms,
                        window.start, window.end, user_id, min_listen_ms,
                    ),
                )
                total_ms, artists, tracks = cur.fetchone()

        return int(total_ms or 0), artists or 0, tracks or 0

    @cached("totals")
    def get_totals(self, user_id: str, window: DateWindow) -> dict[str, Any]:
        """
        Get listening minutes, distinct artists and distinct tracks.

        Each total is paired with its percent change against the previous
        window of equal length. Minutes count every listen; distinct counts
        only listens above the minimum duration.
        """
        min_listen_ms = app_settings.stats_settings()["min_listen_ms"]
        previous_window = derive_previous_window(window)

        total_ms, artists, tracks = self._fetch_totals(user_id, window, True, min_listen_ms)
        prev_ms, prev_artists, prev_tracks = self._fetch_totals(
            user_id, previous_window, False, min_listen_ms
        )

        def total(
            current: float, previous: float, scale: Callable[[float], float] = int
        ) -> dict[str, Any]:
            change = percent_change(current, previous)
            return {
                "value": scale(current),
                "previous": scale(previous),
                "percent_change": change,
                "percent_change_text": format_percent_change(change),
                "direction": rank_direction(change),
            }

        return {
            **window.to_dict(),
            "minutes": total(total_ms, prev_ms, _to_minutes),
            "artists": total(artists, prev_artists),
            "tracks": total(tracks, prev_tracks),
        }

    @cached("daily_playtime")
    def get_daily_playtime(self, user_id: str, window: DateWindow) -> dict[str, Any]:
        """Get minutes listened per day inside the window."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT DATE(lh.played_at) AS play_date, SUM(lh.progress_ms) AS total_ms
                    FROM listening_history lh
                    WHERE {time_filter(True)}
                    AND lh.user_id = %s
                    GROUP BY play_date
                    ORDER BY play_date
                    """,
                    (window.start, window.end, user_id),
                )
                rows = cur.fetchall()

        days = [
            {
                "date": row[0].isoformat(),
                "minutes": _to_minutes(row[1] or 0),
            }
            for row in rows
        ]
        return {**window.to_dict(), "days": days}

    @cached("first_play")
    def get_first_play(self, user_id: str) -> datetime | None:
        """Get the timestamp of a user's earliest recorded listen."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT MIN(played_at) FROM listening_history WHERE user_id = %s",
                    (user_id,),
                )
                row = cur.fetchone()
        return row[0] if row else None

    def get_dashboard(self, user_id: str, window: DateWindow, limit: int = 10) -> dict[str, Any]:
        """
        Compose every dashboard section for one user and window.

        Returns:
            Dict with totals, top artists/tracks/albums and daily playtime
        """
        first_play = self.get_first_play(user_id)
        return {
            "user_id": user_id,
            **window.to_dict(),
            "has_data": first_play is not None,
            "data_start": first_play.isoformat() if first_play else None,
            "totals": self.get_totals(user_id, window),
            "top_artists": self.get_top_artists(user_id, window, limit)["artists"],
            "top_tracks": self.get_top_tracks(user_id, window, limit)["tracks"],
            "top_albums": self.get_top_albums(user_id, window, limit)["albums"],
            "daily_playtime": self.get_daily_playtime(user_id, window)["days"],
        }


# Singleton instance
_aggregator: StatsAggregator | None = None


def get_stats_aggregator() -> StatsAggregator:
    """Get the singleton StatsAggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = StatsAggregator()
    return _aggregator

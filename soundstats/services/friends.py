"""
Friends Service

Read-only queries over the friends graph. Friend requests are created and
accepted elsewhere; statistics only need to know who may see whom.
"""

from __future__ import annotations

import logging

from soundstats.db.connection import get_connection

logger = logging.getLogger(__name__)

FRIEND_STATUS_ACCEPTED = "accepted"


def get_friend_ids(user_id: str) -> list[str]:
    """
    Get ids of users with an accepted friendship with ``user_id``.

    Relations are stored per direction and may exist in either or both, so
    the result is de-duplicated and never contains ``user_id`` itself.
    """
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT user_id, friend_id
                FROM friends
                WHERE (user_id = %s OR friend_id = %s)
                AND status = %s
                ORDER BY created_at
                """,
                (user_id, user_id, FRIEND_STATUS_ACCEPTED),
            )
            rows = cur.fetchall()

    friend_ids: list[str] = []
    for row in rows:
        other = row[1] if row[0] == user_id else row[0]
        if other != user_id and other not in friend_ids:
            friend_ids.append(other)
    return friend_ids


def users_are_friends(user_id: str, other_user_id: str) -> bool:
    """Check whether two users share an accepted friendship in either direction."""
    if user_id == other_user_id:
        return True

    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT 1
                FROM friends
                WHERE status = %s
                AND (
                    (user_id = %s AND friend_id = %s)
                    OR (user_id = %s AND friend_id = %s)
                )
                LIMIT 1
                """,
                (FRIEND_STATUS_ACCEPTED, user_id, other_user_id, other_user_id, user_id),
            )
            return cur.fetchone() is not None

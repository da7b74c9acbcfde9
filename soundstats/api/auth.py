"""
Request identity.

Authentication happens upstream; the gateway forwards the signed-in user's
id in the ``x-user-id`` header.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

USER_HEADER = "x-user-id"


async def current_user_id(request: Request) -> str:
    """Dependency returning the authenticated user id or failing with 401."""
    user_id = request.headers.get(USER_HEADER)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user_id

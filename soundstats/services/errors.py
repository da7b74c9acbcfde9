"""Errors raised by the statistics services and mapped to HTTP responses by the API."""

from __future__ import annotations


class StatsError(Exception):
    """Base class for statistics service errors."""

    status_code = 500


class InvalidRequestError(StatsError, ValueError):
    """A request parameter is out of range or malformed."""

    status_code = 400


class NotAuthenticatedError(StatsError):
    """No authenticated user id accompanied the request."""

    status_code = 401


class AccessDeniedError(StatsError):
    """The authenticated user may not view the requested user's statistics."""

    status_code = 403

"""
Database access for the statistics services.

A single psycopg connection pool is created on first use from
``SOUNDSTATS_DATABASE_URL`` and sized by the ``SOUNDSTATS_DB_POOL_*``
environment variables.
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Iterator

import psycopg
from psycopg_pool import ConnectionPool

logger = logging.getLogger(__name__)

# (environment variable, pool keyword, type, default)
_POOL_OPTIONS = (
    ("SOUNDSTATS_DB_POOL_MIN", "min_size", int, 2),
    ("SOUNDSTATS_DB_POOL_MAX", "max_size", int, 10),
    ("SOUNDSTATS_DB_POOL_TIMEOUT", "timeout", float, 30.0),
    ("SOUNDSTATS_DB_POOL_MAX_IDLE", "max_idle", float, 300.0),
)

_pool: ConnectionPool | None = None
_pool_lock = threading.Lock()


def _database_url() -> str:
    url = os.environ.get("SOUNDSTATS_DATABASE_URL")
    if not url:
        raise RuntimeError("SOUNDSTATS_DATABASE_URL is not set.")
    return url


def pool_options() -> dict[str, Any]:
    """Pool sizing keywords read from the environment."""
    options: dict[str, Any] = {}
    for env_name, keyword, cast, default in _POOL_OPTIONS:
        raw = os.environ.get(env_name)
        try:
            options[keyword] = cast(raw) if raw else default
        except ValueError:
            logger.warning("Ignoring invalid %s=%r, using %s", env_name, raw, default)
            options[keyword] = default
    if options["max_size"] < options["min_size"]:
        options["max_size"] = options["min_size"]
    return options


def _prepare_session(conn: psycopg.Connection) -> None:
    """Run once for each new pooled connection: timestamps are compared in UTC."""
    conn.execute("SET TIME ZONE 'UTC'")
    conn.commit()


def _get_pool() -> ConnectionPool:
    global _pool
    if _pool is None:
        with _pool_lock:
            if _pool is None:
                options = pool_options()
                _pool = ConnectionPool(
                    conninfo=_database_url(),
                    configure=_prepare_session,
                    check=ConnectionPool.check_connection,
                    open=True,
                    **options,
                )
                logger.info(
                    "Database connection pool initialized (min=%d, max=%d)",
                    options["min_size"],
                    options["max_size"],
                )
    return _pool


def close_pool() -> None:
    """Close the pool if it was opened. Safe to call more than once."""
    global _pool
    with _pool_lock:
        pool, _pool = _pool, None
    if pool is None:
        return
    try:
        pool.close()
        logger.info("Database connection pool closed")
    except Exception as e:
        logger.warning("Error closing connection pool: %s", e)


atexit.register(close_pool)


@contextmanager
def get_connection() -> Iterator[psycopg.Connection]:
    """Borrow a pooled connection for the duration of the block."""
    with _get_pool().connection() as conn:
        yield conn


def get_pool_stats() -> dict[str, int]:
    """Pool occupancy for the health endpoint."""
    pool = _get_pool()
    stats = pool.get_stats()
    return {
        "pool_size": stats.get("pool_size", 0),
        "pool_available": stats.get("pool_available", 0),
        "requests_waiting": stats.get("requests_waiting", 0),
        "pool_min": pool.min_size,
        "pool_max": pool.max_size,
    }

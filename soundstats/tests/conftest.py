from __future__ import annotations

from contextlib import contextmanager
from typing import Any

import pytest

from soundstats import app_settings
from soundstats.services import feed, friends, leaderboard, stats_aggregator
from soundstats.services.stats_cache import get_stats_cache


class FakeCursor:
    def __init__(self, db: "FakeDatabase") -> None:
        self._db = db
        self._rows: list[tuple[Any, ...]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def execute(self, query: str, params: Any = None) -> None:
        self._db.executed.append((query, params))
        if not self._db.responses:
            raise AssertionError(f"Unexpected query: {query}")
        self._rows = list(self._db.responses.pop(0))

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._rows

    def fetchone(self) -> tuple[Any, ...] | None:
        return self._rows[0] if self._rows else None


class FakeConnection:
    def __init__(self, db: "FakeDatabase") -> None:
        self._db = db

    def cursor(self) -> FakeCursor:
        return FakeCursor(self._db)


class FakeDatabase:
    """Answers queries in order from ``responses`` and records what ran."""

    def __init__(self) -> None:
        self.responses: list[list[tuple[Any, ...]]] = []
        self.executed: list[tuple[str, Any]] = []

    @contextmanager
    def connection(self):
        yield FakeConnection(self)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Use default settings and an empty stats cache in every test."""
    monkeypatch.setattr(app_settings, "SETTINGS_PATH", tmp_path / "settings.json")
    get_stats_cache().invalidate_all()
    yield
    get_stats_cache().invalidate_all()


@pytest.fixture
def fake_db(monkeypatch) -> FakeDatabase:
    db = FakeDatabase()
    for module in (stats_aggregator, leaderboard, friends, feed):
        monkeypatch.setattr(module, "get_connection", db.connection)
    return db

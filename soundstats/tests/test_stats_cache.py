"""Tests for the stats cache and the caching decorator."""

import time
from datetime import datetime, timezone

from soundstats.services.feed import FeedService
from soundstats.services.leaderboard import LeaderboardService, SortBy
from soundstats.services.period_window import Timeframe, normalize_window
from soundstats.services.stats_aggregator import StatsAggregator
from soundstats.services.stats_cache import StatsCache, cached, get_stats_cache


def test_get_set_and_hit_ratio():
    cache = StatsCache()

    assert cache.get("top_artists:x") == (False, None)
    cache.set("top_artists:x", {"artists": []})
    assert cache.get("top_artists:x") == (True, {"artists": []})

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_ratio"] == 0.5


def test_expired_entries_miss():
    cache = StatsCache()
    cache.set("feed:x", [1], ttl=-1)

    assert cache.get("feed:x") == (False, None)


def test_ttl_by_prefix():
    cache = StatsCache()
    assert cache._get_ttl("feed:abc") == StatsCache.TTL_SHORT
    assert cache._get_ttl("top_tracks:abc") == StatsCache.TTL_MEDIUM
    assert cache._get_ttl("first_play:abc") == StatsCache.TTL_LONG
    assert cache._get_ttl("other:abc") == StatsCache.DEFAULT_TTL


def test_eviction_removes_oldest():
    cache = StatsCache(max_size=10)
    for n in range(10):
        cache.set(f"k{n}", n)
        time.sleep(0.001)

    cache.set("k10", 10)

    assert cache.get("k0") == (False, None)
    assert cache.get("k10") == (True, 10)


def test_invalidate_user_drops_user_and_shared_entries():
    cache = StatsCache()
    cache.set("top_artists:alice:1", 1)
    cache.set("totals:alice:2", 2)
    cache.set("top_artists:bob:3", 3)
    cache.set("leaderboard:bob:4", 4)
    cache.set("feed:5", 5)

    assert cache.invalidate_user("alice") == 4
    assert cache.get("top_artists:bob:3") == (True, 3)


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    @cached("totals")
    def totals(self, user_id, window):
        self.calls += 1
        return {"user": user_id, "window": window, "call": self.calls}

    @cached("feed", per_user=False)
    def feed(self, offset, limit):
        self.calls += 1
        return [offset, limit]


def test_cached_decorator_reuses_results_per_arguments():
    counter = Counter()

    first = counter.totals("alice", "w1")
    again = counter.totals("alice", "w1")
    other = counter.totals("alice", "w2")

    assert first == again
    assert other["call"] == 2
    assert counter.calls == 2


def test_cached_decorator_keys_are_user_scoped():
    counter = Counter()
    counter.totals("alice", "w1")
    counter.feed(0, 20)

    assert get_stats_cache().invalidate_user("alice") == 2

    counter.totals("alice", "w1")
    assert counter.calls == 3


def test_ttl_table_matches_cached_services(fake_db):
    window = normalize_window(
        datetime(2024, 1, 8, tzinfo=timezone.utc), datetime(2024, 1, 14, tzinfo=timezone.utc)
    )
    fake_db.responses = [
        [],
        [(0, 0, 0)],
        [(0, 0, 0)],
        [], [], [], [], [], [],
        [],
        [],
        [(1,)],
        [("u1", 42)],
        [],
    ]

    StatsAggregator().get_dashboard("u1", window, 10)
    LeaderboardService().get_leaderboard("u1", SortBy.COUNT, Timeframe.ALL_TIME)
    FeedService().get_recent_listens()

    prefixes = {key.split(":")[0] + ":" for key in get_stats_cache()._cache}
    assert prefixes == set(StatsCache.TTL_CONFIG)

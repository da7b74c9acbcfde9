"""Tests for period-over-period rank comparison."""

import math
from dataclasses import dataclass
from operator import itemgetter

import pytest

from soundstats.services.rank_comparison import (
    RankComparison,
    compare_rankings,
    percent_change,
    previous_fetch_limit,
)

by_id = itemgetter("id")
by_metric = itemgetter("metric")


def test_end_to_end_scenario():
    """Entity that moved up and entity that moved down."""
    current = [{"id": "a", "metric": 100}, {"id": "b", "metric": 80}]
    previous = [
        {"id": "b", "metric": 90},
        {"id": "a", "metric": 50},
        {"id": "c", "metric": 40},
    ]

    result = compare_rankings(current, previous, by_id, by_metric)

    assert [r.entity for r in result] == current
    a, b = result
    assert a.rank_change == 1
    assert a.previous_rank == 2
    assert a.percent_change == 100
    assert b.rank_change == -1
    assert b.previous_rank == 1
    assert b.percent_change == pytest.approx(-11.1111, rel=1e-4)


def test_result_matches_current_order_and_length():
    current = [{"id": n, "metric": 10 - n} for n in range(5)]
    previous = [{"id": n, "metric": n} for n in reversed(range(5))]

    result = compare_rankings(current, previous, by_id, by_metric)

    assert len(result) == len(current)
    assert [r["id"] for r in result] == [0, 1, 2, 3, 4]


def test_previous_only_entities_are_not_emitted():
    current = [{"id": "a", "metric": 1}]
    previous = [{"id": "x", "metric": 9}, {"id": "a", "metric": 1}]

    result = compare_rankings(current, previous, by_id, by_metric)

    assert [r["id"] for r in result] == ["a"]


def test_new_entity_has_all_fields_absent():
    """An entity missing from the previous list does not disturb the others."""
    current = [{"id": "new", "metric": 5}, {"id": "old", "metric": 4}]
    previous = [{"id": "old", "metric": 2}]

    new, old = compare_rankings(current, previous, by_id, by_metric)

    assert new.rank_change is None
    assert new.percent_change is None
    assert new.previous_rank is None
    assert new.is_new
    assert old.previous_rank == 1
    assert old.rank_change == -1
    assert old.percent_change == 100


def test_previous_rank_is_one_based_index():
    current = [{"id": "z", "metric": 1}]
    previous = [{"id": f"p{n}", "metric": 1} for n in range(7)] + [{"id": "z", "metric": 1}]

    (result,) = compare_rankings(current, previous, by_id, by_metric)

    assert result.previous_rank == 8


def test_rank_change_sign_convention():
    """Moving from previous index 5 to current index 2 is an improvement of 3."""
    current = [{"id": f"c{n}", "metric": 1} for n in range(2)] + [{"id": "m", "metric": 1}]
    previous = [{"id": f"p{n}", "metric": 1} for n in range(5)] + [{"id": "m", "metric": 1}]

    result = compare_rankings(current, previous, by_id, by_metric)

    assert result[2].rank_change == 3
    assert result[2].previous_rank == 6


def test_zero_previous_metric_gives_zero_percent():
    current = [{"id": "a", "metric": 12}]
    previous = [{"id": "a", "metric": 0}]

    (result,) = compare_rankings(current, previous, by_id, by_metric)

    assert result.percent_change == 0
    assert not math.isnan(result.percent_change)
    assert not math.isinf(result.percent_change)


def test_percent_change_is_not_rounded():
    assert percent_change(2, 3) == pytest.approx(-33.333333333)
    assert percent_change(0, 0) == 0


def test_duplicate_previous_ids_first_match_wins():
    current = [{"id": "a", "metric": 10}]
    previous = [{"id": "a", "metric": 5}, {"id": "a", "metric": 20}]

    (result,) = compare_rankings(current, previous, by_id, by_metric)

    assert result.previous_rank == 1
    assert result.percent_change == 100


def test_empty_inputs():
    assert compare_rankings([], [{"id": "a", "metric": 1}], by_id, by_metric) == []
    (only,) = compare_rankings([{"id": "a", "metric": 1}], [], by_id, by_metric)
    assert only.previous_rank is None


def test_compare_is_idempotent():
    current = [{"id": "a", "metric": 3}, {"id": "b", "metric": 2}]
    previous = [{"id": "b", "metric": 4}]

    first = compare_rankings(current, previous, by_id, by_metric)
    second = compare_rankings(current, previous, by_id, by_metric)

    assert first == second
    assert current == [{"id": "a", "metric": 3}, {"id": "b", "metric": 2}]


def test_rank_offset_uses_global_current_rank():
    """Second page of a ranking compared against a globally ranked previous list."""
    current = [{"id": "u3", "metric": 10}]
    previous = [{"id": "u1", "metric": 9}, {"id": "u3", "metric": 5}]

    (result,) = compare_rankings(current, previous, by_id, by_metric, rank_offset=2)

    assert result.previous_rank == 2
    assert result.rank_change == -1


@dataclass
class Artist:
    artist_id: int
    name: str
    plays: int


def test_works_with_dataclass_entities_and_delegates_attributes():
    current = [Artist(7, "Low", 12)]
    previous = [Artist(3, "Other", 20), Artist(7, "Low", 8)]

    (result,) = compare_rankings(
        current, previous, lambda a: a.artist_id, lambda a: a.plays
    )

    assert result.name == "Low"
    assert result.plays == 12
    assert result.as_dict() == {
        "artist_id": 7,
        "name": "Low",
        "plays": 12,
        "rank_change": 1,
        "percent_change": 50.0,
        "previous_rank": 2,
        "is_new": False,
    }


def test_as_dict_merges_mapping_fields():
    comparison = RankComparison(entity={"id": "a", "image_url": None})

    assert comparison.as_dict() == {
        "id": "a",
        "image_url": None,
        "rank_change": None,
        "percent_change": None,
        "previous_rank": None,
        "is_new": True,
    }


def test_rank_change_and_previous_rank_are_set_together():
    with pytest.raises(ValueError):
        RankComparison(entity={}, rank_change=1)
    with pytest.raises(ValueError):
        RankComparison(entity={}, previous_rank=1)


def test_previous_fetch_limit():
    assert previous_fetch_limit(10) == 20
    assert previous_fetch_limit(10, offset=20, factor=3) == 90
    assert previous_fetch_limit(5, factor=1) == 5
    with pytest.raises(ValueError):
        previous_fetch_limit(10, factor=0)

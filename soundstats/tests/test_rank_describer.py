"""Tests for rank-change tooltip and percentage badge text."""

import pytest

from soundstats.services.rank_comparison import (
    describe_rank_change,
    format_percent_change,
    ordinal,
    rank_direction,
)


@pytest.mark.parametrize(
    "n, expected",
    [
        (1, "1st"),
        (2, "2nd"),
        (3, "3rd"),
        (4, "4th"),
        (10, "10th"),
        (11, "11th"),
        (12, "12th"),
        (13, "13th"),
        (21, "21st"),
        (22, "22nd"),
        (23, "23rd"),
        (101, "101st"),
        (111, "111th"),
        (112, "112th"),
        (113, "113th"),
    ],
)
def test_ordinal(n, expected):
    assert ordinal(n) == expected


def test_moved_up_plural():
    assert describe_rank_change(3, 5) == "Moved up 3 ranks from 5th"


def test_moved_up_singular():
    assert describe_rank_change(1, 2) == "Moved up 1 rank from 2nd"


def test_moved_down():
    assert describe_rank_change(-2, 1) == "Moved down 2 ranks from 1st"
    assert describe_rank_change(-1, 11) == "Moved down 1 rank from 11th"


def test_same_rank():
    assert describe_rank_change(0, 2) == "Same rank as previous period"


def test_absent_values_give_empty_text():
    assert describe_rank_change(None, None) == ""
    assert describe_rank_change(None, 3) == ""
    assert describe_rank_change(2, None) == ""


def test_rank_direction():
    assert rank_direction(4) == "up"
    assert rank_direction(-0.5) == "down"
    assert rank_direction(0) == "same"
    assert rank_direction(None) is None


def test_format_percent_change():
    assert format_percent_change(-11.1111) == "11.1%"
    assert format_percent_change(100) == "100.0%"
    assert format_percent_change(0) == "0.0%"
    assert format_percent_change(None) == ""

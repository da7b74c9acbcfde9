"""
Rank Comparison

Period-over-period comparison of ranked lists. Given the current period's
ranked entities (artists, tracks, albums, leaderboard users) and the previous
period's ranked entities of the same kind, computes each current entity's
rank change, previous rank and percentage change of its metric.

Previous lists are usually fetched larger than the current list (see
``previous_fetch_limit``) so entities that fell out of the current top-N can
still be located. Entities below the previous list's cutoff are reported as
new; this is an accepted approximation.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")

DEFAULT_OVERFETCH_FACTOR = 2


@dataclass(frozen=True)
class RankComparison(Generic[T]):
    """
    A current-period entity together with its change since the previous period.

    ``None`` marks a value that does not exist because the entity was not in
    the previous list. Attribute and item access fall through to the wrapped
    entity, so ``comparison.name`` or ``comparison["name"]`` read the entity's
    own fields.
    """

    entity: T
    rank_change: int | None = None
    percent_change: float | None = None
    previous_rank: int | None = None

    def __post_init__(self) -> None:
        if (self.rank_change is None) != (self.previous_rank is None):
            raise ValueError("rank_change and previous_rank must both be set or both be None")

    def __getattr__(self, name: str) -> Any:
        if name == "entity":
            raise AttributeError(name)
        return getattr(self.entity, name)

    def __getitem__(self, key: Any) -> Any:
        return self.entity[key]  # type: ignore[index]

    @property
    def is_new(self) -> bool:
        return self.previous_rank is None

    def as_dict(self) -> dict[str, Any]:
        """Merge the entity's fields with the computed comparison fields."""
        if isinstance(self.entity, Mapping):
            data = dict(self.entity)
        elif dataclasses.is_dataclass(self.entity) and not isinstance(self.entity, type):
            data = dataclasses.asdict(self.entity)
        else:
            data = dict(vars(self.entity))
        data["rank_change"] = self.rank_change
        data["percent_change"] = self.percent_change
        data["previous_rank"] = self.previous_rank
        data["is_new"] = self.is_new
        return data


def percent_change(current: float, previous: float) -> float:
    """
    Signed percentage change from ``previous`` to ``current``.

    A zero previous value yields 0 rather than infinity or NaN.
    """
    if previous == 0:
        return 0.0
    return ((current - previous) / previous) * 100


def compare_rankings(
    current: Sequence[T],
    previous: Sequence[T],
    id_of: Callable[[T], Hashable],
    metric_of: Callable[[T], float],
    *,
    rank_offset: int = 0,
) -> list[RankComparison[T]]:
    """
    Compare a current ranked list against the previous period's ranking.

    Args:
        current: Entities in final display order (not re-sorted)
        previous: Previous-period entities in rank order, possibly longer
            than ``current``
        id_of: Extracts the identifier shared by both lists
        metric_of: Extracts the numeric ranking metric
        rank_offset: 0-based global rank of ``current[0]`` when ``current``
            is one page of a longer ranking

    Returns:
        One comparison per current entity, in the same order. ``rank_change``
        is ``previous_rank - current_rank``, so positive means moved up.
    """
    comparisons: list[RankComparison[T]] = []
    for current_index, entity in enumerate(current):
        entity_id = id_of(entity)
        # First match wins if the previous list repeats an id
        previous_index = next(
            (index for index, candidate in enumerate(previous) if id_of(candidate) == entity_id),
            None,
        )

        if previous_index is None:
            comparisons.append(RankComparison(entity=entity))
            continue

        comparisons.append(
            RankComparison(
                entity=entity,
                rank_change=previous_index - (current_index + rank_offset),
                percent_change=percent_change(
                    metric_of(entity), metric_of(previous[previous_index])
                ),
                previous_rank=previous_index + 1,
            )
        )
    return comparisons


def previous_fetch_limit(
    limit: int,
    offset: int = 0,
    factor: int = DEFAULT_OVERFETCH_FACTOR,
) -> int:
    """
    Number of previous-period rows to fetch for a current page.

    The previous ranking is read from rank 1 down to ``factor`` times the
    deepest current rank shown.
    """
    if factor < 1:
        raise ValueError(f"Over-fetch factor must be at least 1, got {factor}")
    return (offset + limit) * factor


def ordinal(n: int) -> str:
    """Render ``n`` as an English ordinal: 1st, 2nd, 3rd, 11th, 21st, 112th."""
    if 11 <= n % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def describe_rank_change(rank_change: int | None, previous_rank: int | None) -> str:
    """Human-readable tooltip text for a rank change."""
    if rank_change is None or previous_rank is None:
        return ""
    if rank_change == 0:
        return "Same rank as previous period"

    steps = abs(rank_change)
    plural = "" if steps == 1 else "s"
    direction = "up" if rank_change > 0 else "down"
    return f"Moved {direction} {steps} rank{plural} from {ordinal(previous_rank)}"


def rank_direction(value: float | None) -> str | None:
    """Badge direction for a rank or percent change: up, down, same or None."""
    if value is None:
        return None
    if value > 0:
        return "up"
    if value < 0:
        return "down"
    return "same"


def format_percent_change(value: float | None) -> str:
    """Badge text for a percent change, e.g. ``11.1%``; empty when absent."""
    if value is None:
        return ""
    return f"{abs(value):.1f}%"

"""
Period Window Helpers

Date-window arithmetic for period-over-period statistics: deriving the
previous window of equal length, normalizing request dates to whole days,
and resolving dashboard presets and leaderboard timeframes.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateWindow:
    """A closed time interval ``[start, end]`` over which plays are aggregated."""

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def to_dict(self) -> dict[str, str]:
        return {"from": self.start.isoformat(), "to": self.end.isoformat()}


def derive_previous_window(window: DateWindow) -> DateWindow:
    """
    Get the window of identical duration immediately preceding ``window``.

    The previous window ends exactly where ``window`` starts. A zero-length
    window yields a zero-length previous window at ``window.start``; callers
    that need a non-degenerate comparison for single instants must widen the
    window themselves.
    """
    return DateWindow(start=window.start - window.duration, end=window.start)


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min, tzinfo=value.tzinfo)


def end_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.max, tzinfo=value.tzinfo)


def normalize_window(start: datetime, end: datetime) -> DateWindow:
    """
    Expand a date range to whole days.

    Args:
        start: First day of the range (time of day is discarded)
        end: Last day of the range (time of day is discarded)

    Returns:
        Window from 00:00 on ``start`` to 23:59:59.999999 on ``end``

    Raises:
        ValueError: If ``start`` falls on a later day than ``end``
    """
    window = DateWindow(start=start_of_day(start), end=end_of_day(end))
    if window.start > window.end:
        raise ValueError(
            f"Window start {start.date()} is after window end {end.date()}"
        )
    return window


def parse_date(value: str | None, default: datetime) -> datetime:
    """Parse an ISO date query parameter, falling back to ``default``."""
    if not value:
        return default
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug(f"Ignoring unparseable date parameter {value!r}")
        return default
    if parsed.tzinfo is None and default.tzinfo is not None:
        parsed = parsed.replace(tzinfo=default.tzinfo)
    return parsed


def resolve_dashboard_window(
    from_param: str | None,
    to_param: str | None,
    first_play: datetime | None,
    now: datetime,
    default_range_days: int = 30,
) -> DateWindow:
    """
    Build the dashboard window from request parameters.

    The default start is the later of the user's first recorded play and
    ``default_range_days`` before ``now``; the default end is ``now``.
    """
    earliest_default = now - timedelta(days=default_range_days)
    if first_play is not None and first_play > earliest_default:
        default_start = first_play
    else:
        default_start = earliest_default

    start = parse_date(from_param, default_start)
    end = parse_date(to_param, now)
    return normalize_window(start, end)


class Timeframe(str, Enum):
    LAST_24_HOURS = "Last 24 hours"
    LAST_7_DAYS = "Last 7 days"
    LAST_30_DAYS = "Last 30 days"
    ALL_TIME = "All time"


_TIMEFRAME_SPANS: dict[Timeframe, timedelta] = {
    Timeframe.LAST_24_HOURS: timedelta(hours=24),
    Timeframe.LAST_7_DAYS: timedelta(days=7),
    Timeframe.LAST_30_DAYS: timedelta(days=30),
}


def timeframe_window(timeframe: Timeframe, now: datetime) -> DateWindow | None:
    """
    Get the rolling window for a leaderboard timeframe.

    Returns:
        ``[now - span, now]``, or None for all-time (no previous period exists)
    """
    span = _TIMEFRAME_SPANS.get(Timeframe(timeframe))
    if span is None:
        return None
    return DateWindow(start=now - span, end=now)


def _months_back(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def preset_window(name: str, now: datetime) -> DateWindow:
    """
    Resolve a named date preset to a normalized window ending today.

    Args:
        name: One of today, last_7_days, last_30_days, last_3_months,
            last_6_months, month_to_date, year_to_date

    Raises:
        ValueError: For an unknown preset name
    """
    if name == "today":
        start = now
    elif name == "last_7_days":
        start = now - timedelta(days=7)
    elif name == "last_30_days":
        start = now - timedelta(days=30)
    elif name == "last_3_months":
        start = _months_back(now, 3)
    elif name == "last_6_months":
        start = _months_back(now, 6)
    elif name == "month_to_date":
        start = now.replace(day=1)
    elif name == "year_to_date":
        start = now.replace(month=1, day=1)
    else:
        raise ValueError(f"Unknown date preset: {name}")
    return normalize_window(start, now)


PRESET_NAMES = (
    "today",
    "last_7_days",
    "last_30_days",
    "last_3_months",
    "last_6_months",
    "month_to_date",
    "year_to_date",
)

"""
Date-range resolution for stats reports.

Maps a period selector (``today``, ``week``, ``custom:2024-01-01:2024-02-01``, ...)
or an explicit calendar selection to a half-open ``[start, end)`` window and the
bucket granularity used for its time series. Calendar boundaries are computed
in the report's local timezone.
"""
import logging
from datetime import date, datetime, time, timedelta, tzinfo

from .models import DateRange, Granularity

logger = logging.getLogger(__name__)

CUSTOM_PREFIX = "custom:"

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# Rolling periods measured back from "now"
ROLLING_PERIODS = {
    "week": (timedelta(days=7), Granularity.DAY),
    "month": (timedelta(days=30), Granularity.DAY),
    "year": (timedelta(days=365), Granularity.MONTH),
}


def local_midnight(day: date, tz: tzinfo) -> datetime:
    """Start of ``day`` in the given timezone."""
    return datetime.combine(day, time.min, tzinfo=tz)


def _local_now(now: datetime | None, tz: tzinfo) -> datetime:
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def _day_range(day: date, tz: tzinfo) -> DateRange:
    return DateRange(
        start=local_midnight(day, tz),
        end=local_midnight(day + timedelta(days=1), tz),
        group_by=Granularity.HOUR,
    )


def parse_custom_period(period: str, tz: tzinfo) -> DateRange | None:
    """Parse ``custom:<start>:<end>`` with ISO dates.

    Returns None if the selector is malformed. An end before the start is
    not an error here; the window is simply empty.
    """
    if not period.startswith(CUSTOM_PREFIX):
        return None

    parts = period[len(CUSTOM_PREFIX):].split(":")
    if len(parts) != 2:
        return None

    try:
        start = date.fromisoformat(parts[0])
        end = date.fromisoformat(parts[1])
    except ValueError:
        return None

    return DateRange(
        start=local_midnight(start, tz),
        end=local_midnight(end, tz),
        group_by=Granularity.DAY,
    )


def resolve_period(
    period: str | None,
    tz: tzinfo,
    now: datetime | None = None,
) -> DateRange:
    """Resolve a symbolic period into a window and granularity.

    Args:
        period: today, yesterday, week, month, year or custom:<start>:<end>
        tz: Timezone for "local midnight" boundaries
        now: Reference instant (defaults to the current time)

    Returns:
        DateRange. Unrecognized selectors behave like ``today``.
    """
    current = _local_now(now, tz)
    today = current.date()

    if period == "today":
        return _day_range(today, tz)

    if period == "yesterday":
        return _day_range(today - timedelta(days=1), tz)

    if period in ROLLING_PERIODS:
        span, group_by = ROLLING_PERIODS[period]
        return DateRange(start=current - span, end=current, group_by=group_by)

    if period and period.startswith(CUSTOM_PREFIX):
        custom = parse_custom_period(period, tz)
        if custom is not None:
            return custom
        logger.warning(f"Malformed custom period {period!r}, using today")
    elif period:
        logger.debug(f"Unrecognized period {period!r}, using today")

    return _day_range(today, tz)


def resolve_month(year: int, month: int, tz: tzinfo) -> DateRange:
    """Calendar month window, bucketed by day."""
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    start = date(year, month, 1)
    next_month = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return DateRange(
        start=local_midnight(start, tz),
        end=local_midnight(next_month, tz),
        group_by=Granularity.DAY,
    )


def resolve_year(year: int, tz: tzinfo) -> DateRange:
    """Calendar year window, bucketed by month."""
    return DateRange(
        start=local_midnight(date(year, 1, 1), tz),
        end=local_midnight(date(year + 1, 1, 1), tz),
        group_by=Granularity.MONTH,
    )


def resolve_year_range(from_year: int, to_year: int, tz: tzinfo) -> DateRange:
    """Window spanning whole years ``from_year..to_year`` inclusive.

    A reversed range yields an empty window.
    """
    start = local_midnight(date(from_year, 1, 1), tz)
    if from_year > to_year:
        return DateRange(start=start, end=start, group_by=Granularity.YEAR)

    return DateRange(
        start=start,
        end=local_midnight(date(to_year + 1, 1, 1), tz),
        group_by=Granularity.YEAR,
    )

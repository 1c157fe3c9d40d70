"""
Stats aggregation over a slice of visit events.

Every report type goes through the same pieces: bucket the slice into a time
series, reduce it to summary metrics, and tally the breakdowns. All functions
here are pure and total; an empty slice produces zeroed output, never an error.
"""
import math
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from datetime import tzinfo

from .dates import MONTH_NAMES
from .models import (
    AggregateReport, DeviceBreakdown, Granularity, MonthlyReport, MonthStats,
    PageStats, Summary, TimeSeriesPoint, VisitEvent, YearlyReport, YearStats,
)

UNKNOWN_LABEL = "unknown"
DIRECT_LABEL = "direct"

BUCKET_FORMATS = {
    Granularity.HOUR: "%Y-%m-%d %H:00",
    Granularity.DAY: "%Y-%m-%d",
    Granularity.MONTH: "%Y-%m",
    Granularity.YEAR: "%Y",
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return math.floor(value + 0.5)


def bucket_key(event: VisitEvent, group_by: Granularity, tz: tzinfo) -> str:
    """Format the event's local visit time as a zero-padded bucket key."""
    local = event.visit_time.astimezone(tz)
    return local.strftime(BUCKET_FORMATS[Granularity(group_by)])


# =============================================================================
# TIME SERIES
# =============================================================================

def bucket_events(
    events: Iterable[VisitEvent],
    group_by: Granularity,
    tz: tzinfo,
) -> list[TimeSeriesPoint]:
    """Group events into a sparse time series sorted by bucket key.

    Buckets without events are not emitted.
    """
    views: dict[str, int] = {}
    sessions: dict[str, set[str]] = {}

    for event in events:
        key = bucket_key(event, group_by, tz)
        if key not in views:
            views[key] = 0
            sessions[key] = set()
        views[key] += 1
        sessions[key].add(event.session_id)

    return [
        TimeSeriesPoint(
            bucket_key=key,
            page_views=views[key],
            unique_visitors=len(sessions[key]),
        )
        for key in sorted(views)
    ]


# =============================================================================
# SUMMARY
# =============================================================================

def bounce_rate(events: Iterable[VisitEvent]) -> int:
    """Percentage of sessions with exactly one event, 0 if there are none."""
    per_session = Counter(event.session_id for event in events)
    if not per_session:
        return 0

    bounced = sum(1 for count in per_session.values() if count == 1)
    return round_half_up(100 * bounced / len(per_session))


def average_duration(events: Sequence[VisitEvent]) -> int:
    """Mean time on page in seconds, 0 for an empty slice."""
    if not events:
        return 0
    total = sum(event.duration_seconds or 0 for event in events)
    return round_half_up(total / len(events))


def summarize(events: Sequence[VisitEvent]) -> Summary:
    """Reduce an event slice to its scalar metrics.

    unique_visitors and total_sessions are both the distinct session count;
    the dashboard reads the two keys independently.
    """
    sessions = len({event.session_id for event in events})
    return Summary(
        total_page_views=len(events),
        unique_visitors=sessions,
        total_sessions=sessions,
        average_duration=average_duration(events),
        bounce_rate=bounce_rate(events),
    )


def count_active_sessions(events: Iterable[VisitEvent]) -> int:
    """Distinct sessions in a (realtime) slice."""
    return len({event.session_id for event in events})


# =============================================================================
# RANKINGS & BREAKDOWNS
# =============================================================================

def top_pages(events: Iterable[VisitEvent], limit: int = 10) -> list[PageStats]:
    """Most viewed pages, descending by count.

    The title is the first one seen for each URL. Ties keep first-seen order.
    """
    pages: dict[str, PageStats] = {}
    for event in events:
        page = pages.get(event.page_url)
        if page is None:
            page = pages[event.page_url] = PageStats(
                url=event.page_url, title=event.page_title
            )
        page.count += 1

    ranked = sorted(pages.values(), key=lambda page: page.count, reverse=True)
    return ranked[:limit]


def _tally(values: Iterable[str | None], fallback: str) -> dict[str, int]:
    counts: dict[str, int] = {}
    for value in values:
        label = value or fallback
        counts[label] = counts.get(label, 0) + 1
    return counts


def device_breakdown(events: Sequence[VisitEvent]) -> DeviceBreakdown:
    """Device type, browser and OS tallies. Missing labels count as unknown."""
    return DeviceBreakdown(
        devices=_tally((e.device_type for e in events), UNKNOWN_LABEL),
        browsers=_tally((e.browser for e in events), UNKNOWN_LABEL),
        os=_tally((e.os for e in events), UNKNOWN_LABEL),
    )


def referrer_breakdown(events: Iterable[VisitEvent]) -> dict[str, int]:
    """Referrer tallies. Missing referrers count as direct traffic."""
    return _tally((e.referrer for e in events), DIRECT_LABEL)


def growth_rate(current_views: int, previous_views: int | None) -> int:
    """Percent change in page views against the previous period."""
    if not previous_views:
        return 0
    return round_half_up(100 * (current_views - previous_views) / previous_views)


# =============================================================================
# REPORTS
# =============================================================================

def _partition(
    events: Iterable[VisitEvent],
    key: Callable[[VisitEvent], int],
) -> dict[int, list[VisitEvent]]:
    groups: dict[int, list[VisitEvent]] = {}
    for event in events:
        groups.setdefault(key(event), []).append(event)
    return groups


def build_report(
    events: Sequence[VisitEvent],
    group_by: Granularity,
    tz: tzinfo,
    top_limit: int = 10,
) -> AggregateReport:
    """Full report for a resolved window."""
    return AggregateReport(
        summary=summarize(events),
        time_series=bucket_events(events, group_by, tz),
        top_pages=top_pages(events, top_limit),
        device_stats=device_breakdown(events),
        referrer_stats=referrer_breakdown(events),
    )


def build_monthly_report(
    events: Sequence[VisitEvent],
    year: int,
    tz: tzinfo,
    top_limit: int = 10,
) -> MonthlyReport:
    """Report for one calendar year with a row for each of its 12 months.

    Events outside ``year`` (local time) are ignored for the monthly rows.
    """
    by_month = _partition(
        (e for e in events if e.visit_time.astimezone(tz).year == year),
        lambda e: e.visit_time.astimezone(tz).month,
    )

    monthly_data = []
    for month, name in enumerate(MONTH_NAMES, start=1):
        stats = summarize(by_month.get(month, []))
        monthly_data.append(MonthStats(
            month=month,
            month_name=name,
            page_views=stats.total_page_views,
            unique_visitors=stats.unique_visitors,
            total_sessions=stats.total_sessions,
            average_duration=stats.average_duration,
            bounce_rate=stats.bounce_rate,
        ))

    return MonthlyReport(
        summary=summarize(events),
        monthly_data=monthly_data,
        top_pages=top_pages(events, top_limit),
        device_stats=device_breakdown(events),
        referrer_stats=referrer_breakdown(events),
    )


def build_yearly_report(
    events: Sequence[VisitEvent],
    from_year: int,
    to_year: int,
    tz: tzinfo,
    top_limit: int = 10,
) -> YearlyReport:
    """Report over ``from_year..to_year`` with one row per year, newest first.

    Each row's growth rate compares it with the next older year in the range.
    """
    by_year = _partition(events, lambda e: e.visit_time.astimezone(tz).year)

    yearly_data = []
    for year in range(to_year, from_year - 1, -1):
        stats = summarize(by_year.get(year, []))
        yearly_data.append(YearStats(
            year=year,
            page_views=stats.total_page_views,
            unique_visitors=stats.unique_visitors,
            total_sessions=stats.total_sessions,
            average_duration=stats.average_duration,
            bounce_rate=stats.bounce_rate,
        ))

    for current, previous in zip(yearly_data, yearly_data[1:]):
        current.growth_rate = growth_rate(current.page_views, previous.page_views)

    return YearlyReport(
        summary=summarize(events),
        yearly_data=yearly_data,
        top_pages=top_pages(events, top_limit),
        device_stats=device_breakdown(events),
        referrer_stats=referrer_breakdown(events),
    )

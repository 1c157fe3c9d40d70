"""
Stats client: reads an event slice from the store and aggregates it.

Each report method awaits exactly one store read, then hands the slice to the
pure functions in ``aggregate``. Store errors propagate to the caller.
"""
import logging
from datetime import datetime, timedelta, timezone, tzinfo

from ..config import DEFAULT_ACTIVITY_LIMIT, StatsConfig
from . import aggregate
from .dates import resolve_month, resolve_period, resolve_year, resolve_year_range
from .models import (
    ActivityEvent, AggregateReport, DateRange, MonthlyReport, RealtimeCount,
    RecentActivity, VisitEvent, YearlyReport,
)
from .store import EventStore

logger = logging.getLogger(__name__)


class MissingWebsiteError(ValueError):
    """Raised when a single-site report is requested without a website id."""
    pass


def _require_website(website_id: str | None) -> str:
    if not website_id:
        raise MissingWebsiteError("Website ID is required")
    return website_id


class StatsClient:
    """Client for computing visitor stats from an event store."""

    def __init__(self, store: EventStore, config: StatsConfig | None = None):
        self.store = store
        self.config = config or StatsConfig()

    @property
    def tz(self) -> tzinfo:
        return self.config.tz

    async def _fetch(self, website_ids: list[str] | None, window: DateRange) -> list[VisitEvent]:
        """Read the slice for a window; empty windows skip the store."""
        if window.is_empty:
            logger.debug(f"Empty window {window.start} - {window.end}, skipping store read")
            return []

        events = await self.store.fetch_events(website_ids, window.start, window.end)
        logger.debug(
            f"Fetched {len(events)} events for sites={website_ids or 'all'} "
            f"window={window.start.isoformat()} - {window.end.isoformat()} group_by={window.group_by.value}"
        )
        return events

    # =========================================================================
    # PERIOD REPORTS
    # =========================================================================

    async def get_report(
        self,
        website_id: str | None,
        period: str | None = "today",
        now: datetime | None = None,
    ) -> AggregateReport:
        """Report for one website over a symbolic period."""
        site = _require_website(website_id)
        window = resolve_period(period, self.tz, now)
        events = await self._fetch([site], window)
        return aggregate.build_report(events, window.group_by, self.tz, self.config.top_pages_limit)

    async def get_calendar_month_report(
        self,
        website_id: str | None,
        year: int,
        month: int,
    ) -> AggregateReport:
        """Report for one website over a calendar month, bucketed by day."""
        site = _require_website(website_id)
        window = resolve_month(year, month, self.tz)
        events = await self._fetch([site], window)
        return aggregate.build_report(events, window.group_by, self.tz, self.config.top_pages_limit)

    async def get_all_websites_report(
        self,
        period: str | None = "week",
        now: datetime | None = None,
    ) -> AggregateReport:
        """Report across every website over a symbolic period."""
        window = resolve_period(period, self.tz, now)
        events = await self._fetch(None, window)
        return aggregate.build_report(events, window.group_by, self.tz, self.config.top_pages_limit)

    # =========================================================================
    # CALENDAR REPORTS
    # =========================================================================

    async def get_monthly_report(self, website_id: str | None, year: int) -> MonthlyReport:
        """Month-by-month report for one calendar year."""
        site = _require_website(website_id)
        window = resolve_year(year, self.tz)
        events = await self._fetch([site], window)
        return aggregate.build_monthly_report(events, year, self.tz, self.config.top_pages_limit)

    async def get_yearly_report(
        self,
        website_id: str | None,
        from_year: int,
        to_year: int,
    ) -> YearlyReport:
        """Year-by-year report with growth rates, most recent year first."""
        site = _require_website(website_id)
        window = resolve_year_range(from_year, to_year, self.tz)
        events = await self._fetch([site], window)
        return aggregate.build_yearly_report(
            events, from_year, to_year, self.tz, self.config.top_pages_limit
        )

    # =========================================================================
    # REALTIME
    # =========================================================================

    def _realtime_window(self, now: datetime | None) -> DateRange:
        end = now or datetime.now(timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        start = end - timedelta(minutes=self.config.realtime_window_minutes)
        # Include events stamped at "now" itself
        return DateRange(start=start, end=end + timedelta(microseconds=1))

    async def get_realtime_count(
        self,
        website_id: str | None = None,
        now: datetime | None = None,
    ) -> RealtimeCount:
        """Distinct sessions in the trailing realtime window.

        Without a website id the count covers all websites.
        """
        window = self._realtime_window(now)
        events = await self._fetch([website_id] if website_id else None, window)
        return RealtimeCount(count=aggregate.count_active_sessions(events))

    async def get_recent_activity(
        self,
        website_id: str | None,
        limit: int = DEFAULT_ACTIVITY_LIMIT,
        now: datetime | None = None,
    ) -> RecentActivity:
        """Most recent visits in the realtime window, newest first."""
        site = _require_website(website_id)
        limit = max(1, min(limit, self.config.max_activity_limit))
        window = self._realtime_window(now)

        events = await self.store.fetch_recent(site, window.start, limit)
        activities = [
            ActivityEvent(
                id=event.id,
                session_id=event.session_id,
                page_url=event.page_url,
                page_title=event.page_title,
                visit_time=event.visit_time,
                duration=event.duration_seconds or 0,
                browser=event.browser or "Unknown",
                os=event.os or "Unknown",
                device_type=event.device_type or "Unknown",
                country=event.country or "Unknown",
            )
            for event in events
        ]
        return RecentActivity(activities=activities, count=len(activities))

    # =========================================================================
    # INGEST
    # =========================================================================

    async def record_visit(self, event: VisitEvent) -> VisitEvent:
        """Append a tracked visit to the store."""
        stored = await self.store.append(event)
        logger.debug(f"Recorded visit {stored.id} for site {stored.website_id}: {stored.page_url}")
        return stored

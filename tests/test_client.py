"""Tests for StatsClient report methods."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import make_event, run_async
from visitor_analytics.config import StatsConfig
from visitor_analytics.core.client import MissingWebsiteError, StatsClient
from visitor_analytics.core.models import Granularity
from visitor_analytics.core.store import EventStoreError, InMemoryEventStore

UTC = timezone.utc
NOW = datetime(2024, 6, 15, 14, 30, tzinfo=UTC)


def _client(events=(), **config) -> StatsClient:
    return StatsClient(InMemoryEventStore(events), StatsConfig(**config))


class TestGetReport:
    """Test single-site period reports."""

    def test_today_report_by_hour(self):
        client = _client([
            make_event("a", visit_time=datetime(2024, 6, 15, 9, 0, tzinfo=UTC)),
            make_event("a", visit_time=datetime(2024, 6, 15, 10, 0, tzinfo=UTC)),
            make_event("b", visit_time=datetime(2024, 6, 15, 10, 30, tzinfo=UTC)),
            # yesterday, excluded
            make_event("c", visit_time=datetime(2024, 6, 14, 23, 0, tzinfo=UTC)),
        ])

        report = run_async(client.get_report("site-1", "today", now=NOW))

        assert report.summary.total_page_views == 3
        assert report.summary.bounce_rate == 50
        assert [p.bucket_key for p in report.time_series] == ["2024-06-15 09:00", "2024-06-15 10:00"]

    def test_other_sites_excluded(self):
        client = _client([
            make_event("a", visit_time=NOW - timedelta(hours=1)),
            make_event("b", visit_time=NOW - timedelta(hours=1), website_id="site-2"),
        ])

        report = run_async(client.get_report("site-1", "week", now=NOW))

        assert report.summary.total_page_views == 1

    def test_end_is_exclusive(self):
        client = _client([make_event("a", visit_time=datetime(2024, 6, 16, tzinfo=UTC))])

        report = run_async(client.get_report("site-1", "today", now=NOW))

        assert report.summary.total_page_views == 0

    def test_missing_website_raises(self):
        client = _client()

        with pytest.raises(MissingWebsiteError):
            run_async(client.get_report(None, "today"))
        with pytest.raises(MissingWebsiteError):
            run_async(client.get_report("", "today"))

    def test_reversed_custom_range_skips_store(self):
        store = InMemoryEventStore()
        store.fetch_events = AsyncMock(return_value=[])
        client = StatsClient(store)

        report = run_async(client.get_report("site-1", "custom:2024-02-01:2024-01-01", now=NOW))

        assert report.summary.total_page_views == 0
        assert report.time_series == []
        store.fetch_events.assert_not_called()

    def test_store_errors_propagate(self):
        store = InMemoryEventStore()
        store.fetch_events = AsyncMock(side_effect=EventStoreError("D1 query failed"))
        client = StatsClient(store)

        with pytest.raises(EventStoreError):
            run_async(client.get_report("site-1", "week", now=NOW))

    def test_calendar_month_report(self):
        client = _client([
            make_event("a", visit_time=datetime(2024, 2, 3, tzinfo=UTC)),
            make_event("b", visit_time=datetime(2024, 2, 29, 23, 0, tzinfo=UTC)),
            make_event("c", visit_time=datetime(2024, 3, 1, tzinfo=UTC)),
        ])

        report = run_async(client.get_calendar_month_report("site-1", 2024, 2))

        assert report.summary.total_page_views == 2
        assert [p.bucket_key for p in report.time_series] == ["2024-02-03", "2024-02-29"]

    def test_top_pages_limit_from_config(self):
        events = [make_event(page_url=f"/{i}", visit_time=NOW - timedelta(minutes=i)) for i in range(8)]
        client = _client(events, top_pages_limit=5)

        report = run_async(client.get_report("site-1", "today", now=NOW))

        assert len(report.top_pages) == 5


class TestAllWebsitesReport:
    """Test cross-site reports."""

    def test_includes_every_site(self):
        client = _client([
            make_event("a", visit_time=NOW - timedelta(days=1)),
            make_event("b", visit_time=NOW - timedelta(days=2), website_id="site-2"),
            make_event("c", visit_time=NOW - timedelta(days=10), website_id="site-3"),
        ])

        report = run_async(client.get_all_websites_report("week", now=NOW))

        assert report.summary.total_page_views == 2
        assert report.summary.total_sessions == 2

    def test_passes_no_site_filter(self):
        store = InMemoryEventStore()
        store.fetch_events = AsyncMock(return_value=[])
        client = StatsClient(store)

        run_async(client.get_all_websites_report("month", now=NOW))

        assert store.fetch_events.call_args[0][0] is None


class TestCalendarReports:
    """Test monthly and yearly reports through the client."""

    def test_monthly_report_window(self):
        store = InMemoryEventStore()
        store.fetch_events = AsyncMock(return_value=[])
        client = StatsClient(store)

        report = run_async(client.get_monthly_report("site-1", 2023))

        website_ids, start, end = store.fetch_events.call_args[0]
        assert website_ids == ["site-1"]
        assert start == datetime(2023, 1, 1, tzinfo=UTC)
        assert end == datetime(2024, 1, 1, tzinfo=UTC)
        assert len(report.monthly_data) == 12

    def test_yearly_report(self):
        client = _client(
            [make_event(f"a{i}", visit_time=datetime(2022, 5, 1, tzinfo=UTC)) for i in range(2)]
            + [make_event(f"b{i}", visit_time=datetime(2023, 5, 1, tzinfo=UTC)) for i in range(3)]
        )

        report = run_async(client.get_yearly_report("site-1", 2022, 2023))

        assert [(y.year, y.page_views, y.growth_rate) for y in report.yearly_data] == [
            (2023, 3, 50),
            (2022, 2, 0),
        ]

    def test_reversed_yearly_range_is_empty(self):
        client = _client([make_event(visit_time=datetime(2022, 5, 1, tzinfo=UTC))])

        report = run_async(client.get_yearly_report("site-1", 2024, 2020))

        assert report.yearly_data == []
        assert report.summary.total_page_views == 0


class TestRealtime:
    """Test realtime count and activity feed."""

    def test_counts_sessions_in_last_30_minutes(self):
        client = _client([
            make_event("a", visit_time=NOW - timedelta(minutes=5)),
            make_event("a", visit_time=NOW - timedelta(minutes=2)),
            make_event("b", visit_time=NOW - timedelta(minutes=29)),
            make_event("c", visit_time=NOW - timedelta(minutes=31)),
            make_event("d", visit_time=NOW, website_id="site-2"),
        ])

        assert run_async(client.get_realtime_count("site-1", now=NOW)).count == 2
        assert run_async(client.get_realtime_count(None, now=NOW)).count == 3

    def test_window_is_configurable(self):
        client = _client(
            [make_event("a", visit_time=NOW - timedelta(minutes=10))],
            realtime_window_minutes=5,
        )

        assert run_async(client.get_realtime_count("site-1", now=NOW)).count == 0

    def test_naive_now_is_utc(self):
        client = _client([make_event("a", visit_time=NOW - timedelta(minutes=5))])

        naive_now = NOW.replace(tzinfo=None)

        assert run_async(client.get_realtime_count("site-1", now=naive_now)).count == 1
        assert run_async(client.get_recent_activity("site-1", now=naive_now)).count == 1

    def test_recent_activity_newest_first(self):
        client = _client([
            make_event("a", visit_time=NOW - timedelta(minutes=10), page_url="/old", browser="Firefox"),
            make_event("b", visit_time=NOW - timedelta(minutes=1), page_url="/new"),
            make_event("c", visit_time=NOW - timedelta(hours=2), page_url="/stale"),
        ])

        activity = run_async(client.get_recent_activity("site-1", now=NOW))

        assert activity.count == 2
        assert [a.page_url for a in activity.activities] == ["/new", "/old"]
        assert activity.activities[0].browser == "Unknown"
        assert activity.activities[1].browser == "Firefox"

    def test_activity_limit_is_capped(self):
        store = InMemoryEventStore()
        store.fetch_recent = AsyncMock(return_value=[])
        client = StatsClient(store)

        run_async(client.get_recent_activity("site-1", limit=500, now=NOW))

        assert store.fetch_recent.call_args[0][2] == 100

    def test_activity_requires_website(self):
        with pytest.raises(MissingWebsiteError):
            run_async(_client().get_recent_activity(None))


class TestRecordVisit:
    """Test the ingest write path."""

    def test_assigns_id_and_stores(self):
        store = InMemoryEventStore()
        client = StatsClient(store)

        stored = run_async(client.record_visit(make_event()))

        assert stored.id
        assert len(store) == 1

    def test_recorded_visit_shows_in_report(self):
        store = InMemoryEventStore()
        client = StatsClient(store)
        run_async(client.record_visit(make_event("x", visit_time=NOW - timedelta(minutes=1))))

        report = run_async(client.get_report("site-1", "today", now=NOW))

        assert report.summary.total_page_views == 1
        assert report.time_series[0].bucket_key == "2024-06-15 14:00"


def test_client_uses_config_timezone():
    client = _client(
        [make_event(visit_time=datetime(2024, 6, 15, 3, 0, tzinfo=UTC))],
        timezone="America/New_York",
    )

    report = run_async(client.get_report("site-1", "today", now=datetime(2024, 6, 15, 3, 30, tzinfo=UTC)))

    assert report.time_series[0].bucket_key == "2024-06-14 23:00"
    assert report.time_series[0].page_views == 1
    assert Granularity.HOUR.value == "hour"

"""
Core stats module.

Contains the data models, the aggregation functions, event stores and the
client that ties them together.
"""

from .client import MissingWebsiteError, StatsClient
from .models import (
    ActivityEvent,
    AggregateReport,
    DateRange,
    DeviceBreakdown,
    Granularity,
    MonthlyReport,
    MonthStats,
    PageStats,
    RealtimeCount,
    RecentActivity,
    Summary,
    TimeSeriesPoint,
    VisitEvent,
    YearlyReport,
    YearStats,
)
from .store import D1EventStore, EventStore, EventStoreError, InMemoryEventStore

__all__ = [
    "VisitEvent", "DateRange", "Granularity",
    "Summary", "TimeSeriesPoint", "PageStats", "DeviceBreakdown",
    "AggregateReport", "MonthStats", "MonthlyReport", "YearStats", "YearlyReport",
    "RealtimeCount", "ActivityEvent", "RecentActivity",
    "EventStore", "InMemoryEventStore", "D1EventStore", "EventStoreError",
    "StatsClient", "MissingWebsiteError",
]

"""
Pydantic models for visitor analytics data.

Raw events use snake_case fields. Report models serialize with camelCase
keys (``model_dump(by_alias=True)``), which is the shape the dashboard reads.
"""
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# =============================================================================
# Raw Data Models
# =============================================================================

class VisitEvent(BaseModel):
    """A single tracked pageview. Immutable once written."""
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    website_id: str
    session_id: str
    visit_time: datetime
    page_url: str
    page_title: str | None = None

    referrer: str | None = None  # None means direct traffic
    duration_seconds: int = Field(default=0, ge=0)

    # Technology
    device_type: str | None = None  # desktop, mobile, tablet
    browser: str | None = None
    os: str | None = None

    # Geography
    country: str | None = None
    city: str | None = None

    # Ingest metadata, never aggregated
    ip_address: str | None = None
    user_agent: str | None = None

    is_fake: bool = False

    @field_validator("visit_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def _default_duration(cls, value):
        return 0 if value is None else value


# =============================================================================
# Date Ranges
# =============================================================================

class Granularity(str, Enum):
    """Time bucket size for a series."""
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class DateRange(BaseModel):
    """A half-open window ``[start, end)`` plus its bucket granularity."""
    start: datetime
    end: datetime
    group_by: Granularity = Granularity.DAY

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


# =============================================================================
# Report Models
# =============================================================================

class ReportModel(BaseModel):
    """Base for report models serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Summary(ReportModel):
    """Scalar metrics for an event slice."""
    total_page_views: int = 0
    unique_visitors: int = 0
    total_sessions: int = 0
    average_duration: int = 0  # seconds
    bounce_rate: int = 0  # percentage (0-100)


class TimeSeriesPoint(ReportModel):
    """One bucket in a time series."""
    bucket_key: str
    page_views: int = 0
    unique_visitors: int = 0


class PageStats(ReportModel):
    """View count for a single page."""
    url: str
    title: str | None = None
    count: int = 0


class DeviceBreakdown(ReportModel):
    """Label -> count tallies for device, browser and OS."""
    devices: dict[str, int] = Field(default_factory=dict)
    browsers: dict[str, int] = Field(default_factory=dict)
    os: dict[str, int] = Field(default_factory=dict)


class AggregateReport(ReportModel):
    """Report for a resolved period (today, week, custom, ...)."""
    summary: Summary = Field(default_factory=Summary)
    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
    top_pages: list[PageStats] = Field(default_factory=list)
    device_stats: DeviceBreakdown = Field(default_factory=DeviceBreakdown)
    referrer_stats: dict[str, int] = Field(default_factory=dict)


class MonthStats(ReportModel):
    """Per-month row of the monthly report."""
    month: int  # 1-12
    month_name: str
    page_views: int = 0
    unique_visitors: int = 0
    total_sessions: int = 0
    average_duration: int = 0
    bounce_rate: int = 0


class MonthlyReport(ReportModel):
    """Month-by-month report for one calendar year."""
    summary: Summary = Field(default_factory=Summary)
    monthly_data: list[MonthStats] = Field(default_factory=list)
    top_pages: list[PageStats] = Field(default_factory=list)
    device_stats: DeviceBreakdown = Field(default_factory=DeviceBreakdown)
    referrer_stats: dict[str, int] = Field(default_factory=dict)


class YearStats(ReportModel):
    """Per-year row of the yearly report."""
    year: int
    page_views: int = 0
    unique_visitors: int = 0
    total_sessions: int = 0
    average_duration: int = 0
    bounce_rate: int = 0
    growth_rate: int = 0  # % change from the next older year


class YearlyReport(ReportModel):
    """Year-by-year report over a range of years, most recent first."""
    summary: Summary = Field(default_factory=Summary)
    yearly_data: list[YearStats] = Field(default_factory=list)
    top_pages: list[PageStats] = Field(default_factory=list)
    device_stats: DeviceBreakdown = Field(default_factory=DeviceBreakdown)
    referrer_stats: dict[str, int] = Field(default_factory=dict)


# =============================================================================
# Realtime Models
# =============================================================================

class RealtimeCount(ReportModel):
    """Distinct sessions seen in the realtime window."""
    count: int = 0


class ActivityEvent(ReportModel):
    """A single row of the recent activity feed."""
    id: str | None = None
    session_id: str
    page_url: str
    page_title: str | None = None
    visit_time: datetime
    duration: int = 0
    browser: str = "Unknown"
    os: str = "Unknown"
    device_type: str = "Unknown"
    country: str = "Unknown"


class RecentActivity(ReportModel):
    """Recent activity feed, newest first."""
    activities: list[ActivityEvent] = Field(default_factory=list)
    count: int = 0

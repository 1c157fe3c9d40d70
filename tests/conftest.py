"""Shared helpers for visitor analytics tests."""

import asyncio
from datetime import datetime, timezone

from visitor_analytics.core.models import VisitEvent

UTC = timezone.utc


def run_async(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def make_event(
    session_id: str = "s1",
    visit_time: datetime | None = None,
    website_id: str = "site-1",
    page_url: str = "/",
    **fields,
) -> VisitEvent:
    """Build a visit event with sensible defaults."""
    return VisitEvent(
        website_id=website_id,
        session_id=session_id,
        visit_time=visit_time or datetime(2024, 6, 15, 12, 0, tzinfo=UTC),
        page_url=page_url,
        **fields,
    )

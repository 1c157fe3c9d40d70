"""
JSON API routes for Visitor Analytics.

A thin boundary over StatsClient: parameters are validated here, reports are
computed by the client, and store failures become a 500 after being logged.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from ..config import DEFAULT_ACTIVITY_LIMIT
from ..core.client import MissingWebsiteError, StatsClient
from ..core.models import VisitEvent
from ..user_agent import parse_user_agent

logger = logging.getLogger(__name__)

YEARLY_DEFAULT_SPAN = 4  # fromYear defaults to toYear - 4
MIN_YEAR = 1
MAX_YEAR = 9998  # windows end at Jan 1 of the following year


class TrackRequest(BaseModel):
    """Incoming tracking beacon."""
    website_id: str | None = None
    session_id: str | None = None
    page_url: str | None = None
    page_title: str | None = None
    referrer: str | None = None
    duration_seconds: int | None = None
    is_fake: bool = False
    country: str | None = None
    city: str | None = None
    user_agent: str | None = None


def _to_json(value) -> dict:
    """Dump a report model with camelCase keys and ISO timestamps."""
    return value.model_dump(mode="json", by_alias=True)


def _require_website(website_id: str | None) -> str:
    if not website_id:
        raise HTTPException(status_code=400, detail="Website ID is required")
    return website_id


def _check_year(year: int, name: str = "Year") -> int:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise HTTPException(status_code=400, detail=f"{name} must be between {MIN_YEAR} and {MAX_YEAR}")
    return year


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


def create_stats_router(client: StatsClient) -> APIRouter:
    """Create the stats API router.

    Args:
        client: Stats client bound to an event store
    """
    router = APIRouter(tags=["stats"])

    async def _run(name: str, coro):
        """Await a client call, turning unexpected failures into a 500."""
        try:
            return await coro
        except HTTPException:
            raise
        except MissingWebsiteError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from None
        except Exception:
            logger.exception(f"Error in {name}")
            raise HTTPException(status_code=500, detail="Internal server error") from None

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    @router.get("/stats")
    async def stats(
        website_id: str | None = Query(None, alias="websiteId"),
        period: str = Query("today"),
        year: int | None = Query(None),
        month: int | None = Query(None),
    ):
        """Single-website report for a period or a calendar month."""
        site = _require_website(website_id)
        logger.debug(f"Stats requested for {site}: period={period} year={year} month={month}")

        if year is not None and month is not None:
            if not 1 <= month <= 12:
                raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
            _check_year(year)
            report = await _run("stats", client.get_calendar_month_report(site, year, month))
        else:
            report = await _run("stats", client.get_report(site, period))
        return _to_json(report)

    @router.get("/stats/all")
    async def stats_all(period: str = Query("week")):
        """Report across all websites."""
        report = await _run("stats/all", client.get_all_websites_report(period))
        return _to_json(report)

    @router.get("/stats/monthly")
    async def stats_monthly(
        website_id: str | None = Query(None, alias="websiteId"),
        year: int | None = Query(None),
    ):
        """Month-by-month report for a year (defaults to the current year)."""
        site = _require_website(website_id)
        year = _check_year(year if year is not None else datetime.now(client.tz).year)
        report = await _run("stats/monthly", client.get_monthly_report(site, year))
        return _to_json(report)

    @router.get("/stats/yearly")
    async def stats_yearly(
        website_id: str | None = Query(None, alias="websiteId"),
        from_year: int | None = Query(None, alias="fromYear"),
        to_year: int | None = Query(None, alias="toYear"),
    ):
        """Year-by-year report (defaults to the last five years)."""
        site = _require_website(website_id)
        current_year = datetime.now(client.tz).year
        from_year = from_year if from_year is not None else current_year - YEARLY_DEFAULT_SPAN
        to_year = to_year if to_year is not None else current_year
        _check_year(from_year, "fromYear")
        _check_year(to_year, "toYear")

        report = await _run("stats/yearly", client.get_yearly_report(site, from_year, to_year))
        return _to_json(report)

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    @router.get("/realtime")
    async def realtime(website_id: str | None = Query(None, alias="websiteId")):
        """Active visitors in the realtime window, for one site or all."""
        result = await _run("realtime", client.get_realtime_count(website_id))
        return _to_json(result)

    @router.get("/realtime/activity")
    async def realtime_activity(
        website_id: str | None = Query(None, alias="websiteId"),
        limit: int = Query(DEFAULT_ACTIVITY_LIMIT),
    ):
        """Recent visits for one site, newest first."""
        site = _require_website(website_id)
        result = await _run("realtime/activity", client.get_recent_activity(site, limit))
        return _to_json(result)

    # -------------------------------------------------------------------------
    # Ingest
    # -------------------------------------------------------------------------

    @router.post("/track")
    async def track(request: Request, beacon: TrackRequest):
        """Record a pageview beacon."""
        if not (beacon.website_id and beacon.session_id and beacon.page_url):
            raise HTTPException(status_code=400, detail="Missing required fields")

        user_agent = request.headers.get("user-agent") or beacon.user_agent or ""
        ua_info = parse_user_agent(user_agent)

        event = VisitEvent(
            website_id=beacon.website_id,
            session_id=beacon.session_id,
            visit_time=datetime.now(timezone.utc),
            page_url=beacon.page_url,
            page_title=beacon.page_title or "Unknown Page",
            referrer=beacon.referrer or None,
            duration_seconds=max(beacon.duration_seconds or 0, 0),
            is_fake=beacon.is_fake,
            country=beacon.country,
            city=beacon.city,
            ip_address=_client_ip(request),
            user_agent=user_agent,
            **ua_info.to_dict(),
        )

        stored = await _run("track", client.record_visit(event))
        return {"success": True, "data": stored.model_dump(mode="json")}

    return router

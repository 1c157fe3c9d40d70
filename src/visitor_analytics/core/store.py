"""
Event stores for visit rows.

The aggregator never talks to a database directly; the stats client is given
an EventStore and awaits one read per report. Two implementations:

- InMemoryEventStore: a list of events, for tests and local use
- D1EventStore: a Cloudflare D1 table queried over the D1 HTTP API
"""
import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone

import httpx

from .models import DateRange, VisitEvent

logger = logging.getLogger(__name__)

VISIT_COLUMNS = (
    "id", "website_id", "session_id", "visit_time", "page_url", "page_title",
    "referrer", "duration_seconds", "device_type", "browser", "os",
    "country", "city", "ip_address", "user_agent", "is_fake",
)


class EventStoreError(Exception):
    """Raised when the event store cannot be read or written."""
    pass


def _new_event_id() -> str:
    return uuid.uuid4().hex


class EventStore(ABC):
    """Read/append access to visit events."""

    @abstractmethod
    async def fetch_events(
        self,
        website_ids: Iterable[str] | None,
        start: datetime,
        end: datetime,
    ) -> list[VisitEvent]:
        """Events with ``start <= visit_time < end``, in no particular order.

        ``website_ids=None`` means all websites.
        """

    @abstractmethod
    async def fetch_recent(
        self,
        website_id: str,
        since: datetime,
        limit: int,
    ) -> list[VisitEvent]:
        """Newest events for one website at or after ``since``."""

    @abstractmethod
    async def append(self, event: VisitEvent) -> VisitEvent:
        """Store an event and return it with its id set."""

    async def ensure_schema(self) -> None:
        """Create backing storage if missing. No-op for stores without a schema."""


# =============================================================================
# IN-MEMORY
# =============================================================================

class InMemoryEventStore(EventStore):
    """Event store backed by a Python list."""

    def __init__(self, events: Iterable[VisitEvent] = ()):
        self._events: list[VisitEvent] = list(events)

    def __len__(self) -> int:
        return len(self._events)

    async def fetch_events(self, website_ids, start, end):
        sites = None if website_ids is None else set(website_ids)
        window = DateRange(start=start, end=end)
        return [
            event for event in self._events
            if (sites is None or event.website_id in sites) and window.contains(event.visit_time)
        ]

    async def fetch_recent(self, website_id, since, limit):
        recent = [
            event for event in self._events
            if event.website_id == website_id and event.visit_time >= since
        ]
        recent.sort(key=lambda event: event.visit_time, reverse=True)
        return recent[:limit]

    async def append(self, event):
        if event.id is None:
            event = event.model_copy(update={"id": _new_event_id()})
        self._events.append(event)
        return event


# =============================================================================
# CLOUDFLARE D1
# =============================================================================

def _to_sql_time(moment: datetime) -> str:
    """Fixed-width UTC timestamp, so string comparison orders correctly."""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class D1EventStore(EventStore):
    """Event store in a Cloudflare D1 (SQLite) table."""

    def __init__(
        self,
        d1_database_id: str,
        cf_account_id: str,
        cf_api_token: str,
        table_name: str = "visitors",
        timeout: float = 30.0,
    ):
        if not table_name.isidentifier():
            raise ValueError(f"Invalid table name: {table_name!r}")

        self.database_id = d1_database_id
        self.account_id = cf_account_id
        self.api_token = cf_api_token
        self.table_name = table_name
        self.timeout = timeout
        self.base_url = f"https://api.cloudflare.com/client/v4/accounts/{cf_account_id}/d1/database/{d1_database_id}"

    async def _query(self, sql: str, params: list | None = None) -> list[dict]:
        """Execute a SQL query against D1."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/query",
                    headers={
                        "Authorization": f"Bearer {self.api_token}",
                        "Content-Type": "application/json",
                    },
                    json={"sql": sql, "params": params or []},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as exc:
            raise EventStoreError(f"D1 request failed: {exc}") from exc

        if not data.get("success"):
            raise EventStoreError(f"D1 query failed: {data.get('errors')}")

        results = data.get("result", [])
        if results:
            return results[0].get("results", [])
        return []

    async def _execute(self, sql: str, params: list | None = None) -> None:
        """Execute a SQL statement without returning results."""
        await self._query(sql, params)

    async def ensure_schema(self) -> None:
        """Create the visits table and its time index if missing."""
        await self._execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table_name} (
                id TEXT PRIMARY KEY,
                website_id TEXT NOT NULL,
                session_id TEXT NOT NULL,
                visit_time TEXT NOT NULL,
                page_url TEXT NOT NULL,
                page_title TEXT,
                referrer TEXT,
                duration_seconds INTEGER NOT NULL DEFAULT 0,
                device_type TEXT,
                browser TEXT,
                os TEXT,
                country TEXT,
                city TEXT,
                ip_address TEXT,
                user_agent TEXT,
                is_fake INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        await self._execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self.table_name}_site_time "
            f"ON {self.table_name} (website_id, visit_time)"
        )

    def _row_to_event(self, row: dict) -> VisitEvent:
        data = {column: row.get(column) for column in VISIT_COLUMNS}
        if data["id"] is not None:
            data["id"] = str(data["id"])
        data["is_fake"] = bool(data["is_fake"])
        return VisitEvent.model_validate(data)

    async def fetch_events(self, website_ids, start, end):
        sql = f"""
            SELECT {", ".join(VISIT_COLUMNS)}
            FROM {self.table_name}
            WHERE visit_time >= ? AND visit_time < ?
        """
        params: list = [_to_sql_time(start), _to_sql_time(end)]

        if website_ids is not None:
            sites = list(website_ids)
            if not sites:
                return []
            placeholders = ", ".join("?" for _ in sites)
            sql += f" AND website_id IN ({placeholders})"
            params.extend(sites)

        rows = await self._query(sql, params)
        logger.debug(f"D1 returned {len(rows)} visit rows for {start} - {end}")
        return [self._row_to_event(row) for row in rows]

    async def fetch_recent(self, website_id, since, limit):
        rows = await self._query(
            f"""
            SELECT {", ".join(VISIT_COLUMNS)}
            FROM {self.table_name}
            WHERE website_id = ? AND visit_time >= ?
            ORDER BY visit_time DESC
            LIMIT ?
            """,
            [website_id, _to_sql_time(since), limit],
        )
        return [self._row_to_event(row) for row in rows]

    async def append(self, event):
        if event.id is None:
            event = event.model_copy(update={"id": _new_event_id()})

        values = event.model_dump()
        values["visit_time"] = _to_sql_time(event.visit_time)
        values["is_fake"] = 1 if event.is_fake else 0

        placeholders = ", ".join("?" for _ in VISIT_COLUMNS)
        await self._execute(
            f"INSERT INTO {self.table_name} ({', '.join(VISIT_COLUMNS)}) VALUES ({placeholders})",
            [values[column] for column in VISIT_COLUMNS],
        )
        return event

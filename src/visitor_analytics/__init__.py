"""
Visitor analytics: aggregated stats over tracked pageviews.

Usage:
    from visitor_analytics import setup_stats

    stats = setup_stats(
        timezone="Europe/Berlin",
        d1_database_id="your-d1-id",
        cf_account_id="your-account-id",
        cf_api_token="your-api-token",
    )

    # Create the visits table once at startup
    await stats.ensure_schema()

    # Include the JSON API
    app.include_router(stats.router, prefix="/api")

    # Or query directly
    report = await stats.client.get_report("site-id", "week")
"""

import logging

from .config import StatsConfig
from .core.client import MissingWebsiteError, StatsClient
from .core.models import AggregateReport, MonthlyReport, VisitEvent, YearlyReport
from .core.store import D1EventStore, EventStore, EventStoreError, InMemoryEventStore
from .routes import create_stats_router

__version__ = "0.1.0"
__all__ = [
    "setup_stats", "StatsApp", "StatsConfig", "StatsClient",
    "EventStore", "InMemoryEventStore", "D1EventStore", "EventStoreError",
    "MissingWebsiteError", "VisitEvent", "AggregateReport", "MonthlyReport", "YearlyReport",
]

logger = logging.getLogger(__name__)


class StatsApp:
    """Stats client and API router for one event store."""

    def __init__(self, config: StatsConfig, store: EventStore | None = None):
        self.config = config
        self.store = store if store is not None else self._default_store(config)
        self.client = StatsClient(self.store, config)
        self.router = create_stats_router(self.client)

    async def ensure_schema(self) -> None:
        """Create the visits table on the configured store if it does not exist."""
        await self.store.ensure_schema()
        logger.info(f"Event store schema ready ({type(self.store).__name__})")

    @staticmethod
    def _default_store(config: StatsConfig) -> EventStore:
        if config.has_d1:
            return D1EventStore(
                d1_database_id=config.d1_database_id,
                cf_account_id=config.cf_account_id,
                cf_api_token=config.cf_api_token,
                table_name=config.table_name,
                timeout=config.query_timeout_seconds,
            )
        logger.info("No D1 database configured, using in-memory event store")
        return InMemoryEventStore()


def setup_stats(store: EventStore | None = None, **config_options) -> StatsApp:
    """
    Set up visitor stats.

    Args:
        store: Event store to read from. Defaults to D1 when configured,
               otherwise an in-memory store.
        **config_options: StatsConfig fields (timezone, d1_database_id,
                          cf_account_id, cf_api_token, ...)

    Returns:
        StatsApp with client and router
    """
    return StatsApp(StatsConfig(**config_options), store=store)

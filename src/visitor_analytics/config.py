"""
Configuration for Visitor Analytics.
"""
import logging
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Trailing window for "active visitors now"
DEFAULT_REALTIME_WINDOW_MINUTES = 30

# Ranking and feed limits
DEFAULT_TOP_PAGES_LIMIT = 10
DEFAULT_ACTIVITY_LIMIT = 20
MAX_ACTIVITY_LIMIT = 100


class InvalidTimezoneError(ValueError):
    """Raised when the configured timezone is not a known IANA zone."""
    pass


def load_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name.

    Raises:
        InvalidTimezoneError: If the zone cannot be found
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidTimezoneError(f"Unknown timezone: {name!r}") from None


@dataclass
class StatsConfig:
    """Configuration for a single stats instance.

    Usage:
        config = StatsConfig(
            timezone="Europe/Berlin",
            d1_database_id="your-d1-id",
            cf_account_id="your-account-id",
            cf_api_token="your-api-token",
        )
    """

    # Local time used for day boundaries and bucket keys
    timezone: str = "UTC"

    # Cloudflare D1 event store (optional, in-memory store otherwise)
    d1_database_id: str | None = None
    cf_account_id: str | None = None
    cf_api_token: str | None = None
    table_name: str = "visitors"
    query_timeout_seconds: float = 30.0

    # Report settings
    realtime_window_minutes: int = DEFAULT_REALTIME_WINDOW_MINUTES
    top_pages_limit: int = DEFAULT_TOP_PAGES_LIMIT
    max_activity_limit: int = MAX_ACTIVITY_LIMIT

    def __post_init__(self):
        """Validate configuration after initialization."""
        load_timezone(self.timezone)

        if self.realtime_window_minutes <= 0:
            raise ValueError("realtime_window_minutes must be positive")
        if self.top_pages_limit <= 0:
            raise ValueError("top_pages_limit must be positive")
        if self.max_activity_limit <= 0:
            raise ValueError("max_activity_limit must be positive")

        if self.d1_database_id and not (self.cf_account_id and self.cf_api_token):
            logger.warning(
                f"D1 database {self.d1_database_id} configured without "
                f"account id or API token; falling back to in-memory store"
            )

    @property
    def tz(self) -> ZoneInfo:
        """Timezone object for the configured zone name."""
        return load_timezone(self.timezone)

    @property
    def has_d1(self) -> bool:
        """Check if a D1 event store is fully configured."""
        return bool(self.d1_database_id and self.cf_account_id and self.cf_api_token)

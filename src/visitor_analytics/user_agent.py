"""
User-Agent parsing for the ingest path.

Tracked visits store a browser family, an OS family and a device type. The
dashboard only distinguishes desktop, mobile and tablet, so anything that is
not recognisably a phone or tablet counts as desktop.

Order matters in the pattern tables: Chromium-based browsers all claim to be
Chrome and Safari, and Android user-agents also contain "Linux".
"""

import re
from dataclasses import dataclass
from enum import Enum


class DeviceType(str, Enum):
    """Device category."""
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


@dataclass(frozen=True)
class UserAgentInfo:
    """Browser, OS and device labels for one visit."""
    browser: str = "Unknown"
    os: str = "Unknown"
    device_type: DeviceType = DeviceType.DESKTOP

    def to_dict(self) -> dict:
        """Convert to the column values stored with a visit."""
        return {
            "browser": self.browser,
            "os": self.os,
            "device_type": self.device_type.value,
        }


# Each tuple: (pattern, browser_name)
BROWSER_PATTERNS = [
    # Chromium-based (check before Chrome)
    (r"Edg(?:e|A|iOS)?/", "Edge"),
    (r"OPR/|Opera", "Opera"),
    (r"SamsungBrowser/", "Samsung Internet"),

    # Firefox, including iOS
    (r"Firefox/|FxiOS/", "Firefox"),

    # Chrome, including iOS
    (r"CriOS/|Chrome/", "Chrome"),

    # Safari (after Chrome, which also says Safari)
    (r"Safari/", "Safari"),

    (r"MSIE |Trident/", "Internet Explorer"),
]

# Each tuple: (pattern, os_name)
OS_PATTERNS = [
    (r"iPhone|iPod|iPad", "iOS"),
    (r"Android", "Android"),  # before Linux
    (r"Windows", "Windows"),
    (r"Macintosh|Mac OS X", "macOS"),
    (r"CrOS", "Chrome OS"),
    (r"Linux", "Linux"),
]

TABLET_INDICATORS = [
    r"iPad",
    r"Tablet",
    r"Android(?!.*Mobile)",  # Android without Mobile = tablet
    r"Kindle",
    r"Silk",
]

MOBILE_INDICATORS = [
    r"Mobile",
    r"iPhone",
    r"iPod",
    r"Windows Phone",
    r"Opera Mini",
]


def _match_first(ua: str, patterns: list[tuple[str, str]]) -> str:
    for pattern, name in patterns:
        if re.search(pattern, ua, re.IGNORECASE):
            return name
    return "Unknown"


def _detect_device_type(ua: str) -> DeviceType:
    # Tablet first: iPad user-agents also say Mobile
    for pattern in TABLET_INDICATORS:
        if re.search(pattern, ua, re.IGNORECASE):
            return DeviceType.TABLET

    for pattern in MOBILE_INDICATORS:
        if re.search(pattern, ua, re.IGNORECASE):
            return DeviceType.MOBILE

    return DeviceType.DESKTOP


def parse_user_agent(user_agent: str | None) -> UserAgentInfo:
    """
    Parse a user-agent string into browser, OS and device labels.

    Examples:
        >>> parse_user_agent("Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36")
        UserAgentInfo(browser='Chrome', os='macOS', device_type=<DeviceType.DESKTOP: 'desktop'>)
    """
    if not user_agent or not user_agent.strip():
        return UserAgentInfo()

    return UserAgentInfo(
        browser=_match_first(user_agent, BROWSER_PATTERNS),
        os=_match_first(user_agent, OS_PATTERNS),
        device_type=_detect_device_type(user_agent),
    )

"""Device fingerprinting from user-agent strings and IP geolocation.

Nothing in this module raises: unknown input degrades to safe defaults so a
fingerprint problem can never block sign-in.
"""

import ipaddress
import logging
from dataclasses import dataclass

from stride.config import settings
from stride.services.shared.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

# Ordered (token, label) pairs; first match wins
BROWSER_TOKENS: list[tuple[tuple[str, ...], str]] = [
    (("edg",), "Edge"),
    (("opr/", "opera"), "Opera"),
    (("chrome", "crios"), "Chrome"),
    (("firefox", "fxios"), "Firefox"),
    (("safari",), "Safari"),
]

OS_TOKENS: list[tuple[tuple[str, ...], str]] = [
    (("iphone", "ipad", "ipod", "ios"), "iOS"),
    (("android",), "Android"),
    (("windows",), "Windows"),
    (("mac",), "macOS"),
    (("linux", "x11", "cros"), "Linux"),
]

TABLET_TOKENS = ("ipad", "tablet")
MOBILE_TOKENS = ("mobile", "iphone", "ipod", "android")


@dataclass(frozen=True)
class DeviceInfo:
    """Browser, OS and device class derived from a user agent."""

    browser: str = UNKNOWN
    os: str = UNKNOWN
    device_type: str = "desktop"


@dataclass(frozen=True)
class Location:
    """Best-effort location of an IP address."""

    city: str | None = None
    country: str | None = None


LOCAL_LOCATION = Location(city="Local", country="Development")
UNKNOWN_LOCATION = Location(city=UNKNOWN, country=UNKNOWN)


def _first_match(ua: str, table: list[tuple[tuple[str, ...], str]]) -> str:
    for tokens, label in table:
        if any(token in ua for token in tokens):
            return label
    return UNKNOWN


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    """Derive (browser, os, device_type) by case-insensitive token matching."""
    if not user_agent:
        return DeviceInfo()

    ua = user_agent.lower()

    # Android tablets omit the "mobile" token
    if any(token in ua for token in TABLET_TOKENS) or ("android" in ua and "mobile" not in ua):
        device_type = "tablet"
    elif any(token in ua for token in MOBILE_TOKENS):
        device_type = "mobile"
    else:
        device_type = "desktop"

    return DeviceInfo(
        browser=_first_match(ua, BROWSER_TOKENS),
        os=_first_match(ua, OS_TOKENS),
        device_type=device_type,
    )


def is_local_address(ip: str | None) -> bool:
    """True for loopback, private and link-local addresses."""
    if not ip:
        return True
    try:
        address = ipaddress.ip_address(ip.strip())
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_link_local


class GeolocationClient(HTTPClient):
    """Single-shot IP geolocation against an ip-api.com compatible endpoint."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        super().__init__(
            base_url=base_url or settings.geolocation_url,
            timeout=timeout or settings.geolocation_timeout_seconds,
            max_retries=1,
        )

    def locate(self, ip: str | None) -> Location:
        """Return the location of ip. Never raises."""
        if is_local_address(ip):
            return LOCAL_LOCATION

        try:
            ipaddress.ip_address(ip.strip())
        except ValueError:
            logger.debug(f"Skipping geolocation for unparsable address: {ip!r}")
            return UNKNOWN_LOCATION

        try:
            data = self.get_json(f"/{ip.strip()}", params={"fields": "status,city,country"})
        except (HTTPClientError, ValueError) as e:
            logger.warning(f"Geolocation lookup failed for {ip}: {e}")
            return UNKNOWN_LOCATION
        except Exception:
            logger.exception(f"Unexpected geolocation error for {ip}")
            return UNKNOWN_LOCATION

        if not isinstance(data, dict) or data.get("status") == "fail":
            return UNKNOWN_LOCATION

        return Location(
            city=data.get("city") or UNKNOWN,
            country=data.get("country") or UNKNOWN,
        )

"""
Test servers and the client geolocation collaborator.

The server list is static; ``ServerSelector`` attaches measured latency to
copies of these entries.  Geolocation is looked up once per run through
ipapi.co and degrades to placeholder data when the service is unreachable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

from .constants import GEOLOCATION_TIMEOUT, GEOLOCATION_URL
from .errors import ProbeFailure
from .models import PLACEHOLDER_LOCATION, UserLocation
from .probe import ProbeClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Servers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestServer:
    """A candidate origin used for latency-based server selection."""

    __test__ = False  # not a pytest test class

    id: str
    name: str
    location: str
    host: str
    latency: Optional[float] = None

    def with_latency(self, latency: float) -> TestServer:
        return replace(self, latency=latency)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "host": self.host,
            "latency": self.latency,
        }


SERVERS: Tuple[TestServer, ...] = (
    TestServer(id="1", name="Cloudflare", location="Global CDN", host="https://speed.cloudflare.com"),
    TestServer(id="2", name="Google", location="Global", host="https://www.google.com"),
    TestServer(id="3", name="GitHub", location="Global CDN", host="https://github.com"),
    TestServer(id="4", name="Fast.com", location="Netflix CDN", host="https://fast.com"),
)


# ---------------------------------------------------------------------------
# Geolocation
# ---------------------------------------------------------------------------

def location_from_ipapi(data: Dict[str, Any]) -> UserLocation:
    """Map an ipapi.co JSON payload onto ``UserLocation``."""
    return UserLocation(
        city=data.get("city") or "Unknown City",
        country=data.get("country_name") or "Unknown Country",
        ip=data.get("ip") or "127.0.0.1",
    )


class IpApiLocator:
    """Resolve the client's public location via ipapi.co."""

    def __init__(
        self,
        url: str = GEOLOCATION_URL,
        timeout: float = GEOLOCATION_TIMEOUT,
    ) -> None:
        self.url = url
        self.timeout = timeout

    async def lookup(self, probe: ProbeClient) -> UserLocation:
        try:
            data = await probe.get_json(self.url, timeout=self.timeout)
        except ProbeFailure as exc:
            logger.warning("Geolocation lookup failed, using placeholder: %s", exc)
            return PLACEHOLDER_LOCATION
        return location_from_ipapi(data)

"""HTTP access to the tile server and the elevation service."""

import asyncio
import json
from dataclasses import dataclass
from typing import Optional

import aiohttp

from ..utils.log import get_logger

logger = get_logger(__name__)

ELEVATION_URL = "https://maps.googleapis.com/maps/api/elevation/json"


class FetchError(RuntimeError):
    """Raised when a request fails at the transport level."""


class ElevationError(RuntimeError):
    """Raised when the elevation service returns an unusable answer."""


@dataclass
class FetchResponse:
    """Result of a document fetch.

    Attributes:
        url: Requested URL
        status: HTTP status code
        content_type: Declared Content-Type header (may be empty)
        body: Raw response body
    """

    url: str
    status: int
    content_type: str
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_json(self) -> bool:
        return "application/json" in self.content_type.lower()


class TileClient:
    """Keep-alive HTTP client used for tileset documents and tile payloads.

    Use as an async context manager::

        async with TileClient() as client:
            response = await client.fetch(url)
    """

    def __init__(self, timeout: float = 30.0, limit: int = 100):
        """Initialize the client.

        Args:
            timeout: Total timeout per request in seconds
            limit: Maximum number of pooled connections
        """
        self.timeout = timeout
        self.limit = limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "TileClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the underlying aiohttp session if needed."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.limit, keepalive_timeout=30)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )

    async def close(self) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch(self, url: str, params: Optional[dict] = None) -> FetchResponse:
        """Fetch a URL.

        Non-success statuses are returned, not raised; the caller decides.

        Raises:
            FetchError: On connection errors or timeouts
        """
        await self.open()
        try:
            async with self._session.get(url, params=params) as resp:
                body = await resp.read()
                return FetchResponse(
                    url=url,
                    status=resp.status,
                    content_type=resp.headers.get("Content-Type", ""),
                    body=body,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(f"Could not fetch {url}: {e!r}") from e


class ElevationService:
    """Look up ground elevation for a location."""

    def __init__(self, client: TileClient, api_key: str, url: str = ELEVATION_URL):
        self.client = client
        self.api_key = api_key
        self.url = url

    async def lookup(self, lat: float, lng: float) -> float:
        """Return the elevation in metres at (lat, lng).

        Raises:
            ElevationError: On a non-success status or malformed payload
            FetchError: On transport failures
        """
        response = await self.client.fetch(
            self.url,
            params={"locations": f"{lat},{lng}", "key": self.api_key},
        )
        if not response.ok:
            raise ElevationError(f"Elevation API returned HTTP {response.status}")

        try:
            payload = json.loads(response.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ElevationError(f"Elevation API returned malformed JSON: {e}") from e

        if not isinstance(payload, dict) or payload.get("status") != "OK":
            raise ElevationError(f"Elevation API error: {payload!r}")

        try:
            return float(payload["results"][0]["elevation"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ElevationError(f"Elevation API payload missing elevation: {payload!r}") from e

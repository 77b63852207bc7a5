"""
Async CoinGecko REST client.

Fetches current prices for a fixed asset list with:
- A single pooled aiohttp session
- Fast JSON parsing with orjson
- Rate-limit (HTTP 429) responses surfaced as a distinct error
"""

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Protocol

import aiohttp
import orjson
from pydantic import ValidationError

from tradesim.config.constants import (
    COINGECKO_API_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_AFTER,
    ENDPOINT_SIMPLE_PRICE,
    HTTP_TOO_MANY_REQUESTS,
    REFERENCE_CURRENCY,
)
from tradesim.feed.models import SimplePriceResponse


class PriceSourceError(Exception):
    """Base exception for price source errors."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitedError(PriceSourceError):
    """The price source rejected the call with HTTP 429."""

    def __init__(self, message: str, retry_after: int = DEFAULT_RETRY_AFTER) -> None:
        super().__init__(message, status=HTTP_TOO_MANY_REQUESTS)
        self.retry_after = retry_after


class PriceSource(Protocol):
    """Anything that can return a simple/price payload."""

    async def get_simple_prices(self, assets: Sequence[str]) -> SimplePriceResponse: ...


class CoinGeckoClient:
    """
    Async CoinGecko client.

    Features:
    - Lazy session creation with keep-alive
    - Request timeout
    - orjson for fast JSON parsing
    """

    def __init__(
        self,
        base_url: str = COINGECKO_API_URL,
        timeout_s: float = DEFAULT_REQUEST_TIMEOUT,
        currency: str = REFERENCE_CURRENCY,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API base URL.
            timeout_s: Total timeout per request in seconds.
            currency: Quote currency for prices.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._currency = currency
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=10,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )

            headers = {
                "Accept": "application/json",
            }

            self._session = aiohttp.ClientSession(
                connector=connector,
                headers=headers,
                timeout=self._timeout,
            )

        return self._session

    async def close(self) -> None:
        """Close the client session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager for making requests."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise PriceSourceError(f"Network error: {e}") from e
        except asyncio.TimeoutError as e:
            raise PriceSourceError("Request timed out") from e

    async def _handle_response(self, response: aiohttp.ClientResponse) -> object:
        """Parse and validate response."""
        if response.status == HTTP_TOO_MANY_REQUESTS:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitedError(
                f"Rate limited by price source, retry after {retry_after}s",
                retry_after=retry_after,
            )

        text = await response.text()

        if response.status >= 400:
            raise PriceSourceError(
                f"API error {response.status}: {text[:200]}",
                status=response.status,
            )

        try:
            return orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise PriceSourceError(f"Invalid JSON response: {e}") from e

    async def get_simple_prices(self, assets: Sequence[str]) -> SimplePriceResponse:
        """
        Get price, 24h change, 24h volume and market cap for assets.

        Args:
            assets: Asset ids to query.

        Returns:
            Parsed response keyed by asset id.

        Raises:
            RateLimitedError: On HTTP 429.
            PriceSourceError: On network, HTTP or payload errors.
        """
        params = {
            "ids": ",".join(assets),
            "vs_currencies": self._currency,
            "include_24hr_change": "true",
            "include_24hr_vol": "true",
            "include_market_cap": "true",
        }
        url = f"{self._base_url}{ENDPOINT_SIMPLE_PRICE}"

        async with self._request_context() as session:
            async with session.get(url, params=params) as response:
                data = await self._handle_response(response)

        try:
            return SimplePriceResponse.model_validate(data)
        except ValidationError as e:
            raise PriceSourceError(f"Unexpected payload: {e.error_count()} errors") from e

    async def __aenter__(self) -> "CoinGeckoClient":
        """Async context manager entry."""
        await self._get_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()


def _parse_retry_after(value: str | None) -> int:
    """Retry-After in seconds; falls back to the default on absence or junk."""
    if value is None:
        return DEFAULT_RETRY_AFTER
    try:
        return max(0, int(value))
    except ValueError:
        return DEFAULT_RETRY_AFTER

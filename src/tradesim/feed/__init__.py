"""Price feed: upstream client, rate limiting and the acquisition loop."""

from tradesim.feed.acquirer import PriceFeed
from tradesim.feed.client import CoinGeckoClient, PriceSource, PriceSourceError, RateLimitedError
from tradesim.feed.models import SimplePriceEntry, SimplePriceResponse
from tradesim.feed.rate_limiter import BackoffPolicy, CallBudget


__all__ = [
    "BackoffPolicy",
    "CallBudget",
    "CoinGeckoClient",
    "PriceFeed",
    "PriceSource",
    "PriceSourceError",
    "RateLimitedError",
    "SimplePriceEntry",
    "SimplePriceResponse",
]

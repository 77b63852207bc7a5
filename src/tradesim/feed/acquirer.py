"""
Price feed acquisition loop.

Periodically pulls prices for the supported assets, keeps a bounded
rolling history per asset, and publishes every refresh on the event bus.
Failures never stop the loop: cached quotes are republished and rate
limits lengthen the interval until the next successful fetch.
"""

import asyncio
import logging
from collections.abc import Callable

from tradesim.config.constants import (
    DEFAULT_CACHE_DURATION,
    DEFAULT_FETCH_INTERVAL,
    DEFAULT_INITIAL_FETCH_DELAY,
    MAX_CALLS_PER_MINUTE,
    MAX_FETCH_INTERVAL,
    PRICE_HISTORY_LIMIT,
    SUPPORTED_ASSETS,
)
from tradesim.core.event_bus import Event, EventBus, EventType
from tradesim.core.scheduler import RepeatingTask, SleepFn
from tradesim.core.types import FetchState, PriceHistoryPoint, PriceQuote, PriceSnapshot
from tradesim.feed.client import PriceSource, PriceSourceError, RateLimitedError
from tradesim.feed.rate_limiter import BackoffPolicy, CallBudget
from tradesim.telemetry.metrics import MetricsCollector
from tradesim.utils.buffers import KeyedHistory
from tradesim.utils.time import get_timestamp_ms, get_timestamp_us


logger = logging.getLogger(__name__)


class PriceFeed:
    """
    Owns the quote table, the history map and the fetch state.

    One cycle:
    1. Cache still fresh -> republish cached quotes, no upstream call.
    2. Call budget spent -> treat as rate limited, republish cache.
    3. Fetch -> on success replace quotes, append history, reset backoff;
       on failure count it, back off if rate limited, republish cache.
    """

    def __init__(
        self,
        source: PriceSource,
        event_bus: EventBus | None = None,
        assets: tuple[str, ...] = SUPPORTED_ASSETS,
        backoff: BackoffPolicy | None = None,
        cache_duration_s: float = DEFAULT_CACHE_DURATION,
        call_budget: CallBudget | None = None,
        history_limit: int = PRICE_HISTORY_LIMIT,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], int] = get_timestamp_ms,
    ) -> None:
        """
        Initialize the feed.

        Args:
            source: Upstream price source.
            event_bus: Bus that receives PRICE_UPDATE events.
            assets: Asset ids to track.
            backoff: Interval policy (base interval and rate-limit growth).
            cache_duration_s: Age under which cached quotes skip a fetch.
            call_budget: Upstream calls allowed per minute.
            history_limit: Points kept per asset.
            metrics: Metrics collector.
            clock: Millisecond clock.
        """
        self._source = source
        self._event_bus = event_bus or EventBus()
        self._assets = assets
        self._backoff = backoff or BackoffPolicy(
            base_interval=DEFAULT_FETCH_INTERVAL,
            max_interval=MAX_FETCH_INTERVAL,
        )
        self._cache_duration_ms = int(cache_duration_s * 1000)
        self._clock = clock
        self._call_budget = call_budget or CallBudget(capacity=MAX_CALLS_PER_MINUTE, clock=clock)
        self._metrics = metrics or MetricsCollector()

        self._quotes: dict[str, PriceQuote] = {}
        self._history: KeyedHistory[str, PriceHistoryPoint] = KeyedHistory(history_limit, assets)
        self._state = FetchState(interval_s=self._backoff.base_interval)
        self._task: RepeatingTask | None = None

    # =========================================================================
    # Loop
    # =========================================================================

    async def run_cycle(self) -> None:
        """Run one acquisition cycle. Never raises for upstream failures."""
        now = self._clock()

        if self._cache_is_fresh(now):
            age_s = (now - (self._state.last_success_ms or now)) / 1000
            logger.debug(f"Serving cached prices, age: {age_s:.0f}s")
            self._metrics.increment_counter("feed_cache_hits")
            await self._publish(cached=True)
            return

        if not self._call_budget.try_acquire():
            logger.warning("Upstream call budget exhausted, using cache")
            self._metrics.increment_counter("feed_budget_exhausted")
            await self._on_failure(rate_limited=True)
            return

        self._metrics.increment_counter("feed_fetch_attempts")
        start_us = get_timestamp_us()

        try:
            response = await self._source.get_simple_prices(self._assets)
            quotes = response.to_quotes(self._assets)
            if not quotes:
                raise PriceSourceError("Price source returned no quotes")

        except RateLimitedError as e:
            logger.warning(
                f"Rate limited by price source (retry after {e.retry_after}s), "
                f"failures={self._state.consecutive_failures + 1}"
            )
            self._metrics.increment_counter("feed_rate_limited")
            await self._on_failure(rate_limited=True)

        except PriceSourceError as e:
            logger.error(f"Error fetching prices: {e}")
            await self._on_failure(rate_limited=False)

        except Exception as e:
            logger.error(f"Unexpected error fetching prices: {e}", exc_info=True)
            await self._on_failure(rate_limited=False)

        else:
            self._metrics.record_duration("price_fetch", get_timestamp_us() - start_us)
            await self._on_success(quotes)

    async def _on_success(self, quotes: dict[str, PriceQuote]) -> None:
        """Replace the table, extend history, reset backoff, publish."""
        # Keep history timestamps non-decreasing even if the clock steps back
        timestamp = max(self._clock(), self._state.last_success_ms or 0)

        self._quotes = quotes
        for asset, quote in quotes.items():
            self._history.append(
                asset,
                PriceHistoryPoint(timestamp=timestamp, price=quote.usd, volume=quote.usd_24h_vol),
            )

        self._state.last_fetch_success = True
        self._state.last_success_ms = timestamp
        self._state.consecutive_failures = 0
        self._state.rate_limited = False
        self._state.interval_s = self._backoff.base_interval

        self._metrics.increment_counter("feed_fetch_successes")
        logger.info(f"Fetched prices for {len(quotes)} assets")

        await self._publish(cached=False)

    async def _on_failure(self, rate_limited: bool) -> None:
        """Count the failure, back off on rate limits, republish cache."""
        self._state.last_fetch_success = False
        self._state.consecutive_failures += 1
        self._metrics.increment_counter("feed_fetch_failures")

        if rate_limited:
            self._state.rate_limited = True
            self._state.interval_s = max(
                self._state.interval_s,
                self._backoff.interval_for(self._state.consecutive_failures),
            )
            logger.info(f"Next price fetch in {self._state.interval_s:.0f}s")

        if self._quotes:
            await self._publish(cached=True)

    def _cache_is_fresh(self, now: int) -> bool:
        if not self._quotes or self._state.last_success_ms is None:
            return False
        # A clock that stepped back makes the age negative: treat as stale
        age_ms = now - self._state.last_success_ms
        return 0 <= age_ms < self._cache_duration_ms

    async def _publish(self, cached: bool) -> None:
        await self._event_bus.publish(
            Event(
                type=EventType.PRICE_UPDATE,
                payload=self.snapshot(cached=cached),
                source="price_feed",
            )
        )

    # =========================================================================
    # Scheduling
    # =========================================================================

    def next_delay(self) -> float:
        """Seconds until the next cycle."""
        return self._state.interval_s

    def start(
        self,
        initial_delay: float = DEFAULT_INITIAL_FETCH_DELAY,
        sleep: SleepFn | None = None,
    ) -> RepeatingTask:
        """
        Start the self-rescheduling fetch loop.

        Args:
            initial_delay: Delay before the first fetch.
            sleep: Optional sleep override for tests.
        """
        if self._task is None:
            self._task = RepeatingTask(
                name="price-feed",
                callback=self.run_cycle,
                delay=self.next_delay,
                initial_delay=initial_delay,
                sleep=sleep or asyncio.sleep,
            )
        self._task.start()
        return self._task

    async def stop(self) -> None:
        """Stop the fetch loop."""
        if self._task:
            await self._task.stop()
            self._task = None

    # =========================================================================
    # Pull accessors
    # =========================================================================

    def snapshot(self, cached: bool = False) -> PriceSnapshot:
        """Current quotes and full history."""
        return PriceSnapshot(
            prices=dict(self._quotes),
            history=self._history.snapshot(),
            cached=cached,
            last_updated=self._state.last_success_ms,
        )

    def quote(self, asset: str) -> PriceQuote | None:
        """Latest quote for one asset."""
        return self._quotes.get(asset)

    def history(self, asset: str) -> list[PriceHistoryPoint]:
        """History for one asset, oldest first."""
        return self._history.get(asset)

    def latest_price(self, asset: str, default: float) -> float:
        """Latest price for an asset or ``default`` if none is cached."""
        quote = self._quotes.get(asset)
        return quote.usd if quote else default

    @property
    def state(self) -> FetchState:
        """Fetch bookkeeping (read-only use)."""
        return self._state

    @property
    def assets(self) -> tuple[str, ...]:
        return self._assets

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

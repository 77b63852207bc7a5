"""
Unit tests for the price feed.

Tests caching, backoff on rate limits, bounded history and publication.
"""

from typing import Any

import pytest

from tests.mocks import ManualClock, MockPriceSource, rate_limited, unavailable
from tradesim.core.event_bus import Event, EventBus, EventType
from tradesim.core.types import PriceSnapshot
from tradesim.feed.acquirer import PriceFeed
from tradesim.feed.rate_limiter import BackoffPolicy, CallBudget
from tradesim.telemetry.metrics import MetricsCollector


BITCOIN_ONLY: dict[str, Any] = {"bitcoin": {"usd": 50000, "usd_24h_change": 2.1}}


@pytest.fixture
def published(event_bus: EventBus) -> list[PriceSnapshot]:
    """Snapshots published on the bus, in order."""
    snapshots: list[PriceSnapshot] = []

    def capture(event: Event[PriceSnapshot]) -> None:
        snapshots.append(event.payload)

    event_bus.subscribe_sync(EventType.PRICE_UPDATE, capture)
    return snapshots


class TestSuccessfulFetch:
    """Tests for the success path."""

    @pytest.mark.asyncio
    async def test_first_fetch_populates_table(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        published: list[PriceSnapshot],
    ) -> None:
        """Empty table plus one fetch gives one quote and one history point."""
        price_source.script(BITCOIN_ONLY)

        await feed.run_cycle()

        quote = feed.quote("bitcoin")
        assert quote is not None
        assert quote.usd == 50000
        assert quote.usd_24h_change == 2.1
        assert quote.usd_24h_vol == 0.0
        assert quote.usd_market_cap == 0.0

        history = feed.history("bitcoin")
        assert len(history) == 1
        assert history[0].price == 50000

        assert len(published) == 1
        assert published[0].cached is False
        assert "bitcoin" in published[0].prices

    @pytest.mark.asyncio
    async def test_publication_carries_every_supported_asset_history(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        published: list[PriceSnapshot],
    ) -> None:
        """History map lists every tracked asset, empty or not."""
        price_source.script(BITCOIN_ONLY)

        await feed.run_cycle()

        payload = published[0].to_payload()
        assert set(payload["history"]) == set(feed.assets)
        assert payload["history"]["ethereum"] == []
        assert "cached" not in payload

    @pytest.mark.asyncio
    async def test_assets_outside_the_list_are_ignored(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
    ) -> None:
        """Only supported assets enter the table."""
        price_source.script({**BITCOIN_ONLY, "not-a-coin": {"usd": 1.0}})

        await feed.run_cycle()

        assert feed.quote("not-a-coin") is None
        assert "not-a-coin" not in feed.snapshot().history

    @pytest.mark.asyncio
    async def test_history_bounded_and_ordered(
        self,
        feed: PriceFeed,
        clock: ManualClock,
    ) -> None:
        """History never exceeds 100 points and timestamps never go back."""
        for _ in range(150):
            await feed.run_cycle()
            clock.advance(121)

        for asset in ("bitcoin", "ethereum"):
            history = feed.history(asset)
            assert len(history) == 100
            timestamps = [p.timestamp for p in history]
            assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_clock_stepping_back_keeps_order(
        self,
        feed: PriceFeed,
        clock: ManualClock,
        price_source: MockPriceSource,
    ) -> None:
        """A clock that jumps backwards cannot reorder history."""
        await feed.run_cycle()
        clock.advance(-3600)

        await feed.run_cycle()

        timestamps = [p.timestamp for p in feed.history("bitcoin")]
        assert price_source.call_count == 2
        assert timestamps == sorted(timestamps)


class TestCache:
    """Tests for the cache window."""

    @pytest.mark.asyncio
    async def test_cycle_inside_window_makes_no_call(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        clock: ManualClock,
        published: list[PriceSnapshot],
        metrics: MetricsCollector,
    ) -> None:
        """A fresh cache is republished without an upstream call."""
        await feed.run_cycle()
        clock.advance(60)

        await feed.run_cycle()

        assert price_source.call_count == 1
        assert len(published) == 2
        assert published[1].cached is True
        assert published[1].to_payload()["lastUpdated"] == feed.state.last_success_ms
        assert metrics.get_counter("feed_cache_hits") == 1

    @pytest.mark.asyncio
    async def test_expired_cache_fetches(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        clock: ManualClock,
    ) -> None:
        """Past the window a new fetch happens."""
        await feed.run_cycle()
        clock.advance(121)

        await feed.run_cycle()

        assert price_source.call_count == 2
        assert len(feed.history("bitcoin")) == 2

    @pytest.mark.asyncio
    async def test_pull_accessors_never_call_upstream(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
    ) -> None:
        """Snapshot and quote reads are served from memory."""
        await feed.run_cycle()

        feed.snapshot()
        feed.quote("bitcoin")
        feed.history("ethereum")
        feed.latest_price("ethereum", 2000.0)

        assert price_source.call_count == 1


class TestFailures:
    """Tests for failure handling and backoff."""

    @pytest.mark.asyncio
    async def test_first_rate_limit_without_cache(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        published: list[PriceSnapshot],
        backoff: BackoffPolicy,
    ) -> None:
        """429 with an empty table publishes nothing and escalates once."""
        price_source.script(rate_limited())

        await feed.run_cycle()

        assert published == []
        assert feed.state.consecutive_failures == 1
        assert feed.state.rate_limited is True
        assert feed.state.last_fetch_success is False
        assert feed.next_delay() == backoff.interval_for(1)
        assert feed.next_delay() > backoff.base_interval

    @pytest.mark.asyncio
    async def test_rate_limits_never_shorten_interval(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        clock: ManualClock,
        published: list[PriceSnapshot],
    ) -> None:
        """Consecutive 429s grow the interval up to the ceiling."""
        await feed.run_cycle()
        price_source.script(*(rate_limited() for _ in range(6)))

        intervals = []
        for _ in range(6):
            clock.advance(feed.next_delay())
            await feed.run_cycle()
            intervals.append(feed.next_delay())

        assert intervals == sorted(intervals)
        assert intervals[0] == 240.0
        assert intervals[-1] == 900.0

        # every failure republished the cached table
        assert len(published) == 7
        assert all(s.cached for s in published[1:])

    @pytest.mark.asyncio
    async def test_success_resets_interval(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        clock: ManualClock,
        backoff: BackoffPolicy,
    ) -> None:
        """One success after a run of 429s restores the base interval."""
        price_source.script(rate_limited(), rate_limited(), rate_limited())
        for _ in range(3):
            await feed.run_cycle()
        assert feed.next_delay() > backoff.base_interval

        await feed.run_cycle()

        assert feed.next_delay() == backoff.base_interval
        assert feed.state.consecutive_failures == 0
        assert feed.state.rate_limited is False
        assert feed.state.last_fetch_success is True

    @pytest.mark.asyncio
    async def test_other_failures_keep_interval(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        clock: ManualClock,
        published: list[PriceSnapshot],
        backoff: BackoffPolicy,
    ) -> None:
        """A non-429 error serves cache but does not back off."""
        await feed.run_cycle()
        clock.advance(121)
        price_source.script(unavailable())

        await feed.run_cycle()

        assert feed.next_delay() == backoff.base_interval
        assert feed.state.consecutive_failures == 1
        assert published[-1].cached is True
        assert feed.quote("bitcoin") is not None

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_contained(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
    ) -> None:
        """Arbitrary exceptions from the source never escape a cycle."""
        price_source.script(RuntimeError("boom"))

        await feed.run_cycle()

        assert feed.state.consecutive_failures == 1
        assert feed.snapshot().prices == {}

    @pytest.mark.asyncio
    async def test_empty_response_is_a_failure(
        self,
        feed: PriceFeed,
        price_source: MockPriceSource,
        published: list[PriceSnapshot],
    ) -> None:
        """A payload with no usable quotes does not wipe the table."""
        price_source.script({"bitcoin": {"usd": None}})

        await feed.run_cycle()

        assert published == []
        assert feed.state.consecutive_failures == 1


class TestBudgetExhaustion:
    """Tests for the local call budget."""

    @pytest.mark.asyncio
    async def test_exhausted_budget_acts_as_rate_limit(
        self,
        event_bus: EventBus,
        price_source: MockPriceSource,
        clock: ManualClock,
        published: list[PriceSnapshot],
    ) -> None:
        """No upstream call once the budget is spent; interval escalates."""
        metrics = MetricsCollector()
        feed = PriceFeed(
            source=price_source,
            event_bus=event_bus,
            backoff=BackoffPolicy(base_interval=120.0, max_interval=900.0),
            cache_duration_s=0.0,
            call_budget=CallBudget(capacity=1, clock=clock),
            metrics=metrics,
            clock=clock,
        )

        await feed.run_cycle()
        await feed.run_cycle()

        assert price_source.call_count == 1
        assert feed.next_delay() == 240.0
        assert metrics.get_counter("feed_budget_exhausted") == 1
        assert published[-1].cached is True

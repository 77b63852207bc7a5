"""
Pytest configuration and shared fixtures.

Provides reusable test fixtures for all test modules.
"""

import random

import pytest
import pytest_asyncio

from tests.mocks import ManualClock, MockPriceSource
from tradesim.auth.security import PasswordHasher, TokenService
from tradesim.config.settings import Settings
from tradesim.core.event_bus import EventBus
from tradesim.core.types import Account
from tradesim.feed.acquirer import PriceFeed
from tradesim.feed.rate_limiter import BackoffPolicy, CallBudget
from tradesim.storage.memory import InMemoryRepository
from tradesim.telemetry.metrics import MetricsCollector
from tradesim.trading.service import TradingService


TEST_SECRET = "test-secret-that-is-long-enough-for-hs256"
TEST_PASSWORD = "hunter2-but-longer"


# =============================================================================
# Infrastructure Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Manually advanced millisecond clock."""
    return ManualClock()


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus."""
    return EventBus()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Fresh metrics collector."""
    return MetricsCollector()


@pytest.fixture
def repository() -> InMemoryRepository:
    """Empty in-memory repository."""
    return InMemoryRepository()


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def settings() -> Settings:
    """Settings that do not depend on the environment."""
    return Settings(
        jwt_secret=TEST_SECRET,
        password_hash_iterations=1_000,
        _env_file=None,  # type: ignore[call-arg]
    )


# =============================================================================
# Feed Fixtures
# =============================================================================


@pytest.fixture
def price_source() -> MockPriceSource:
    """Scripted price source returning bitcoin and ethereum."""
    return MockPriceSource()


@pytest.fixture
def backoff() -> BackoffPolicy:
    """Production-shaped backoff: 120s base, 900s ceiling."""
    return BackoffPolicy(base_interval=120.0, max_interval=900.0, max_exponent=6)


@pytest.fixture
def feed(
    price_source: MockPriceSource,
    event_bus: EventBus,
    backoff: BackoffPolicy,
    clock: ManualClock,
    metrics: MetricsCollector,
) -> PriceFeed:
    """Price feed wired to the mock source and manual clock."""
    return PriceFeed(
        source=price_source,
        event_bus=event_bus,
        backoff=backoff,
        cache_duration_s=120.0,
        call_budget=CallBudget(capacity=30, clock=clock),
        metrics=metrics,
        clock=clock,
    )


# =============================================================================
# Account Fixtures
# =============================================================================


@pytest.fixture
def hasher() -> PasswordHasher:
    """Cheap hasher so tests stay fast."""
    return PasswordHasher(iterations=1_000)


@pytest.fixture
def tokens() -> TokenService:
    """Token service with the test secret."""
    return TokenService(secret=TEST_SECRET)


@pytest.fixture
def service(
    repository: InMemoryRepository,
    tokens: TokenService,
    hasher: PasswordHasher,
    clock: ManualClock,
) -> TradingService:
    """Trading service over the in-memory repository."""
    return TradingService(
        repository=repository,
        tokens=tokens,
        hasher=hasher,
        clock=clock,
    )


@pytest_asyncio.fixture
async def account(service: TradingService) -> Account:
    """Registered account with the default 1000 balance."""
    _, account = await service.register("alice", "alice@example.com", TEST_PASSWORD)
    return account

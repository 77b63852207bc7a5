"""Mock implementations for testing."""

from tests.mocks.clock import FakeSleep, ManualClock
from tests.mocks.price_source import MockPriceSource, rate_limited, unavailable
from tests.mocks.websocket import MockClientSocket


__all__ = [
    "FakeSleep",
    "ManualClock",
    "MockClientSocket",
    "MockPriceSource",
    "rate_limited",
    "unavailable",
]

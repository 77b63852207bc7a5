"""
Rate limiting for the price source.

Two pieces:
- CallBudget: token bucket that caps upstream calls per minute so the
  feed never spends more than the free-tier allowance.
- BackoffPolicy: exponential interval growth after rate-limit rejections,
  capped both in exponent and in absolute delay.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from tradesim.utils.time import get_timestamp_ms


@dataclass
class CallBudget:
    """
    Token bucket implementation for upstream call budgeting.

    Tokens refill continuously at ``capacity`` per ``period_ms`` up to
    ``capacity``. Each upstream call consumes one token.
    """

    capacity: int
    period_ms: int = 60_000
    clock: Callable[[], int] = field(default=get_timestamp_ms, repr=False)
    tokens: float = field(init=False)
    last_refill: int = field(init=False)  # milliseconds

    def __post_init__(self) -> None:
        """Initialize with full bucket."""
        if self.capacity <= 0:
            raise ValueError("capacity must be positive")
        self.tokens = float(self.capacity)
        self.last_refill = self.clock()

    @property
    def refill_rate(self) -> float:
        """Tokens per millisecond."""
        return self.capacity / self.period_ms

    def _refill(self) -> None:
        """Add tokens based on elapsed time."""
        now = self.clock()
        elapsed_ms = max(0, now - self.last_refill)

        self.tokens = min(
            float(self.capacity),
            self.tokens + (elapsed_ms * self.refill_rate),
        )
        self.last_refill = now

    def try_acquire(self, tokens: int = 1) -> bool:
        """
        Try to take tokens without waiting.

        Args:
            tokens: Number of tokens to acquire.

        Returns:
            True if tokens were acquired, False if the budget is spent.
        """
        self._refill()

        if self.tokens >= tokens:
            self.tokens -= tokens
            return True
        return False

    @property
    def available(self) -> float:
        """Approximate number of calls left in the current window."""
        self._refill()
        return self.tokens


@dataclass(slots=True, frozen=True)
class BackoffPolicy:
    """
    Exponential backoff with a cap.

    interval(n) = min(max_interval, base_interval * multiplier ** min(n, max_exponent))

    ``n`` is the consecutive failure count. n = 0 gives the base interval,
    and the result never decreases as n grows.
    """

    base_interval: float
    max_interval: float
    max_exponent: int = 6
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.base_interval <= 0:
            raise ValueError("base_interval must be positive")
        if self.max_interval < self.base_interval:
            raise ValueError("max_interval must be >= base_interval")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1")

    def interval_for(self, failures: int) -> float:
        """
        Interval to wait after ``failures`` consecutive failures.

        Args:
            failures: Consecutive failure count.

        Returns:
            Delay in seconds.
        """
        if failures <= 0:
            return self.base_interval

        exponent = min(failures, self.max_exponent)
        return min(self.max_interval, self.base_interval * self.multiplier**exponent)

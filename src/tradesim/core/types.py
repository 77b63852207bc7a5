"""
Type definitions for the trading platform.

This module contains the dataclasses and enums shared across the feed,
the simulator, the repository and the API. Market data types are frozen;
account and position records are mutable because the repository hands
out private copies for read-modify-write cycles.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tradesim.utils.time import format_timestamp_ms, get_timestamp_ms


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def _iso(timestamp_ms: int | None) -> str | None:
    return format_timestamp_ms(timestamp_ms) if timestamp_ms is not None else None


# =============================================================================
# Enums
# =============================================================================


class TradeSide(str, Enum):
    """Trade side enumeration."""

    BUY = "buy"
    SELL = "sell"


class ArbitrageStatus(str, Enum):
    """Arbitrage position lifecycle."""

    ACTIVE = "active"
    COMPLETED = "completed"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class PriceQuote:
    """
    Snapshot of one asset's price and 24h statistics.

    Serialized in the price source's own field names so clients can
    consume it unchanged.
    """

    asset: str
    usd: float
    usd_24h_change: float = 0.0
    usd_24h_vol: float = 0.0
    usd_market_cap: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "usd": self.usd,
            "usd_24h_change": self.usd_24h_change,
            "usd_24h_vol": self.usd_24h_vol,
            "usd_market_cap": self.usd_market_cap,
        }


@dataclass(slots=True, frozen=True)
class PriceHistoryPoint:
    """Single chart sample."""

    timestamp: int  # epoch milliseconds
    price: float
    volume: float = 0.0

    def to_dict(self) -> dict[str, float | int]:
        return {"timestamp": self.timestamp, "price": self.price, "volume": self.volume}


@dataclass(slots=True)
class FetchState:
    """
    Mutable bookkeeping for the price feed loop.

    Owned and mutated by a single PriceFeed instance.
    """

    interval_s: float
    last_fetch_success: bool = True
    last_success_ms: int | None = None
    consecutive_failures: int = 0
    rate_limited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "intervalSeconds": self.interval_s,
            "lastFetchSuccess": self.last_fetch_success,
            "lastSuccessfulFetch": self.last_success_ms,
            "consecutiveFailures": self.consecutive_failures,
            "rateLimited": self.rate_limited,
        }


@dataclass(slots=True)
class PriceSnapshot:
    """What the feed publishes: quotes plus the full history map."""

    prices: dict[str, PriceQuote]
    history: dict[str, list[PriceHistoryPoint]]
    cached: bool = False
    last_updated: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form of a priceUpdate event."""
        payload: dict[str, Any] = {
            "prices": {asset: q.to_dict() for asset, q in self.prices.items()},
            "history": {
                asset: [p.to_dict() for p in points] for asset, points in self.history.items()
            },
        }
        if self.cached:
            payload["cached"] = True
            payload["lastUpdated"] = self.last_updated
        return payload


# =============================================================================
# Account Types
# =============================================================================


@dataclass
class Account:
    """Paper trading account."""

    username: str
    email: str
    password_hash: str
    balance: float
    total_profit: float = 0.0
    total_trades: int = 0
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=get_timestamp_ms)

    def public_view(self) -> dict[str, Any]:
        """Fields returned on login and token checks."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "balance": self.balance,
        }

    def to_dict(self) -> dict[str, Any]:
        """Full profile without the password hash."""
        return {
            **self.public_view(),
            "totalProfit": self.total_profit,
            "totalTrades": self.total_trades,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class Trade:
    """Executed spot trade."""

    user_id: str
    symbol: str
    type: TradeSide
    amount: float
    price: float
    total: float
    profit: float = 0.0
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=get_timestamp_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "symbol": self.symbol,
            "type": self.type.value,
            "amount": self.amount,
            "price": self.price,
            "total": self.total,
            "profit": self.profit,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class Holding:
    """Portfolio position in one asset."""

    user_id: str
    symbol: str
    amount: float
    avg_price: float
    id: str = field(default_factory=new_id)
    updated_at: int = field(default_factory=get_timestamp_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "symbol": self.symbol,
            "amount": self.amount,
            "avgPrice": self.avg_price,
            "updatedAt": _iso(self.updated_at),
        }


# =============================================================================
# Simulated Position Types
# =============================================================================


@dataclass
class BotTrade:
    """Synthetic trade logged by a bot."""

    type: TradeSide
    amount: float
    price: float
    timestamp: int = field(default_factory=get_timestamp_ms)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "amount": self.amount,
            "price": self.price,
            "timestamp": _iso(self.timestamp),
        }


@dataclass
class Bot:
    """Simulated automated trading position."""

    user_id: str
    name: str
    strategy: str
    investment: float
    current_value: float
    profit: float = 0.0
    is_active: bool = True
    trades: list[BotTrade] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=get_timestamp_ms)
    stopped_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "strategy": self.strategy,
            "investment": self.investment,
            "currentValue": self.current_value,
            "profit": self.profit,
            "isActive": self.is_active,
            "trades": [t.to_dict() for t in self.trades],
            "createdAt": _iso(self.created_at),
            "stoppedAt": _iso(self.stopped_at),
        }


@dataclass
class Arbitrage:
    """Simulated fixed-strategy investment."""

    user_id: str
    strategy: str
    amount: float
    profit: float = 0.0
    status: ArbitrageStatus = ArbitrageStatus.ACTIVE
    id: str = field(default_factory=new_id)
    created_at: int = field(default_factory=get_timestamp_ms)
    completed_at: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status == ArbitrageStatus.ACTIVE

    @property
    def return_pct(self) -> float:
        """Realized return as a percentage of the invested amount."""
        return self.profit / self.amount * 100 if self.amount > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "strategy": self.strategy,
            "amount": self.amount,
            "profit": self.profit,
            "status": self.status.value,
            "createdAt": _iso(self.created_at),
            "completedAt": _iso(self.completed_at),
        }

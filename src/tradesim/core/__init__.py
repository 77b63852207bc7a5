"""Core module containing the event bus, scheduler and type definitions."""

from tradesim.core.event_bus import Event, EventBus, EventType
from tradesim.core.scheduler import RepeatingTask
from tradesim.core.types import (
    Account,
    Arbitrage,
    ArbitrageStatus,
    Bot,
    BotTrade,
    FetchState,
    Holding,
    PriceHistoryPoint,
    PriceQuote,
    PriceSnapshot,
    Trade,
    TradeSide,
)


__all__ = [
    "Account",
    "Arbitrage",
    "ArbitrageStatus",
    "Bot",
    "BotTrade",
    "Event",
    "EventBus",
    "EventType",
    "FetchState",
    "Holding",
    "PriceHistoryPoint",
    "PriceQuote",
    "PriceSnapshot",
    "RepeatingTask",
    "Trade",
    "TradeSide",
]

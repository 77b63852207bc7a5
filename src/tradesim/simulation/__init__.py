"""Position simulation: strategy catalogs, per-tick updates and settlement."""

from tradesim.simulation.settlement import settle_arbitrage, settle_bot
from tradesim.simulation.simulator import PositionSimulator, SimulatorStats
from tradesim.simulation.strategies import (
    ARBITRAGE_STRATEGIES,
    BOT_STRATEGIES,
    ArbitrageStrategy,
    BotStrategy,
    get_arbitrage_strategy,
    get_bot_strategy,
)


__all__ = [
    "ARBITRAGE_STRATEGIES",
    "BOT_STRATEGIES",
    "ArbitrageStrategy",
    "BotStrategy",
    "PositionSimulator",
    "SimulatorStats",
    "get_arbitrage_strategy",
    "get_bot_strategy",
    "settle_arbitrage",
    "settle_bot",
]

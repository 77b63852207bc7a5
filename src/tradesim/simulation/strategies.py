"""
Strategy catalogs for simulated positions.

Bots are keyed by a short strategy id; arbitrage positions by their
display name, which is what clients send and what gets stored.
"""

from dataclasses import dataclass
from typing import Any, Final


@dataclass(slots=True, frozen=True)
class BotStrategy:
    """Bot strategy descriptor."""

    key: str
    name: str
    description: str
    risk_level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.key,
            "name": self.name,
            "description": self.description,
            "riskLevel": self.risk_level,
        }


@dataclass(slots=True, frozen=True)
class ArbitrageStrategy:
    """
    Arbitrage strategy descriptor.

    A position auto-completes once its return reaches ``target_pct``.
    """

    name: str
    description: str
    risk_level: str
    target_pct: float
    min_investment: float

    def target_reached(self, return_pct: float) -> bool:
        return return_pct >= self.target_pct

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "riskLevel": self.risk_level,
            "targetPct": self.target_pct,
            "minInvestment": self.min_investment,
        }


BOT_STRATEGIES: Final[dict[str, BotStrategy]] = {
    s.key: s
    for s in (
        BotStrategy(
            key="scalping",
            name="Ethereum Scalping",
            description="High-frequency trading on small ETH price movements",
            risk_level="Medium",
        ),
        BotStrategy(
            key="momentum",
            name="ETH Momentum Trading",
            description="Follow strong Ethereum price trends and momentum",
            risk_level="High",
        ),
        BotStrategy(
            key="mean_reversion",
            name="ETH Mean Reversion",
            description="Trade on Ethereum price reversals to the mean",
            risk_level="Low",
        ),
    )
}

ARBITRAGE_STRATEGIES: Final[dict[str, ArbitrageStrategy]] = {
    s.name: s
    for s in (
        ArbitrageStrategy(
            name="Spatial Arbitrage",
            description="Exploit price differences between exchanges",
            risk_level="Medium",
            target_pct=15.0,
            min_investment=100.0,
        ),
        ArbitrageStrategy(
            name="Statistical Arbitrage",
            description="Use mean-reversion and correlations",
            risk_level="Low",
            target_pct=10.0,
            min_investment=50.0,
        ),
        ArbitrageStrategy(
            name="Pattern-Based Arbitrage",
            description="Recognize patterns and simulate trades",
            risk_level="High",
            target_pct=20.0,
            min_investment=200.0,
        ),
    )
}


def get_bot_strategy(key: str) -> BotStrategy | None:
    """Look up a bot strategy by id."""
    return BOT_STRATEGIES.get(key)


def get_arbitrage_strategy(name: str) -> ArbitrageStrategy | None:
    """Look up an arbitrage strategy by display name."""
    return ARBITRAGE_STRATEGIES.get(name)

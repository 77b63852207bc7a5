"""Owner-facing trading operations and their rejections."""

from tradesim.trading.errors import (
    ActionRejectedError,
    BelowMinimumInvestmentError,
    DuplicateActivePositionError,
    InsufficientBalanceError,
    InsufficientHoldingsError,
    InvalidCredentialsError,
    PositionNotActiveError,
    PositionNotFoundError,
    UnknownStrategyError,
    UserExistsError,
    UserNotFoundError,
)
from tradesim.trading.service import AccountProfile, TradingService


__all__ = [
    "AccountProfile",
    "ActionRejectedError",
    "BelowMinimumInvestmentError",
    "DuplicateActivePositionError",
    "InsufficientBalanceError",
    "InsufficientHoldingsError",
    "InvalidCredentialsError",
    "PositionNotActiveError",
    "PositionNotFoundError",
    "TradingService",
    "UnknownStrategyError",
    "UserExistsError",
    "UserNotFoundError",
]

"""Configuration module for the trading platform."""

from tradesim.config.constants import (
    COINGECKO_API_URL,
    PRICE_HISTORY_LIMIT,
    SUPPORTED_ASSETS,
)
from tradesim.config.settings import Settings, get_settings


__all__ = [
    "COINGECKO_API_URL",
    "PRICE_HISTORY_LIMIT",
    "SUPPORTED_ASSETS",
    "Settings",
    "get_settings",
]

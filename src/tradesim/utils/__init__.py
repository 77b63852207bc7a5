"""Utility functions for the trading platform."""

from tradesim.utils.buffers import KeyedHistory, RollingWindow
from tradesim.utils.time import (
    format_timestamp_ms,
    get_timestamp_ms,
    get_timestamp_us,
    ms_to_datetime,
)


__all__ = [
    "KeyedHistory",
    "RollingWindow",
    "format_timestamp_ms",
    "get_timestamp_ms",
    "get_timestamp_us",
    "ms_to_datetime",
]

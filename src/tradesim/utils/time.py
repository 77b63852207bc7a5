"""
Time utilities.

Millisecond epoch timestamps are the wire format for every timestamp the
platform publishes, matching what browser clients expect from Date.now().
"""

import time
from datetime import UTC, datetime


def get_timestamp_ms() -> int:
    """
    Get current timestamp in milliseconds.

    Returns:
        Current Unix timestamp in milliseconds.
    """
    return time.time_ns() // 1_000_000


def get_timestamp_us() -> int:
    """
    Get current timestamp in microseconds.

    Uses time.time_ns() for maximum precision, then converts to microseconds.

    Returns:
        Current Unix timestamp in microseconds.
    """
    return time.time_ns() // 1000


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """
    Convert a millisecond timestamp to an aware UTC datetime.

    Args:
        timestamp_ms: Timestamp in milliseconds.

    Returns:
        Timezone-aware datetime.
    """
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC)


def format_timestamp_ms(timestamp_ms: int) -> str:
    """
    Format a millisecond timestamp as ISO-8601 for API responses.

    Example:
        >>> format_timestamp_ms(1704067200123)
        '2024-01-01T00:00:00.123000+00:00'
    """
    return ms_to_datetime(timestamp_ms).isoformat()


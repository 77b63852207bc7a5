"""Telemetry module for logging and metrics."""

from tradesim.telemetry.logger import AsyncLogger, setup_logging
from tradesim.telemetry.metrics import MetricsCollector


__all__ = [
    "AsyncLogger",
    "MetricsCollector",
    "setup_logging",
]

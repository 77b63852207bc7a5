"""HTTP and WebSocket interface."""

from tradesim.api.broadcast import ConnectionManager
from tradesim.api.server import Platform, build_platform, create_app


__all__ = [
    "ConnectionManager",
    "Platform",
    "build_platform",
    "create_app",
]

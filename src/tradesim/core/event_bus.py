"""
Internal event bus.

Connects the price feed and the position simulator to the WebSocket hub
without either side importing the other. Handlers may be plain callables
or coroutine functions; a handler that raises is logged and skipped.
"""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Generic, TypeVar

from tradesim.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)


class EventType(Enum):
    """System event types."""

    # Feed: payload is a PriceSnapshot
    PRICE_UPDATE = auto()

    # Simulator: payload is the completed Arbitrage
    ARBITRAGE_COMPLETED = auto()


T = TypeVar("T")


@dataclass
class Event(Generic[T]):
    """Generic event with typed payload."""

    type: EventType
    payload: T
    timestamp_us: int = 0
    source: str = ""

    def __post_init__(self) -> None:
        if not self.timestamp_us:
            self.timestamp_us = get_timestamp_us()


EventHandler = Callable[[Event[Any]], Awaitable[None]]
SyncEventHandler = Callable[[Event[Any]], None]


@dataclass(slots=True)
class _Subscription:
    handler: EventHandler | SyncEventHandler
    priority: int
    is_async: bool
    failures: int = field(default=0)


class EventBus:
    """
    In-process publish/subscribe.

    Delivery order for one event: all sync handlers, then all async
    handlers, each group by descending priority and then subscription
    order. Async handlers are awaited one after another.
    """

    def __init__(self) -> None:
        self._subscriptions: dict[EventType, list[_Subscription]] = defaultdict(list)
        self._failed_deliveries = 0

    def _add(self, event_type: EventType, subscription: _Subscription) -> None:
        subscriptions = self._subscriptions[event_type]
        subscriptions.append(subscription)
        # Stable sort keeps subscription order within a priority
        subscriptions.sort(key=lambda s: (not s.is_async, s.priority), reverse=True)

    def subscribe(
        self,
        event_type: EventType,
        handler: EventHandler,
        priority: int = 0,
    ) -> None:
        """
        Subscribe a coroutine handler.

        Args:
            event_type: Event type to handle.
            handler: Coroutine function taking the event.
            priority: Higher runs earlier.
        """
        self._add(event_type, _Subscription(handler, priority, is_async=True))

    def subscribe_sync(
        self,
        event_type: EventType,
        handler: SyncEventHandler,
        priority: int = 0,
    ) -> None:
        """Subscribe a plain callable; runs before the coroutine handlers."""
        self._add(event_type, _Subscription(handler, priority, is_async=False))

    def unsubscribe(
        self,
        event_type: EventType,
        handler: EventHandler | SyncEventHandler,
    ) -> bool:
        """
        Remove the first subscription of ``handler``.

        Returns:
            True if a subscription was removed.
        """
        subscriptions = self._subscriptions[event_type]
        for i, subscription in enumerate(subscriptions):
            # Bound methods compare equal but are new objects on each access
            if subscription.handler == handler:
                del subscriptions[i]
                return True
        return False

    async def publish(self, event: Event[Any]) -> int:
        """
        Deliver an event to every subscriber of its type.

        Returns:
            Number of handlers that raised.
        """
        failed = 0
        for subscription in list(self._subscriptions[event.type]):
            try:
                if subscription.is_async:
                    await subscription.handler(event)  # type: ignore[misc]
                else:
                    subscription.handler(event)
            except Exception as e:
                failed += 1
                subscription.failures += 1
                logger.error(f"Handler {subscription.handler!r} failed on {event.type.name}: {e}")

        self._failed_deliveries += failed
        return failed

    def handler_count(self, event_type: EventType) -> int:
        """Number of subscriptions for an event type."""
        return len(self._subscriptions[event_type])

    @property
    def failed_deliveries(self) -> int:
        """Handler failures across all publications."""
        return self._failed_deliveries

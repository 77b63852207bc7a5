"""
WebSocket fan-out.

Tracks connected sockets and pushes feed publications to all of them.
A socket that fails a send is dropped without affecting the others.
Sockets opened with a valid session token also receive completion
notices for their own arbitrage positions.
"""

import logging
from typing import Any

import orjson
from fastapi import WebSocket

from tradesim.config.constants import PRICE_UPDATE_EVENT
from tradesim.core.event_bus import Event, EventBus, EventType
from tradesim.core.types import Arbitrage, PriceSnapshot


logger = logging.getLogger(__name__)

ARBITRAGE_COMPLETED_EVENT = "arbitrageCompleted"


def encode_message(event_type: str, data: dict[str, Any]) -> str:
    """Wire frame: ``{"type": ..., "data": ...}``."""
    return orjson.dumps({"type": event_type, "data": data}).decode()


class ConnectionManager:
    """Registry of live sockets, keyed to their owner when authenticated."""

    def __init__(self) -> None:
        self._clients: dict[WebSocket, str | None] = {}

    def attach(self, event_bus: EventBus) -> None:
        """Subscribe to the events this hub relays."""
        event_bus.subscribe(EventType.PRICE_UPDATE, self.on_price_update)
        event_bus.subscribe(EventType.ARBITRAGE_COMPLETED, self.on_arbitrage_completed)

    def detach(self, event_bus: EventBus) -> None:
        event_bus.unsubscribe(EventType.PRICE_UPDATE, self.on_price_update)
        event_bus.unsubscribe(EventType.ARBITRAGE_COMPLETED, self.on_arbitrage_completed)

    async def connect(
        self,
        websocket: WebSocket,
        snapshot: PriceSnapshot,
        user_id: str | None = None,
    ) -> None:
        """
        Accept a socket, send it the current snapshot and register it.

        Args:
            websocket: Incoming connection.
            snapshot: Current quotes and history.
            user_id: Owner when the socket presented a valid token.
        """
        await websocket.accept()
        # Registered only once the snapshot went out
        await websocket.send_text(encode_message(PRICE_UPDATE_EVENT, snapshot.to_payload()))
        self._clients[websocket] = user_id
        logger.info(f"WebSocket connected ({len(self._clients)} clients)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self._clients:
            del self._clients[websocket]
            logger.info(f"WebSocket disconnected ({len(self._clients)} clients)")

    async def broadcast(self, event_type: str, data: dict[str, Any]) -> None:
        """Send to every client, dropping the ones that fail."""
        await self._send(list(self._clients), encode_message(event_type, data))

    async def send_to_user(self, user_id: str, event_type: str, data: dict[str, Any]) -> None:
        """Send to the sockets opened by one account."""
        targets = [ws for ws, owner in self._clients.items() if owner == user_id]
        await self._send(targets, encode_message(event_type, data))

    async def _send(self, targets: list[WebSocket], message: str) -> None:
        disconnected = []
        for client in targets:
            try:
                await client.send_text(message)
            except Exception as e:
                logger.debug(f"Dropping WebSocket after failed send: {e}")
                disconnected.append(client)

        for client in disconnected:
            self._clients.pop(client, None)

    async def on_price_update(self, event: Event[PriceSnapshot]) -> None:
        await self.broadcast(PRICE_UPDATE_EVENT, event.payload.to_payload())

    async def on_arbitrage_completed(self, event: Event[Arbitrage]) -> None:
        arbitrage = event.payload
        await self.send_to_user(arbitrage.user_id, ARBITRAGE_COMPLETED_EVENT, arbitrage.to_dict())

    @property
    def client_count(self) -> int:
        return len(self._clients)

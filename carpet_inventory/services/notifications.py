from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Set

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.websockets import WebSocket, WebSocketState

from carpet_inventory.schemas.realtime import StockEvent, WsEnvelope

logger = logging.getLogger(__name__)

INVENTORY_TOPIC = "inventory"

_PENDING_KEY = "pending_stock_events"
_LOW_STATUSES = {"low-stock", "out-of-stock"}


class StockEventNotifier:
    """
    In-process pub-sub for stock notifications over WebSocket topics.

    Events are queued on the database session while a transaction is open and
    only delivered once it commits, so subscribers never hear about stock
    changes that were rolled back. Delivery is fire-and-forget.
    """

    def __init__(self) -> None:
        self._topics: Dict[str, Set[WebSocket]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _topic_lock(self, topic: str) -> asyncio.Lock:
        if topic not in self._locks:
            self._locks[topic] = asyncio.Lock()
        return self._locks[topic]

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """Add an accepted websocket to the topic subscribers."""
        async with self._topic_lock(topic):
            self._topics.setdefault(topic, set()).add(websocket)
            logger.info("WebSocket connected to topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        """Remove websocket from topic subscribers."""
        if topic not in self._topics:
            return
        async with self._topic_lock(topic):
            self._topics[topic].discard(websocket)
            logger.info("WebSocket disconnected from topic=%s; subscribers=%d", topic, len(self._topics[topic]))

    def subscriber_count(self, topic: str = INVENTORY_TOPIC) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict) -> int:
        """
        Send a dict message to every subscriber of the topic.

        Dead sockets are dropped. Returns the number of successful sends.
        """
        if topic not in self._topics:
            return 0
        sent = 0
        async with self._topic_lock(topic):
            to_drop: list[WebSocket] = []
            for ws in list(self._topics[topic]):
                if ws.application_state == WebSocketState.DISCONNECTED or ws.client_state == WebSocketState.DISCONNECTED:
                    to_drop.append(ws)
                    continue
                try:
                    await ws.send_json(message)
                    sent += 1
                except Exception:
                    logger.exception("Failed to send message to websocket; scheduling drop")
                    to_drop.append(ws)
            for ws in to_drop:
                self._topics[topic].discard(ws)
        return sent

    # PUBLIC_INTERFACE
    def queue(self, session: AsyncSession, event: StockEvent) -> None:
        """Hold an event on the session until its transaction commits."""
        session.info.setdefault(_PENDING_KEY, []).append(event)

    # PUBLIC_INTERFACE
    def discard_pending(self, session: AsyncSession) -> None:
        """Forget events queued on a session whose transaction rolled back."""
        session.info.pop(_PENDING_KEY, None)

    # PUBLIC_INTERFACE
    async def publish_pending(self, session: AsyncSession) -> None:
        """Deliver events queued on a just-committed session."""
        events: List[StockEvent] = session.info.pop(_PENDING_KEY, [])
        for event in events:
            try:
                env = WsEnvelope(type=event.event, payload=event.model_dump())
                await self.broadcast(INVENTORY_TOPIC, env.model_dump(mode="json"))
            except Exception:
                logger.exception("Failed to publish %s for %s", event.event, event.entity_id)


def is_low(status: str) -> bool:
    return status in _LOW_STATUSES


# Singleton instance
stock_notifier = StockEventNotifier()

"""Order notifications delivered over per-user WebSocket connections."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from vendorhub.schemas.ws import OrderStatusData, OrderStatusEvent

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages one WebSocket connection per user.

    Structure: {user_id: WebSocket}
    """

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        """Accept connection, replacing any previous one for the user.

        Args:
            user_id: Authenticated user id
            websocket: WebSocket connection
        """
        await websocket.accept()

        async with self._lock:
            old_ws = self.active_connections.get(user_id)
            self.active_connections[user_id] = websocket

        if old_ws is not None and old_ws.client_state == WebSocketState.CONNECTED:
            try:
                await old_ws.close()
            except RuntimeError as e:
                logger.debug(f"Previous socket for user {user_id} already closed: {e}")

        logger.info(
            f"WebSocket connected: user={user_id}, "
            f"connections={len(self.active_connections)}"
        )

    async def disconnect(self, user_id: str, websocket: WebSocket | None = None) -> None:
        """Remove a user's connection.

        When ``websocket`` is given, only that exact socket is removed so a
        newer connection for the same user survives.
        """
        async with self._lock:
            current = self.active_connections.get(user_id)
            if current is None:
                return
            if websocket is not None and current is not websocket:
                return
            del self.active_connections[user_id]
            logger.info(f"WebSocket disconnected: user={user_id}")

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> bool:
        """Send message to a specific user.

        Returns:
            True if message was sent, False if user not connected
        """
        websocket = self.active_connections.get(user_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to user {user_id}: {e}")
            await self.disconnect(user_id, websocket)
            return False

    def is_connected(self, user_id: str) -> bool:
        return user_id in self.active_connections


# Global singleton instance
manager = ConnectionManager()


class OrderNotifier:
    """Fire-and-forget delivery of order status events.

    ``dispatch`` schedules delivery on the running loop and returns at once.
    Delivery failures are logged and never reach the caller, so a broken
    socket cannot fail an order operation that already committed.
    """

    def __init__(self, connections: ConnectionManager | None = None):
        self.connections = connections or manager
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, event_type: str, order_id: str, status: str, recipient_id: str) -> None:
        """Schedule an order event for a recipient.

        Args:
            event_type: order_cancelled, order_status_changed, order_delivered
                or order_refunded
            order_id: Order id string
            status: Order status after the change
            recipient_id: User to notify
        """
        event = OrderStatusEvent(
            event=event_type,
            data=OrderStatusData(
                order_id=str(order_id),
                status=str(status),
                timestamp=datetime.now(timezone.utc),
            ),
        )
        try:
            task = asyncio.get_running_loop().create_task(
                self._deliver(recipient_id, event.model_dump(mode="json"))
            )
        except RuntimeError:
            logger.warning(f"No running loop, dropping {event_type} for user {recipient_id}")
            return

        # Keep a strong reference until the task finishes
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, recipient_id: str, message: dict[str, Any]) -> None:
        try:
            sent = await self.connections.send_to_user(recipient_id, message)
            if not sent:
                logger.debug(f"User {recipient_id} not connected, {message['event']} not delivered")
        except Exception as e:
            logger.error(f"Notification delivery failed for user {recipient_id}: {e}")

    async def drain(self) -> None:
        """Wait for all scheduled deliveries. Used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


notifier = OrderNotifier()

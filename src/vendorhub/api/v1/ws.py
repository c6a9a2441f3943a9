"""WebSocket endpoint for real-time order notifications."""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from vendorhub.core.security import decode_access_token
from vendorhub.services.notification_service import manager

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/notifications")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token"),
):
    """WebSocket endpoint for order status notifications.

    Connection URL: ws://host/ws/notifications?token={jwt_token}

    Events pushed to client:
    - order_cancelled: A counterparty cancelled an order
    - order_status_changed: An order moved to processing
    - order_delivered: Delivery was confirmed
    - order_refunded: An order was refunded

    Client can send:
    - ping: Server responds with pong (heartbeat)
    """
    payload = decode_access_token(token)
    if payload is None:
        await websocket.close(code=4001, reason="Invalid token")
        return

    user_id = payload.get("sub")
    if user_id is None:
        await websocket.close(code=4001, reason="Invalid token payload")
        return

    await manager.connect(user_id, websocket)

    try:
        while True:
            data = await websocket.receive_text()

            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: user={user_id}, error={e}")
    finally:
        await manager.disconnect(user_id, websocket)

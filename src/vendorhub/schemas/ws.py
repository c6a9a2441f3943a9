"""WebSocket event schemas for real-time notifications."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class OrderStatusData(BaseModel):
    """Data payload for an order status event."""

    order_id: str
    status: str
    timestamp: datetime


class OrderStatusEvent(BaseModel):
    """Order lifecycle event pushed to the counterparty of an order."""

    event: Literal["order_cancelled", "order_status_changed", "order_delivered", "order_refunded"]
    data: OrderStatusData


# Type alias for all WebSocket events
WSEvent = OrderStatusEvent

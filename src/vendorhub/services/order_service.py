"""Order service: stock-safe order placement, lifecycle and escrow payment.

Stock is only ever changed here, inside atomic units that row-lock the
affected products in primary-key order, so for every product

    initial stock == available + quantity held by live orders

where live means not cancelled.
"""

import logging
import uuid
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.exceptions import (
    InsufficientStock,
    InvalidRequest,
    InvalidState,
    NotFound,
    Unauthorized,
)
from vendorhub.core.transaction import atomic, for_update
from vendorhub.middleware.metrics import record_order_event
from vendorhub.models.base import utc_now
from vendorhub.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from vendorhub.models.product import Product
from vendorhub.schemas.order import OrderItemCreate
from vendorhub.services.notification_service import OrderNotifier, notifier as default_notifier
from vendorhub.services.wallet_service import WalletService, to_money

logger = logging.getLogger(__name__)

# Supplier-driven transitions; paid orders settle via confirm_delivery/refund_order
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
}


class OrderService:
    """Service class for order operations."""

    def __init__(
        self,
        db: AsyncSession,
        wallet_service: WalletService | None = None,
        notifier: OrderNotifier | None = None,
    ):
        self.db = db
        self.wallet_service = wallet_service or WalletService(db)
        self.notifier = notifier or default_notifier

    # ------------------------------------------------------------------
    # Locking helpers
    # ------------------------------------------------------------------

    async def _lock_order(self, order_id: UUID) -> Order:
        result = await self.db.execute(
            for_update(select(Order).where(Order.order_id == order_id))
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    async def _lock_products(self, product_ids: Iterable[UUID]) -> dict[UUID, Product]:
        """Row-lock products in primary-key order."""
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            for_update(
                select(Product)
                .where(Product.product_id.in_(ids))
                .order_by(Product.product_id)
            )
        )
        return {p.product_id: p for p in result.scalars().all()}

    async def _restore_stock(self, order: Order) -> None:
        """Return an order's quantities to stock, re-reading current values.

        Products deleted from the catalog since the order was placed are
        skipped.
        """
        products = await self._lock_products(item.product_id for item in order.items)
        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning(
                    f"Product {item.product_id} no longer exists, "
                    f"not restoring {item.quantity} for order {order.order_id}"
                )
                continue
            product.available_quantity = product.available_quantity + item.quantity

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    async def create_order(
        self,
        buyer_id: str,
        items: list[OrderItemCreate],
        group_order_id: UUID | None = None,
    ) -> list[UUID]:
        """Place a cart as one order per supplier, decrementing stock atomically.

        Either every order is written and every product decremented, or
        nothing is.

        Args:
            buyer_id: Buyer placing the cart
            items: Cart lines; a product may appear on several lines
            group_order_id: Source group order, when spawned by a close

        Returns:
            Ids of the created orders, in order of first supplier appearance

        Raises:
            InvalidRequest: Empty cart or a supplier id that disagrees with
                the catalog
            NotFound: A referenced product does not exist
            InvalidState: A referenced product is inactive
            InsufficientStock: Stock is below the total requested for a
                product
        """
        if not items:
            raise InvalidRequest("Order must contain at least one item")

        requested: dict[UUID, int] = {}
        for item in items:
            if item.quantity <= 0:
                raise InvalidRequest(f"Quantity must be positive for product {item.product_id}")
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        async def work() -> list[UUID]:
            products = await self._lock_products(requested)

            for product_id, quantity in requested.items():
                product = products.get(product_id)
                if product is None:
                    raise NotFound(f"Product {product_id} not found")
                if not product.is_active:
                    raise InvalidState(f"Product {product.name} is not available")
                if product.available_quantity < quantity:
                    raise InsufficientStock(
                        product_id=product_id,
                        product_name=product.name,
                        available=product.available_quantity,
                    )

            by_supplier: dict[str, list[OrderItem]] = {}
            for item in items:
                product = products[item.product_id]
                if item.supplier_id is not None and item.supplier_id != product.supplier_id:
                    raise InvalidRequest(
                        f"Product {product.name} is not sold by supplier {item.supplier_id}"
                    )
                unit_price = to_money(item.price if item.price is not None else product.price)
                lines = by_supplier.setdefault(product.supplier_id, [])
                lines.append(
                    OrderItem(
                        position=len(lines),
                        product_id=product.product_id,
                        product_name=item.product_name or product.name,
                        quantity=item.quantity,
                        unit=product.unit,
                        unit_price=unit_price,
                    )
                )

            order_ids: list[UUID] = []
            for supplier_id, lines in by_supplier.items():
                order = Order(
                    order_id=uuid.uuid4(),
                    buyer_id=buyer_id,
                    supplier_id=supplier_id,
                    total_amount=to_money(sum(line.unit_price * line.quantity for line in lines)),
                    status=OrderStatus.PENDING,
                    payment_status=PaymentStatus.PENDING,
                    group_order_id=group_order_id,
                    items=lines,
                )
                self.db.add(order)
                order_ids.append(order.order_id)

            for product_id, quantity in requested.items():
                product = products[product_id]
                product.available_quantity = product.available_quantity - quantity

            await self.db.flush()
            return order_ids

        order_ids = await atomic(self.db, work, name="order.create")
        record_order_event("created", len(order_ids))
        logger.info(
            f"Orders created: buyer={buyer_id}, count={len(order_ids)}, "
            f"group_order={group_order_id}"
        )
        return order_ids

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def cancel_order(self, order_id: UUID, requester_id: str) -> Order:
        """Cancel a pending order on behalf of its buyer and restore stock.

        Raises:
            NotFound: Order does not exist
            Unauthorized: Requester is not the buyer
            InvalidState: Order is not pending
        """

        async def work() -> Order:
            order = await self._lock_order(order_id)
            if order.buyer_id != requester_id:
                raise Unauthorized("Only the buyer can cancel this order")
            if order.status != OrderStatus.PENDING:
                raise InvalidState(f"Cannot cancel order with status: {order.status}")

            order.status = OrderStatus.CANCELLED
            order.payment_status = PaymentStatus.CANCELLED
            order.cancel_reason = "Cancelled by buyer"
            order.cancelled_at = utc_now()
            await self._restore_stock(order)
            await self.db.flush()
            return order

        order = await atomic(self.db, work, name="order.cancel")
        record_order_event("cancelled")
        logger.info(f"Order cancelled: order={order_id}, buyer={requester_id}")
        self.notifier.dispatch("order_cancelled", str(order.order_id), order.status, order.supplier_id)
        return order

    async def update_order_status(
        self, order_id: UUID, supplier_id: str, new_status: str
    ) -> Order:
        """Move an order through its fulfilment states as its supplier.

        Allowed: pending -> processing, processing -> delivered, and
        pending|processing -> cancelled. Unpaid orders cancelled this way
        get their stock restored in the same unit.

        Raises:
            NotFound: Order does not exist
            Unauthorized: Caller is not the order's supplier
            InvalidState: Transition not allowed, or order is paid and must
                settle through confirm_delivery or refund_order
        """

        async def work() -> Order:
            order = await self._lock_order(order_id)
            if order.supplier_id != supplier_id:
                raise Unauthorized("Only the supplier can update this order")
            if new_status not in ALLOWED_TRANSITIONS.get(order.status, set()):
                raise InvalidState(
                    f"Cannot transition order from {order.status} to {new_status}"
                )
            if order.payment_status == PaymentStatus.PAID and new_status in (
                OrderStatus.DELIVERED,
                OrderStatus.CANCELLED,
            ):
                raise InvalidState(
                    "Paid orders must be settled through delivery confirmation or refund"
                )

            now = utc_now()
            order.status = new_status
            if new_status == OrderStatus.DELIVERED:
                order.delivered_at = now
            elif new_status == OrderStatus.CANCELLED:
                order.payment_status = PaymentStatus.CANCELLED
                order.cancel_reason = "Cancelled by supplier"
                order.cancelled_at = now
                await self._restore_stock(order)
            await self.db.flush()
            return order

        order = await atomic(self.db, work, name="order.update_status")
        record_order_event(str(new_status))
        logger.info(f"Order status updated: order={order_id}, status={new_status}")
        event = "order_cancelled" if new_status == OrderStatus.CANCELLED else "order_status_changed"
        self.notifier.dispatch(event, str(order.order_id), order.status, order.buyer_id)
        return order

    async def process_order_payment(self, order_id: UUID, buyer_id: str) -> Order:
        """Pay for an order by holding its total in escrow.

        The escrow hold and the order update commit together. On
        InsufficientFunds neither the order nor the wallet changes.

        Raises:
            NotFound: Order does not exist
            Unauthorized: Caller is not the buyer
            InvalidState: Order is not pending/unpaid
            InsufficientFunds: Buyer balance is below the order total
        """

        async def work() -> Order:
            order = await self._lock_order(order_id)
            if order.buyer_id != buyer_id:
                raise Unauthorized("Only the buyer can pay for this order")
            if order.status != OrderStatus.PENDING or order.payment_status != PaymentStatus.PENDING:
                raise InvalidState(
                    f"Order cannot be paid: status={order.status}, "
                    f"payment_status={order.payment_status}"
                )

            escrow = await self.wallet_service.hold_in_escrow(
                buyer_id,
                str(order.order_id),
                order.total_amount,
                description=f"Payment for order {order.order_id}",
            )
            order.escrow_id = escrow.escrow_id
            order.payment_status = PaymentStatus.PAID
            order.status = OrderStatus.PROCESSING
            order.paid_at = utc_now()
            await self.db.flush()
            return order

        order = await atomic(self.db, work, name="order.pay")
        record_order_event("paid")
        logger.info(f"Order paid: order={order_id}, escrow={order.escrow_id}")
        self.notifier.dispatch("order_status_changed", str(order.order_id), order.status, order.supplier_id)
        return order

    async def confirm_delivery(self, order_id: UUID, supplier_id: str) -> Order:
        """Mark a paid order delivered and release its escrow to the supplier.

        Raises:
            NotFound: Order does not exist
            Unauthorized: Caller is not the supplier
            InvalidState: Order is not processing, not paid, or has no escrow
        """

        async def work() -> Order:
            order = await self._lock_order(order_id)
            if order.supplier_id != supplier_id:
                raise Unauthorized("Only the supplier can confirm delivery")
            if (
                order.status != OrderStatus.PROCESSING
                or order.payment_status != PaymentStatus.PAID
                or order.escrow_id is None
            ):
                raise InvalidState(
                    f"Cannot confirm delivery: status={order.status}, "
                    f"payment_status={order.payment_status}"
                )

            await self.wallet_service.release_from_escrow(order.escrow_id, supplier_id)
            order.status = OrderStatus.DELIVERED
            order.payment_status = PaymentStatus.COMPLETED
            order.delivered_at = utc_now()
            await self.db.flush()
            return order

        order = await atomic(self.db, work, name="order.confirm_delivery")
        record_order_event("delivered")
        logger.info(f"Delivery confirmed: order={order_id}, supplier={supplier_id}")
        self.notifier.dispatch("order_delivered", str(order.order_id), order.status, order.buyer_id)
        return order

    async def refund_order(
        self, order_id: UUID, reason: str, requester_id: str | None = None
    ) -> Order:
        """Refund a paid, undelivered order and restore its stock.

        Args:
            order_id: Order to refund
            reason: Stored on the order and the escrow record
            requester_id: When given, must be the buyer or the supplier

        Raises:
            NotFound: Order does not exist
            Unauthorized: Requester is neither buyer nor supplier
            InvalidState: Order is delivered, unpaid, or has no escrow
        """

        async def work() -> Order:
            order = await self._lock_order(order_id)
            if requester_id is not None and requester_id not in (order.buyer_id, order.supplier_id):
                raise Unauthorized("Only the buyer or supplier can refund this order")
            if order.status == OrderStatus.DELIVERED:
                raise InvalidState("Delivered orders cannot be refunded")
            if order.payment_status != PaymentStatus.PAID or order.escrow_id is None:
                raise InvalidState(
                    f"Only paid orders can be refunded (payment_status={order.payment_status})"
                )

            await self.wallet_service.refund_from_escrow(order.escrow_id, reason)
            order.status = OrderStatus.CANCELLED
            order.payment_status = PaymentStatus.REFUNDED
            order.refund_reason = reason
            order.cancelled_at = utc_now()
            await self._restore_stock(order)
            await self.db.flush()
            return order

        order = await atomic(self.db, work, name="order.refund")
        record_order_event("refunded")
        logger.info(f"Order refunded: order={order_id}, reason={reason}")
        for recipient in (order.buyer_id, order.supplier_id):
            if recipient != requester_id:
                self.notifier.dispatch("order_refunded", str(order.order_id), order.status, recipient)
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_order(self, order_id: UUID) -> Order | None:
        """Get order by ID.

        Args:
            order_id: Order UUID

        Returns:
            Order or None if not found
        """
        result = await self.db.execute(
            select(Order).where(Order.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def get_buyer_orders(
        self, buyer_id: str, skip: int = 0, limit: int = 100
    ) -> tuple[list[Order], int]:
        """Get orders placed by a buyer, newest first.

        Returns:
            Tuple of (orders list, total count)
        """
        return await self._list_orders(Order.buyer_id == buyer_id, skip, limit)

    async def get_supplier_orders(
        self, supplier_id: str, skip: int = 0, limit: int = 100
    ) -> tuple[list[Order], int]:
        """Get orders received by a supplier, newest first.

        Returns:
            Tuple of (orders list, total count)
        """
        return await self._list_orders(Order.supplier_id == supplier_id, skip, limit)

    async def _list_orders(self, condition, skip: int, limit: int) -> tuple[list[Order], int]:
        count_result = await self.db.execute(
            select(func.count(Order.order_id)).where(condition)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(Order)
            .where(condition)
            .order_by(Order.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        orders = list(result.scalars().all())

        return orders, total

"""Group-buy aggregation service.

Members contribute absolute per-product quantities to a shared group order.
Every change re-resolves the tiered discount of the touched products,
re-derives membership and recomputes the group's total value, all inside
one atomic unit that row-locks the group order.

Closing fans the group out into regular orders, one per (member, supplier)
pair, through the order service. The close and all spawned orders commit
or roll back together.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import String, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.exceptions import (
    Expired,
    InsufficientMembers,
    InvalidRequest,
    InvalidState,
    LeaderCannotLeave,
    MemberLimitReached,
    MinimumQuantityNotMet,
    NotFound,
    Unauthorized,
)
from vendorhub.core.transaction import atomic, for_update
from vendorhub.middleware.metrics import record_group_order_event
from vendorhub.models.base import as_utc, utc_now
from vendorhub.models.group_order import GroupOrder, GroupOrderProduct, GroupOrderStatus
from vendorhub.models.product import Product
from vendorhub.schemas.group_order import GroupOrderProductCreate, QuantityUpdate
from vendorhub.schemas.order import OrderItemCreate
from vendorhub.services.order_service import OrderService
from vendorhub.services.wallet_service import to_money

logger = logging.getLogger(__name__)


# =============================================================================
# Pricing
# =============================================================================

def _tier_value(tier: Any, field: str):
    if isinstance(tier, Mapping):
        return tier[field]
    return getattr(tier, field)


def resolve_discount(tiers: Iterable[Any], quantity: int) -> Decimal:
    """Return the discount percent of the highest tier the quantity reaches.

    Args:
        tiers: Items with ``min_quantity`` and ``discount_percent``, as
            dicts or objects, in any order
        quantity: Current aggregate quantity

    Returns:
        Discount percent, 0 when no tier qualifies
    """
    ordered = sorted(tiers, key=lambda t: _tier_value(t, "min_quantity"), reverse=True)
    for tier in ordered:
        if quantity >= _tier_value(tier, "min_quantity"):
            return Decimal(str(_tier_value(tier, "discount_percent")))
    return Decimal("0")


def discounted_price(base_price: Decimal, discount_percent: Decimal) -> Decimal:
    """Unit price after discount, rounded half up to cents."""
    factor = (Decimal("100") - Decimal(str(discount_percent))) / Decimal("100")
    return to_money(Decimal(str(base_price)) * factor)


def calculate_total_value(products: Iterable[GroupOrderProduct]) -> Decimal:
    total = Decimal("0")
    for product in products:
        factor = (Decimal("100") - Decimal(str(product.current_discount_percent))) / Decimal("100")
        total += Decimal(product.current_quantity) * Decimal(str(product.base_price)) * factor
    return to_money(total)


def member_total(group: GroupOrder, member_id: str) -> int:
    """Total quantity a member currently contributes across all products."""
    return sum(int(p.member_contributions.get(member_id, 0)) for p in group.products)


# =============================================================================
# Service
# =============================================================================

class GroupOrderService:
    """Service class for group-buy operations."""

    def __init__(self, db: AsyncSession, order_service: OrderService | None = None):
        self.db = db
        self.order_service = order_service or OrderService(db)

    async def _lock_group(self, group_order_id: UUID) -> GroupOrder:
        result = await self.db.execute(
            for_update(select(GroupOrder).where(GroupOrder.group_order_id == group_order_id))
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise NotFound(f"Group order {group_order_id} not found")
        return group

    @staticmethod
    def _require_open(group: GroupOrder) -> None:
        if group.status != GroupOrderStatus.OPEN:
            raise InvalidState(f"Group order is {group.status}")

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_group_order(
        self,
        leader_id: str,
        leader_name: str,
        title: str,
        products: list[GroupOrderProductCreate],
        deadline: datetime,
        min_members: int = 2,
        max_members: int = 10,
        description: str | None = None,
    ) -> GroupOrder:
        """Open a group order with the leader as first contributor.

        Product name, supplier, unit and price are snapshotted from the
        catalog at creation time.

        Raises:
            InvalidRequest: Deadline not in the future, bad member bounds,
                no products or duplicate products
            NotFound: A product is missing from the catalog or inactive
        """
        deadline = as_utc(deadline)
        if deadline <= utc_now():
            raise InvalidRequest("Deadline must be in the future")
        if min_members < 1 or max_members < min_members:
            raise InvalidRequest("Member bounds must satisfy 1 <= min_members <= max_members")
        if not products:
            raise InvalidRequest("Group order must contain at least one product")
        product_ids = [p.product_id for p in products]
        if len(set(product_ids)) != len(product_ids):
            raise InvalidRequest("Each product may appear only once in a group order")

        async def work() -> GroupOrder:
            result = await self.db.execute(
                select(Product).where(Product.product_id.in_(product_ids))
            )
            catalog = {p.product_id: p for p in result.scalars().all()}

            entries: list[GroupOrderProduct] = []
            for position, spec in enumerate(products):
                product = catalog.get(spec.product_id)
                if product is None or not product.is_active:
                    raise NotFound(f"Product {spec.product_id} not found")
                tiers = [
                    {"min_quantity": t.min_quantity, "discount_percent": t.discount_percent}
                    for t in sorted(spec.discount_tiers, key=lambda t: t.min_quantity)
                ]
                contributions = {leader_id: spec.initial_quantity} if spec.initial_quantity > 0 else {}
                entries.append(
                    GroupOrderProduct(
                        position=position,
                        product_id=product.product_id,
                        product_name=product.name,
                        supplier_id=product.supplier_id,
                        unit=product.unit,
                        base_price=product.price,
                        target_quantity=spec.target_quantity,
                        min_order_quantity=spec.min_order_quantity or product.min_order_quantity,
                        current_quantity=spec.initial_quantity,
                        discount_tiers=tiers,
                        current_discount_percent=resolve_discount(tiers, spec.initial_quantity),
                        member_contributions=contributions,
                    )
                )

            group = GroupOrder(
                group_order_id=uuid.uuid4(),
                leader_id=leader_id,
                leader_name=leader_name,
                title=title,
                description=description,
                member_ids=[leader_id],
                status=GroupOrderStatus.OPEN,
                deadline=deadline,
                min_members=min_members,
                max_members=max_members,
                total_value=calculate_total_value(entries),
                products=entries,
            )
            self.db.add(group)
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="group_order.create")
        record_group_order_event("created")
        logger.info(
            f"Group order created: group_order={group.group_order_id}, leader={leader_id}, "
            f"products={len(products)}"
        )
        return group

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _apply_quantities(
        self, group: GroupOrder, member_id: str, quantities: Mapping[UUID, int]
    ) -> None:
        """Set a member's absolute quantities and re-derive aggregates.

        Must run inside an atomic unit holding the group order lock.
        Unknown product ids are skipped.
        """
        for product_id, quantity in quantities.items():
            if quantity < 0:
                raise InvalidRequest(f"Quantity for product {product_id} cannot be negative")

        before = member_total(group, member_id)
        by_id = {p.product_id: p for p in group.products}

        for product_id, quantity in quantities.items():
            product = by_id.get(product_id)
            if product is None:
                logger.debug(f"Skipping unknown product {product_id} in group {group.group_order_id}")
                continue

            contributions = dict(product.member_contributions)
            old = int(contributions.get(member_id, 0))
            delta = quantity - old
            if delta == 0:
                continue

            product.current_quantity = product.current_quantity + delta
            if quantity > 0:
                contributions[member_id] = quantity
            else:
                contributions.pop(member_id, None)
            product.member_contributions = contributions
            product.current_discount_percent = resolve_discount(
                product.discount_tiers, product.current_quantity
            )

        after = member_total(group, member_id)
        members = list(group.member_ids)
        if after > 0 and member_id not in members:
            if len(members) >= group.max_members:
                raise MemberLimitReached(group.max_members)
            members.append(member_id)
        elif after == 0 and before > 0:
            if member_id == group.leader_id:
                raise LeaderCannotLeave(
                    "The group order leader cannot withdraw all of their quantities"
                )
            if member_id in members:
                members.remove(member_id)

        group.member_ids = members
        group.total_value = calculate_total_value(group.products)
        # Product rows change without touching the group row; bump its version
        group.updated_at = utc_now()

    async def update_product_quantities(
        self, group_order_id: UUID, member_id: str, updates: list[QuantityUpdate]
    ) -> GroupOrder:
        """Set the member's contributed quantity for one or more products.

        Quantities are absolute; 0 withdraws the member's contribution for
        that product. Reaching a zero total removes a non-leader member.

        Raises:
            NotFound: Group order does not exist
            InvalidState: Group order is not open
            InvalidRequest: A quantity is negative
            Expired: The deadline has passed and the caller is not yet a member
            MemberLimitReached: A new member would exceed max_members
            LeaderCannotLeave: The leader's total would drop to zero
        """
        quantities = {u.product_id: u.quantity for u in updates}

        async def work() -> GroupOrder:
            group = await self._lock_group(group_order_id)
            self._require_open(group)
            if member_id not in group.member_ids and as_utc(group.deadline) <= utc_now():
                raise Expired("Group order deadline has passed")
            self._apply_quantities(group, member_id, quantities)
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="group_order.update_quantities")
        record_group_order_event("contribution")
        logger.info(
            f"Group order quantities updated: group_order={group_order_id}, "
            f"member={member_id}, total_value={group.total_value}"
        )
        return group

    async def join_group_order(
        self, group_order_id: UUID, member_id: str, updates: list[QuantityUpdate]
    ) -> GroupOrder:
        """Join an open group order with an initial positive contribution.

        Raises:
            NotFound: Group order does not exist
            InvalidState: Group order is not open
            Expired: The deadline has passed
            MemberLimitReached: The group order is full
            InvalidRequest: No positive quantity was given
        """
        quantities = {u.product_id: u.quantity for u in updates}

        async def work() -> GroupOrder:
            group = await self._lock_group(group_order_id)
            self._require_open(group)
            if as_utc(group.deadline) <= utc_now():
                raise Expired("Group order deadline has passed")
            if member_id not in group.member_ids and len(group.member_ids) >= group.max_members:
                raise MemberLimitReached(group.max_members)
            if sum(quantities.values()) <= 0:
                raise InvalidRequest("Joining requires a positive quantity")
            self._apply_quantities(group, member_id, quantities)
            if member_total(group, member_id) <= 0:
                raise InvalidRequest("Joining requires a positive quantity of a listed product")
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="group_order.join")
        record_group_order_event("joined")
        logger.info(
            f"Member joined group order: group_order={group_order_id}, member={member_id}, "
            f"members={len(group.member_ids)}"
        )
        return group

    async def leave_group_order(self, group_order_id: UUID, member_id: str) -> GroupOrder:
        """Withdraw all of a member's contributions.

        Raises:
            NotFound: Group order does not exist
            InvalidState: Group order is not open, or caller is not a member
            LeaderCannotLeave: Caller is the leader
        """

        async def work() -> GroupOrder:
            group = await self._lock_group(group_order_id)
            self._require_open(group)
            if member_id == group.leader_id:
                raise LeaderCannotLeave()
            if member_id not in group.member_ids:
                raise InvalidState("User is not a member of this group order")

            zeroed = {
                p.product_id: 0 for p in group.products if member_id in p.member_contributions
            }
            self._apply_quantities(group, member_id, zeroed)
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="group_order.leave")
        record_group_order_event("left")
        logger.info(f"Member left group order: group_order={group_order_id}, member={member_id}")
        return group

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    async def close_group_order(self, group_order_id: UUID, requester_id: str) -> list[UUID]:
        """Close a group order and place one order per (member, supplier).

        Each order line is priced at the product's base price less its final
        discount. If any order cannot be placed nothing is written and the
        group order stays open.

        Args:
            group_order_id: Group order to close
            requester_id: Must be the leader

        Returns:
            Ids of the created orders

        Raises:
            NotFound: Group order does not exist
            Unauthorized: Requester is not the leader
            InvalidState: Group order is not open
            InsufficientMembers: Fewer than min_members members with a positive
                contribution; a leader holding nothing does not count
            MinimumQuantityNotMet: A product is below its minimum order quantity
            InsufficientStock: Catalog stock cannot cover a spawned order
        """

        async def work() -> list[UUID]:
            group = await self._lock_group(group_order_id)
            if group.leader_id != requester_id:
                raise Unauthorized("Only the leader can close this group order")
            self._require_open(group)
            contributing = [m for m in group.member_ids if member_total(group, m) > 0]
            if len(contributing) < group.min_members:
                raise InsufficientMembers(required=group.min_members, actual=len(contributing))
            for product in group.products:
                if product.current_quantity < product.min_order_quantity:
                    raise MinimumQuantityNotMet(product.product_id, product.product_name)

            group.status = GroupOrderStatus.CLOSED
            group.closed_at = utc_now()

            order_ids: list[UUID] = []
            for member_id in group.member_ids:
                items = [
                    OrderItemCreate(
                        product_id=product.product_id,
                        quantity=int(product.member_contributions[member_id]),
                        price=discounted_price(product.base_price, product.current_discount_percent),
                        supplier_id=product.supplier_id,
                        product_name=product.product_name,
                    )
                    for product in group.products
                    if int(product.member_contributions.get(member_id, 0)) > 0
                ]
                if not items:
                    continue
                order_ids.extend(
                    await self.order_service.create_order(
                        member_id, items, group_order_id=group.group_order_id
                    )
                )

            await self.db.flush()
            return order_ids

        order_ids = await atomic(self.db, work, name="group_order.close")
        record_group_order_event("closed")
        logger.info(
            f"Group order closed: group_order={group_order_id}, orders={len(order_ids)}"
        )
        return order_ids

    async def cancel_group_order(self, group_order_id: UUID, requester_id: str) -> GroupOrder:
        """Cancel an open group order without placing any orders.

        Raises:
            NotFound: Group order does not exist
            Unauthorized: Requester is not the leader
            InvalidState: Group order is not open
        """

        async def work() -> GroupOrder:
            group = await self._lock_group(group_order_id)
            if group.leader_id != requester_id:
                raise Unauthorized("Only the leader can cancel this group order")
            self._require_open(group)
            group.status = GroupOrderStatus.CANCELLED
            group.cancelled_at = utc_now()
            await self.db.flush()
            return group

        group = await atomic(self.db, work, name="group_order.cancel")
        record_group_order_event("cancelled")
        logger.info(f"Group order cancelled: group_order={group_order_id}")
        return group

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_group_order(self, group_order_id: UUID) -> GroupOrder | None:
        result = await self.db.execute(
            select(GroupOrder).where(GroupOrder.group_order_id == group_order_id)
        )
        return result.scalar_one_or_none()

    async def list_open_group_orders(
        self, skip: int = 0, limit: int = 100
    ) -> tuple[list[GroupOrder], int]:
        """Get open group orders, soonest deadline first.

        Returns:
            Tuple of (group orders list, total count)
        """
        condition = GroupOrder.status == GroupOrderStatus.OPEN
        count_result = await self.db.execute(
            select(func.count(GroupOrder.group_order_id)).where(condition)
        )
        total = count_result.scalar_one()

        result = await self.db.execute(
            select(GroupOrder)
            .where(condition)
            .order_by(GroupOrder.deadline.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def list_member_group_orders(self, member_id: str) -> list[GroupOrder]:
        """Get every group order the user currently belongs to, newest first."""
        # Coarse text match on the JSON column, exact membership checked below
        result = await self.db.execute(
            select(GroupOrder)
            .where(cast(GroupOrder.member_ids, String).like(f'%"{member_id}"%'))
            .order_by(GroupOrder.created_at.desc())
        )
        return [g for g in result.scalars().all() if member_id in g.member_ids]

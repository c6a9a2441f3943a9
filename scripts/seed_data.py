"""Seed data script for development and demos.

Creates:
- 3 suppliers with a small catalog of raw ingredients each
- VENDOR_COUNT vendor wallets funded with VENDOR_BALANCE
- 1 open group order led by the first vendor

Environment Variables:
    VENDOR_COUNT: Number of funded vendor wallets (default: 20)
    VENDOR_BALANCE: Starting balance per vendor (default: 5000.00)
    GROUP_ORDER_DAYS: Days until the sample group order deadline (default: 3)

Usage:
    uv run python -m scripts.seed_data

Actor ids match the ``sub`` claim of tokens issued by the auth service:
vendor001 .. vendorNNN and supplier-fresh, supplier-spice, supplier-dairy.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Configuration from environment variables
VENDOR_COUNT = int(os.getenv("VENDOR_COUNT", "20"))
VENDOR_BALANCE = Decimal(os.getenv("VENDOR_BALANCE", "5000.00"))
GROUP_ORDER_DAYS = int(os.getenv("GROUP_ORDER_DAYS", "3"))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.database import async_session_maker, engine
from vendorhub.models import GroupOrder, Product
from vendorhub.schemas.group_order import DiscountTier, GroupOrderProductCreate
from vendorhub.services.group_order_service import GroupOrderService
from vendorhub.services.wallet_service import WalletService

CATALOG = {
    "supplier-fresh": [
        ("Onions", "vegetables", "kg", "40.00", 500, 5),
        ("Tomatoes", "vegetables", "kg", "30.00", 400, 5),
        ("Potatoes", "vegetables", "kg", "25.00", 800, 10),
    ],
    "supplier-spice": [
        ("Red Chilli Powder", "spices", "kg", "320.00", 60, 1),
        ("Turmeric", "spices", "kg", "280.00", 50, 1),
    ],
    "supplier-dairy": [
        ("Paneer", "dairy", "kg", "360.00", 80, 2),
        ("Ghee", "dairy", "litre", "650.00", 40, 1),
    ],
}


def vendor_id(i: int) -> str:
    return f"vendor{i:03d}"


async def seed_products(session: AsyncSession) -> list[Product]:
    """Create the sample catalog."""
    print("Seeding products...")

    result = await session.execute(select(Product).limit(1))
    if result.scalar_one_or_none():
        print("  Products already exist, skipping...")
        result = await session.execute(select(Product).order_by(Product.name))
        return list(result.scalars().all())

    products = []
    for supplier_id, items in CATALOG.items():
        for name, category, unit, price, stock, min_qty in items:
            products.append(
                Product(
                    supplier_id=supplier_id,
                    name=name,
                    category=category,
                    unit=unit,
                    price=Decimal(price),
                    available_quantity=stock,
                    min_order_quantity=min_qty,
                    is_active=True,
                )
            )

    session.add_all(products)
    await session.commit()

    print(f"  Created {len(products)} products for {len(CATALOG)} suppliers")
    return products


async def seed_wallets(session: AsyncSession) -> None:
    """Create supplier wallets and fund vendor wallets."""
    print("Seeding wallets...")

    wallet_service = WalletService(session)
    for supplier_id in CATALOG:
        await wallet_service.initialize_wallet(supplier_id, user_type="supplier")

    funded = 0
    for i in range(1, VENDOR_COUNT + 1):
        wallet = await wallet_service.get_wallet(vendor_id(i))
        if wallet.balance == 0:
            await wallet_service.top_up(vendor_id(i), VENDOR_BALANCE, "upi")
            funded += 1

    print(f"  Funded {funded} vendor wallets with {VENDOR_BALANCE} each")


async def seed_group_order(session: AsyncSession, products: list[Product]) -> GroupOrder | None:
    """Open one group order for onions and tomatoes."""
    print("Seeding group order...")

    result = await session.execute(select(GroupOrder).limit(1))
    if result.scalar_one_or_none():
        print("  Group order already exists, skipping...")
        return None

    by_name = {p.name: p for p in products}
    tiers = [
        DiscountTier(min_quantity=50, discount_percent=5),
        DiscountTier(min_quantity=100, discount_percent=10),
    ]
    service = GroupOrderService(session)
    group = await service.create_group_order(
        leader_id=vendor_id(1),
        leader_name="Vendor 001",
        title="Weekly vegetables",
        description="Pooling onions and tomatoes for the weekend rush",
        products=[
            GroupOrderProductCreate(
                product_id=by_name["Onions"].product_id,
                target_quantity=100,
                initial_quantity=10,
                discount_tiers=tiers,
            ),
            GroupOrderProductCreate(
                product_id=by_name["Tomatoes"].product_id,
                target_quantity=100,
                initial_quantity=10,
                discount_tiers=tiers,
            ),
        ],
        deadline=datetime.now(timezone.utc) + timedelta(days=GROUP_ORDER_DAYS),
        min_members=3,
        max_members=15,
    )

    print(f"  Created group order: {group.group_order_id}")
    print(f"    Deadline: {group.deadline}")
    print(f"    Total value: {group.total_value}")
    return group


async def main():
    """Main seed function."""
    print("=" * 60)
    print("VendorHub - Seed Data Script")
    print("=" * 60)
    print(f"  VENDOR_COUNT: {VENDOR_COUNT}")
    print(f"  VENDOR_BALANCE: {VENDOR_BALANCE}")
    print(f"  GROUP_ORDER_DAYS: {GROUP_ORDER_DAYS}")
    print("=" * 60)

    async with async_session_maker() as session:
        products = await seed_products(session)
        await seed_wallets(session)
        await seed_group_order(session, products)

    print("=" * 60)
    print("Seed data complete!")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())

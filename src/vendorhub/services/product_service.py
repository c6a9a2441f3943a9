"""Product service for catalog reads and product registration."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.transaction import atomic
from vendorhub.models.product import Product
from vendorhub.schemas.product import ProductCreate
from vendorhub.services.wallet_service import to_money


class ProductService:
    """Service class for product operations.

    Stock changes after creation belong to the order service.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(
        self, skip: int = 0, limit: int = 100, supplier_id: str | None = None
    ) -> tuple[list[Product], int]:
        """Get active products with pagination.

        Args:
            skip: Number of records to skip
            limit: Maximum number of records to return
            supplier_id: Only return this supplier's products

        Returns:
            Tuple of (products list, total count)
        """
        conditions = [Product.is_active.is_(True)]
        if supplier_id is not None:
            conditions.append(Product.supplier_id == supplier_id)

        # Get total count
        count_result = await self.db.execute(
            select(func.count(Product.product_id)).where(*conditions)
        )
        total = count_result.scalar_one()

        # Get products
        result = await self.db.execute(
            select(Product)
            .where(*conditions)
            .order_by(Product.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        products = list(result.scalars().all())

        return products, total

    async def get_by_id(self, product_id: UUID) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product UUID

        Returns:
            Product or None if not found
        """
        result = await self.db.execute(
            select(Product).where(Product.product_id == product_id)
        )
        return result.scalar_one_or_none()

    async def create(self, supplier_id: str, product_data: ProductCreate) -> Product:
        """Register a new product for a supplier.

        Args:
            supplier_id: Owning supplier
            product_data: Product creation data

        Returns:
            Created product
        """

        async def work() -> Product:
            product = Product(
                supplier_id=supplier_id,
                name=product_data.name,
                description=product_data.description,
                category=product_data.category,
                unit=product_data.unit,
                price=to_money(product_data.price),
                available_quantity=product_data.available_quantity,
                min_order_quantity=product_data.min_order_quantity,
                is_active=True,
            )
            self.db.add(product)
            await self.db.flush()
            return product

        return await atomic(self.db, work, name="product.create")

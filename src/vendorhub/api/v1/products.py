"""Product catalog API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from vendorhub.api.deps import CurrentActor, ProductServiceDep
from vendorhub.schemas.product import ProductCreate, ProductListResponse, ProductResponse

router = APIRouter()


@router.get("", response_model=ProductListResponse)
async def list_products(
    service: ProductServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
    supplier_id: str | None = Query(None),
):
    """Get active products with pagination."""
    products, total = await service.get_all(skip=skip, limit=limit, supplier_id=supplier_id)
    return ProductListResponse(products=products, total=total)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: UUID,
    service: ProductServiceDep,
):
    """Get product by ID."""
    product = await service.get_by_id(product_id)
    if not product:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": "Product not found"},
        )
    return product


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    service: ProductServiceDep,
    actor_id: CurrentActor,
):
    """Register a product owned by the calling supplier."""
    return await service.create(actor_id, product_data)

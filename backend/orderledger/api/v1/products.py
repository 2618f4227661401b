"""
FastAPI router for Product
Project: Order Ledger

Endpoints for the product catalogue.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.schemas.product import ProductCreate, ProductList, ProductRead, ProductUpdate
from orderledger.services.product_service import ProductService, product_service

router = APIRouter(
    prefix="/product",
    tags=["Products"],
)

can_read = [Depends(require_capability(Capability.PRODUCT_READ))]
can_write = [Depends(require_capability(Capability.PRODUCT_WRITE))]


def get_product_service() -> ProductService:
    return product_service


@router.get(
    "/",
    name="product_list",
    summary="List products",
    response_model=ProductList,
    dependencies=can_read,
)
async def get_products(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(10, ge=1, le=100, description="Rows per page"),
    search: Optional[str] = Query(None, description="Name or alias"),
    product_group_id: Optional[uuid.UUID] = Query(None, description="Filter by group"),
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ProductList:
    products, total = await service.get_all(
        db,
        page=page,
        limit=limit,
        search=search,
        product_group_id=product_group_id,
    )
    return ProductList(
        items=[ProductRead.model_validate(p) for p in products],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/{product_id}",
    name="product_detail",
    response_model=ProductRead,
    dependencies=can_read,
)
async def get_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ProductRead:
    return ProductRead.model_validate(await service.get_by_id(db, product_id))


@router.post(
    "/",
    name="product_create",
    summary="Create product",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=can_write,
)
async def create_product(
    data: ProductCreate,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ProductRead:
    product = await service.create(db, data)
    await db.commit()
    return ProductRead.model_validate(product)


@router.put(
    "/{product_id}",
    name="product_update",
    response_model=ProductRead,
    dependencies=can_write,
)
async def update_product(
    product_id: uuid.UUID,
    data: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> ProductRead:
    """Rate changes apply to new orders only."""
    product = await service.update(db, product_id, data)
    await db.commit()
    return ProductRead.model_validate(product)


@router.delete(
    "/{product_id}",
    name="product_delete",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=can_write,
)
async def delete_product(
    product_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductService = Depends(get_product_service),
) -> None:
    await service.delete(db, product_id)
    await db.commit()

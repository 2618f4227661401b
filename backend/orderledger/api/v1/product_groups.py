"""
FastAPI router for ProductGroup
Project: Order Ledger
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.database import get_db
from orderledger.core.deps import Capability, require_capability
from orderledger.schemas.product import (
    ProductGroupCreate,
    ProductGroupList,
    ProductGroupRead,
    ProductGroupUpdate,
)
from orderledger.services.product_group_service import ProductGroupService, product_group_service

router = APIRouter(
    prefix="/productGroup",
    tags=["Product groups"],
    dependencies=[Depends(require_capability(Capability.PRODUCT_GROUP_MANAGE))],
)


def get_product_group_service() -> ProductGroupService:
    return product_group_service


@router.get("/", name="product_group_list", response_model=ProductGroupList)
async def get_product_groups(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    service: ProductGroupService = Depends(get_product_group_service),
) -> ProductGroupList:
    groups, total = await service.get_all(db, page=page, limit=limit, search=search)
    return ProductGroupList(
        items=[ProductGroupRead.model_validate(g) for g in groups],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/{group_id}", name="product_group_detail", response_model=ProductGroupRead)
async def get_product_group(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductGroupService = Depends(get_product_group_service),
) -> ProductGroupRead:
    return ProductGroupRead.model_validate(await service.get_by_id(db, group_id))


@router.post(
    "/",
    name="product_group_create",
    response_model=ProductGroupRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_product_group(
    data: ProductGroupCreate,
    db: AsyncSession = Depends(get_db),
    service: ProductGroupService = Depends(get_product_group_service),
) -> ProductGroupRead:
    """
    Raises:
        DuplicateError: a group with the same name exists
    """
    group = await service.create(db, data)
    await db.commit()
    return ProductGroupRead.model_validate(group)


@router.put("/{group_id}", name="product_group_update", response_model=ProductGroupRead)
async def update_product_group(
    group_id: uuid.UUID,
    data: ProductGroupUpdate,
    db: AsyncSession = Depends(get_db),
    service: ProductGroupService = Depends(get_product_group_service),
) -> ProductGroupRead:
    group = await service.update(db, group_id, data)
    await db.commit()
    return ProductGroupRead.model_validate(group)


@router.delete(
    "/{group_id}",
    name="product_group_delete",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_product_group(
    group_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ProductGroupService = Depends(get_product_group_service),
) -> None:
    """Refused while active products still belong to the group."""
    await service.delete(db, group_id)
    await db.commit()

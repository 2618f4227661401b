"""
Service layer for ProductGroup
Project: Order Ledger
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import ConflictError, DuplicateError, NotFoundError
from orderledger.models import Product, ProductGroup
from orderledger.schemas.product import ProductGroupCreate, ProductGroupUpdate

logger = logging.getLogger(__name__)


class ProductGroupService:
    """CRUD on product groups. Flushes only; routers commit."""

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 50,
        search: Optional[str] = None,
        include_inactive: bool = False,
    ) -> tuple[list[ProductGroup], int]:
        conditions = []
        if not include_inactive:
            conditions.append(ProductGroup.is_active.is_(True))
        if search:
            conditions.append(ProductGroup.name.ilike(f"%{search.strip()}%"))

        query = select(ProductGroup).where(*conditions).order_by(ProductGroup.name.asc())
        result = await db.execute(query.offset((page - 1) * limit).limit(limit))
        groups = list(result.scalars().all())

        total = (
            await db.execute(select(func.count()).select_from(ProductGroup).where(*conditions))
        ).scalar() or 0
        return groups, total

    async def get_by_id(self, db: AsyncSession, group_id: uuid.UUID) -> ProductGroup:
        group = await db.get(ProductGroup, group_id)
        if group is None or not group.is_active:
            raise NotFoundError(f"Product group {group_id} not found")
        return group

    async def create(self, db: AsyncSession, data: ProductGroupCreate) -> ProductGroup:
        await self._ensure_name_free(db, data.name)
        group = ProductGroup(name=data.name.strip(), description=data.description)
        db.add(group)
        await db.flush()
        logger.info("Created product group %s", group.name)
        return group

    async def update(
        self,
        db: AsyncSession,
        group_id: uuid.UUID,
        data: ProductGroupUpdate,
    ) -> ProductGroup:
        group = await db.get(ProductGroup, group_id)
        if group is None:
            raise NotFoundError(f"Product group {group_id} not found")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name") and changes["name"] != group.name:
            await self._ensure_name_free(db, changes["name"], exclude_id=group.id)

        for field, value in changes.items():
            setattr(group, field, value)
        await db.flush()
        logger.info("Updated product group %s", group.name)
        return group

    async def delete(self, db: AsyncSession, group_id: uuid.UUID) -> None:
        """
        Soft delete.

        Raises:
            ConflictError: active products still belong to the group
        """
        group = await self.get_by_id(db, group_id)
        in_use = (
            await db.execute(
                select(func.count()).select_from(Product).where(
                    Product.product_group_id == group.id,
                    Product.is_active.is_(True),
                )
            )
        ).scalar() or 0
        if in_use:
            raise ConflictError(
                f"Product group '{group.name}' still has {in_use} active products",
                extra={"products": in_use},
            )
        group.is_active = False
        await db.flush()
        logger.info("Soft-deleted product group %s", group.name)

    async def _ensure_name_free(
        self,
        db: AsyncSession,
        name: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(ProductGroup).where(func.lower(ProductGroup.name) == name.strip().lower())
        if exclude_id is not None:
            query = query.where(ProductGroup.id != exclude_id)
        if (await db.execute(query)).scalar_one_or_none():
            raise DuplicateError(f"Product group '{name}' already exists")


product_group_service = ProductGroupService()

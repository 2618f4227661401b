"""
Service layer for Product
Project: Order Ledger
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from orderledger.core.exceptions import NotFoundError
from orderledger.models import Product
from orderledger.schemas.product import ProductCreate, ProductUpdate
from orderledger.services.product_group_service import ProductGroupService, product_group_service

logger = logging.getLogger(__name__)


class ProductService:
    """CRUD and search on the product catalogue. Flushes only; routers commit."""

    def __init__(self, groups: ProductGroupService = product_group_service) -> None:
        self.groups = groups

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        product_group_id: Optional[uuid.UUID] = None,
        include_inactive: bool = False,
    ) -> tuple[list[Product], int]:
        conditions = []
        if not include_inactive:
            conditions.append(Product.is_active.is_(True))
        if search:
            term = f"%{search.strip()}%"
            conditions.append(or_(Product.name.ilike(term), Product.alias.ilike(term)))
        if product_group_id:
            conditions.append(Product.product_group_id == product_group_id)

        query = select(Product).where(*conditions).order_by(Product.name.asc())
        result = await db.execute(query.offset((page - 1) * limit).limit(limit))
        products = list(result.scalars().all())

        total = (
            await db.execute(select(func.count()).select_from(Product).where(*conditions))
        ).scalar() or 0

        logger.info("Fetched %s of %s products (page %s)", len(products), total, page)
        return products, total

    async def get_by_id(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> Product:
        """
        Raises:
            NotFoundError: unknown or soft-deleted product
        """
        product = await db.get(Product, product_id)
        if product is None or (not include_inactive and not product.is_active):
            raise NotFoundError(f"Product {product_id} not found")
        return product

    async def create(self, db: AsyncSession, data: ProductCreate) -> Product:
        if data.product_group_id:
            await self.groups.get_by_id(db, data.product_group_id)

        product = Product(**data.model_dump())
        product.unit_type = data.unit_type.value
        db.add(product)
        await db.flush()
        await db.refresh(product, ["group"])

        logger.info(
            "Created product %s (%s @ %s)",
            product.name, product.unit_type, product.rate_per_unit,
        )
        return product

    async def update(
        self,
        db: AsyncSession,
        product_id: uuid.UUID,
        data: ProductUpdate,
    ) -> Product:
        """
        Partial update. Rates already priced into orders are not touched.
        """
        product = await self.get_by_id(db, product_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("product_group_id"):
            await self.groups.get_by_id(db, changes["product_group_id"])
        if changes.get("unit_type") is not None:
            changes["unit_type"] = changes["unit_type"].value

        for field, value in changes.items():
            setattr(product, field, value)

        await db.flush()
        await db.refresh(product, ["group"])
        logger.info("Updated product %s (fields: %s)", product.name, ", ".join(changes) or "-")
        return product

    async def delete(self, db: AsyncSession, product_id: uuid.UUID) -> None:
        """Soft delete; existing order lines keep their reference."""
        product = await self.get_by_id(db, product_id)
        product.is_active = False
        await db.flush()
        logger.info("Soft-deleted product %s", product.name)


product_service = ProductService()

"""
Pytest configuration and shared fixtures.

Service flows run against an in-memory SQLite database (aiosqlite).
"""

import uuid
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from orderledger.core.database import create_tables
from orderledger.models import Client, Order, Product
from orderledger.models.product import UnitType
from orderledger.schemas.client import ClientCreate
from orderledger.schemas.order import OrderCreate, OrderLineCreate
from orderledger.schemas.product import ProductCreate
from orderledger.services.client_service import client_service
from orderledger.services.order_service import order_service
from orderledger.services.product_service import product_service


# ============================================================
# Database
# ============================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Session configured like the application's AsyncSessionLocal."""
    session_factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


# ============================================================
# Factories
# ============================================================


async def make_client(db: AsyncSession, name: str = "Sharma Traders", **kwargs) -> Client:
    client = await client_service.create(db, ClientCreate(name=name, **kwargs))
    await db.commit()
    return client


async def make_product(
    db: AsyncSession,
    name: str = "Granite slab",
    rate: str = "100.00",
    unit_type: UnitType = UnitType.NOS,
) -> Product:
    product = await product_service.create(
        db,
        ProductCreate(name=name, rate_per_unit=Decimal(rate), unit_type=unit_type),
    )
    await db.commit()
    return product


async def make_order(db: AsyncSession, client: Client, lines, **kwargs):
    """
    Args:
        lines: (product, quantity) pairs, quantities as strings

    Returns:
        (order, hook report) as returned by OrderService.create
    """
    data = OrderCreate(
        client_id=client.id,
        products=[
            OrderLineCreate(product_id=product.id, quantity=Decimal(qty))
            for product, qty in lines
        ],
        **kwargs,
    )
    return await order_service.create(db, data)


@pytest.fixture
async def client(db) -> Client:
    return await make_client(db)


@pytest.fixture
async def product(db) -> Product:
    return await make_product(db)


@pytest.fixture
def random_id() -> uuid.UUID:
    return uuid.uuid4()


async def reload_order(db: AsyncSession, order_id: uuid.UUID) -> Order:
    """Fresh copy of an order; a rollback expires everything in the session."""
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()

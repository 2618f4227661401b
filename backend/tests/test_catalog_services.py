"""
Tests for the client and product catalogue services.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from orderledger.core.exceptions import ConflictError, DuplicateError, NotFoundError
from orderledger.models.order import OrderStatus
from orderledger.models.product import UnitType
from orderledger.schemas.client import ClientCreate, ClientUpdate, normalize_mobile
from orderledger.schemas.product import ProductCreate, ProductGroupCreate, ProductUpdate
from orderledger.services.client_service import client_service
from orderledger.services.order_service import order_service
from orderledger.services.product_group_service import product_group_service
from orderledger.services.product_service import product_service

from conftest import make_client, make_order, make_product


# ============================================================
# Clients
# ============================================================


class TestClientService:

    async def test_client_numbers_are_sequential(self, db):
        first = await make_client(db, name="Sharma Traders")
        second = await make_client(db, name="Verma Stones")

        assert second.client_no == first.client_no + 1

    async def test_email_is_unique_case_insensitive(self, db):
        await make_client(db, email="accounts@sharma.in")

        with pytest.raises(DuplicateError):
            await client_service.create(db, ClientCreate(name="Other", email="Accounts@Sharma.in"))

    async def test_search(self, db):
        await make_client(db, name="Sharma Traders", alias="ST")
        verma = await make_client(db, name="Verma Stones", mobile="98290 12345")

        clients, total = await client_service.get_all(db, search="verma")
        assert total == 1
        assert clients[0].id == verma.id

        clients, total = await client_service.get_all(db, search="9829012345")
        assert total == 1

        clients, total = await client_service.get_all(db, search=str(verma.client_no))
        assert clients[0].id == verma.id

    async def test_partial_update(self, db, client):
        updated = await client_service.update(db, client.id, ClientUpdate(alias="Sharma & Sons"))

        assert updated.alias == "Sharma & Sons"
        assert updated.name == "Sharma Traders"

    async def test_soft_delete_hides_client(self, db, client):
        await client_service.delete(db, client.id)
        await db.commit()

        with pytest.raises(NotFoundError):
            await client_service.get_by_id(db, client.id)
        assert (await client_service.get_by_id(db, client.id, include_inactive=True)).is_active is False

    async def test_delete_with_open_orders_rejected(self, db, client, product):
        await make_order(db, client, [(product, "1")])

        with pytest.raises(ConflictError):
            await client_service.delete(db, client.id)

    async def test_delete_with_cancelled_orders_allowed(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "1")])
        await order_service.update_status(db, order.id, OrderStatus.CANCELLED)

        await client_service.delete(db, client.id)

        assert client.is_active is False

    @pytest.mark.parametrize("raw,expected", [
        ("98290 12345", "9829012345"),
        ("+91 (982) 901-2345", "+919829012345"),
        ("", None),
    ])
    def test_normalize_mobile(self, raw, expected):
        assert normalize_mobile(raw) == expected

    def test_invalid_mobile_rejected(self):
        with pytest.raises(ValidationError):
            ClientCreate(name="X", mobile="12ab")


# ============================================================
# Product groups and products
# ============================================================


class TestProductServices:

    async def test_product_in_group(self, db):
        group = await product_group_service.create(db, ProductGroupCreate(name="Granite"))
        product = await product_service.create(
            db,
            ProductCreate(
                name="Black galaxy",
                product_group_id=group.id,
                unit_type=UnitType.SQUARE_FEET,
                rate_per_unit=Decimal("145.50"),
            ),
        )
        await db.commit()

        assert product.unit_type == "SQUARE_FEET"
        assert product.group.id == group.id

        products, total = await product_service.get_all(db, product_group_id=group.id)
        assert total == 1

    async def test_duplicate_group_name(self, db):
        await product_group_service.create(db, ProductGroupCreate(name="Granite"))

        with pytest.raises(DuplicateError):
            await product_group_service.create(db, ProductGroupCreate(name="granite "))

    async def test_group_in_use_cannot_be_deleted(self, db):
        group = await product_group_service.create(db, ProductGroupCreate(name="Granite"))
        await product_service.create(db, ProductCreate(name="Black galaxy", product_group_id=group.id))

        with pytest.raises(ConflictError):
            await product_group_service.delete(db, group.id)

    async def test_unknown_group(self, db, random_id):
        with pytest.raises(NotFoundError):
            await product_service.create(db, ProductCreate(name="Slab", product_group_id=random_id))

    async def test_rate_change_does_not_touch_orders(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])

        await product_service.update(db, product.id, ProductUpdate(rate_per_unit=Decimal("120")))
        await db.commit()

        assert (await order_service.get_by_id(db, order.id)).total_amount == Decimal("1000.00")
        new_order, _ = await make_order(db, client, [(product, "10")])
        assert new_order.total_amount == Decimal("1200.00")

    async def test_soft_deleted_product_cannot_be_ordered(self, db, client):
        product = await make_product(db, name="Old stock")
        await product_service.delete(db, product.id)
        await db.commit()

        with pytest.raises(NotFoundError):
            await make_order(db, client, [(product, "1")])

    def test_alternate_units_set_together(self):
        with pytest.raises(ValidationError):
            ProductCreate(name="Slab", number_of_items=2)

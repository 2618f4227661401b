"""
Tests for SubOrderService: atomic dispatch batches, status changes with
order completion, and dispatch invoices.
"""

import uuid
from decimal import Decimal

import pytest

from orderledger.core.exceptions import BadRequestError, NotFoundError
from orderledger.models.order import OrderStatus, SubOrderStatus, SubOrderType
from orderledger.models.product import UnitType
from orderledger.schemas.sub_order import (
    BulkStatusItem,
    BulkStatusUpdate,
    DispatchInvoiceCreate,
    DispatchLine,
    Party,
    SubOrderBatchCreate,
    SubOrderCreate,
)
from orderledger.services.dispatch_invoice_service import dispatch_invoice_service
from orderledger.services.order_service import order_service
from orderledger.services.sub_order_service import sub_order_service

from conftest import make_client, make_order, make_product, reload_order


def batch(order, *lines):
    """lines: (product, qty) pairs."""
    return SubOrderBatchCreate(
        order_id=order.id,
        lines=[DispatchLine(product_id=p.id, quantity=Decimal(q)) for p, q in lines],
    )


# ============================================================
# Dispatch
# ============================================================


class TestDispatch:

    async def test_single_dispatch(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])

        sub = await sub_order_service.create(
            db, SubOrderCreate(order_id=order.id, product_id=product.id, quantity=Decimal("3"))
        )

        assert sub.order_no == order.order_no
        assert sub.quantity == Decimal("3")
        assert sub.dispatched_value == Decimal("300.00")
        assert sub.sub_order_type == SubOrderType.DISPATCH.value
        assert sub.unit_type == UnitType.NOS.value

    async def test_batch_over_two_products(self, db, client, product):
        tiles = await make_product(db, name="Marble tile", rate="50.00")
        order, _ = await make_order(db, client, [(product, "10"), (tiles, "4")])

        order, subs = await sub_order_service.create_batch(db, batch(order, (product, "5"), (tiles, "4")))

        assert len(subs) == 2
        assert order.remaining_quantity == Decimal("5")
        assert order.dispatched_value == Decimal("700.00")
        assert order.status == OrderStatus.PARTIALLY_DISPATCHED.value

    async def test_batch_is_all_or_nothing(self, db, client, product):
        tiles = await make_product(db, name="Marble tile", rate="50.00")
        order, _ = await make_order(db, client, [(product, "10"), (tiles, "4")])
        order_id = order.id

        with pytest.raises(BadRequestError):
            await sub_order_service.create_batch(db, batch(order, (product, "5"), (tiles, "5")))

        order = await reload_order(db, order_id)
        assert order.remaining_quantity == Decimal("14")
        assert [l.remaining_quantity for l in order.lines] == [Decimal("10"), Decimal("4")]
        subs, total = await sub_order_service.get_all(db, order_no=order.order_no)
        assert total == 0

    async def test_same_product_summed_in_batch(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "6")])

        with pytest.raises(BadRequestError):
            await sub_order_service.create_batch(db, batch(order, (product, "4"), (product, "4")))

    async def test_product_not_on_order(self, db, client, product):
        other = await make_product(db, name="Sandstone", rate="10.00")
        order, _ = await make_order(db, client, [(product, "6")])

        with pytest.raises(NotFoundError):
            await sub_order_service.create_batch(db, batch(order, (other, "1")))

    async def test_unknown_order(self, db, product):
        with pytest.raises(NotFoundError):
            await sub_order_service.create_batch(
                db,
                SubOrderBatchCreate(
                    order_id=uuid.uuid4(),
                    lines=[DispatchLine(product_id=product.id, quantity=Decimal("1"))],
                ),
            )

    async def test_unit_mismatch(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "6")])

        with pytest.raises(BadRequestError):
            await sub_order_service.create(
                db,
                SubOrderCreate(
                    order_id=order.id,
                    product_id=product.id,
                    quantity=Decimal("1"),
                    unit_type=UnitType.SET,
                ),
            )


# ============================================================
# Status changes
# ============================================================


class TestSubOrderStatus:

    async def test_completion_requires_every_sub_order(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        order, (first,) = await sub_order_service.create_batch(db, batch(order, (product, "6")))
        order, (second,) = await sub_order_service.create_batch(db, batch(order, (product, "4")))
        assert order.status == OrderStatus.PARTIALLY_DISPATCHED.value

        _, order = await sub_order_service.update_status(db, first.id, SubOrderStatus.COMPLETED)
        assert order.status == OrderStatus.PARTIALLY_DISPATCHED.value

        _, order = await sub_order_service.update_status(db, second.id, SubOrderStatus.COMPLETED)
        assert order.status == OrderStatus.COMPLETED.value

    async def test_completed_order_reverts_to_pending(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "2")])
        order, (sub,) = await sub_order_service.create_batch(db, batch(order, (product, "2")))
        _, order = await sub_order_service.update_status(db, sub.id, SubOrderStatus.COMPLETED)
        assert order.status == OrderStatus.COMPLETED.value

        _, order = await sub_order_service.update_status(db, sub.id, SubOrderStatus.DISPATCHED)

        assert order.status == OrderStatus.PENDING.value

    async def test_bulk_update_reports_per_item_errors(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "5")])
        order, (sub,) = await sub_order_service.create_batch(db, batch(order, (product, "5")))
        missing = uuid.uuid4()

        result = await sub_order_service.bulk_update_status(
            db,
            BulkStatusUpdate(updates=[
                BulkStatusItem(sub_order_id=sub.id, status="COMPLETED"),
                BulkStatusItem(sub_order_id=missing, status="COMPLETED"),
                BulkStatusItem(sub_order_id=sub.id, status="SHIPPED"),
            ]),
        )

        assert result.success_count == 1
        assert result.failed_count == 2
        assert {e.error for e in result.errors} == {"Sub-order not found", "Invalid status 'SHIPPED'"}
        assert result.completed_orders == [order.order_no]
        assert (await reload_order(db, order.id)).status == OrderStatus.COMPLETED.value

    async def test_bulk_update_across_orders(self, db, client, product):
        first, _ = await make_order(db, client, [(product, "2")])
        second, _ = await make_order(db, client, [(product, "4")])
        first, (a,) = await sub_order_service.create_batch(db, batch(first, (product, "2")))
        second, (b,) = await sub_order_service.create_batch(db, batch(second, (product, "1")))

        result = await sub_order_service.bulk_update_status(
            db,
            BulkStatusUpdate(updates=[
                BulkStatusItem(sub_order_id=a.id, status="COMPLETED"),
                BulkStatusItem(sub_order_id=b.id, status="COMPLETED"),
            ]),
        )

        assert result.success_count == 2
        assert result.completed_orders == [first.order_no]
        assert (await reload_order(db, second.id)).status == OrderStatus.PARTIALLY_DISPATCHED.value


# ============================================================
# Queries
# ============================================================


class TestSubOrderQueries:

    async def test_filters(self, db, client, product):
        other = await make_client(db, name="Verma Stones")
        order, _ = await make_order(db, client, [(product, "10")])
        other_order, _ = await make_order(db, other, [(product, "10")])
        await sub_order_service.create_batch(db, batch(order, (product, "1")))
        await sub_order_service.create_batch(db, batch(other_order, (product, "2")))

        _, total = await sub_order_service.get_all(db)
        assert total == 2

        subs, total = await sub_order_service.get_all(db, client_id=other.id)
        assert total == 1
        assert subs[0].quantity == Decimal("2")

        _, total = await sub_order_service.get_all(db, status=SubOrderStatus.COMPLETED)
        assert total == 0

        by_order = await sub_order_service.get_by_order_no(db, order.order_no)
        assert [s.quantity for s in by_order] == [Decimal("1")]

    async def test_get_by_order_no_unknown(self, db):
        with pytest.raises(NotFoundError):
            await sub_order_service.get_by_order_no(db, 999)


# ============================================================
# Dispatch invoices
# ============================================================


class TestDispatchInvoice:

    async def test_invoice_with_dispatch_lines(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")], gst_enabled=True, gst_rate=Decimal("18"))

        invoice = await sub_order_service.create_dispatch_invoice(
            db,
            DispatchInvoiceCreate(
                order_id=order.id,
                lines=[DispatchLine(product_id=product.id, quantity=Decimal("4"))],
                vehicle_no="RJ14 GA 1234",
                consignee=Party(name="Site office"),
                gst_enabled=True,
            ),
        )

        assert invoice.invoice_no == f"DISP-{order.order_no}-1"
        assert invoice.sub_order_type == SubOrderType.DISPATCH_INVOICE.value
        info = invoice.dispatch_info
        assert info["vehicle_no"] == "RJ14 GA 1234"
        assert info["consignee"]["name"] == "Site office"
        assert info["subtotal"] == "400.00"
        assert info["gst_amount"] == "72.00"
        assert info["total"] == "472.00"
        assert info["products"][0]["product_name"] == product.name

        order = await reload_order(db, order.id)
        assert order.remaining_quantity == Decimal("6")
        subs, total = await sub_order_service.get_all(db, order_no=order.order_no)
        assert total == 1

    async def test_invoice_without_lines_snapshots_order(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])

        first = await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=order.id))
        second = await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=order.id))

        assert first.dispatch_info["subtotal"] == "1000.00"
        assert first.dispatch_info["gst_amount"] == "0.00"
        assert second.invoice_no == f"DISP-{order.order_no}-2"
        assert (await reload_order(db, order.id)).remaining_quantity == Decimal("10")

    async def test_invoice_on_cancelled_order(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        await order_service.update_status(db, order.id, OrderStatus.CANCELLED)
        await db.commit()

        with pytest.raises(BadRequestError):
            await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=order.id))

    async def test_invoices_do_not_affect_completion(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "2")])
        order, (sub,) = await sub_order_service.create_batch(db, batch(order, (product, "2")))
        await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=order.id))

        _, order = await sub_order_service.update_status(db, sub.id, SubOrderStatus.COMPLETED)

        assert order.status == OrderStatus.COMPLETED.value

    async def test_listing_and_analytics(self, db, client, product):
        other = await make_client(db, name="Verma Stones")
        order, _ = await make_order(db, client, [(product, "10")])
        other_order, _ = await make_order(db, other, [(product, "2")])
        await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=order.id))
        await sub_order_service.create_dispatch_invoice(db, DispatchInvoiceCreate(order_id=other_order.id))

        invoices, total = await dispatch_invoice_service.get_all(db, client_id=client.id)
        assert total == 1
        assert invoices[0].order_no == order.order_no

        stats = await dispatch_invoice_service.analytics(db)
        assert stats.total_invoices == 2
        assert stats.total_value == Decimal("1200.00")
        assert stats.top_clients[0].client_id == client.id
        assert len(stats.monthly) == 1

    async def test_get_by_id_rejects_plain_sub_orders(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "2")])
        _, (sub,) = await sub_order_service.create_batch(db, batch(order, (product, "1")))

        with pytest.raises(NotFoundError):
            await dispatch_invoice_service.get_by_id(db, sub.id)

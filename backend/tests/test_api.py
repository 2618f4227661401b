"""
HTTP tests for the API routers.

Requests go through httpx's ASGI transport against the FastAPI app, with
get_db bound to the test session and the signed-in user overridden per
role.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient

from orderledger.core.database import get_db
from orderledger.core.deps import get_current_user
from orderledger.main import app
from orderledger.models.user import UserRole
from orderledger.services.pdf_service import pdf_service

from conftest import make_order

API = "/api/v1"


@pytest.fixture
async def api(db):
    """Factory for clients signed in as the given role (None = anonymous)."""

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def make(role=UserRole.ADMIN):
        if role is None:
            app.dependency_overrides.pop(get_current_user, None)
        else:
            user = SimpleNamespace(id="u-1", email="desk@example.com", role=role.value, is_active=True)
            app.dependency_overrides[get_current_user] = lambda: user
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


# ============================================================
# System and auth
# ============================================================


class TestSystem:

    async def test_health(self, api):
        response = await api().get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_anonymous_request_rejected(self, api):
        http = api(role=None)

        response = await http.get(f"{API}/client/")

        assert response.status_code == 401

    async def test_first_user_registers_and_signs_in(self, api):
        http = api(role=None)

        response = await http.post(f"{API}/auth/register", json={
            "email": "owner@example.com",
            "password": "s3cret-pass",
            "full_name": "Owner",
        })
        assert response.status_code == 201
        assert response.json()["role"] == "admin"

        response = await http.post(f"{API}/auth/login", json={
            "email": "owner@example.com",
            "password": "s3cret-pass",
        })
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        response = await http.post(f"{API}/auth/register", json={
            "email": "desk@example.com",
            "password": "s3cret-pass",
            "full_name": "Desk",
        })
        assert response.status_code == 401


# ============================================================
# Role checks
# ============================================================


class TestRoles:

    async def test_sub_admin_cannot_create_orders(self, api, client, product):
        http = api(role=UserRole.SUB_ADMIN)

        response = await http.post(f"{API}/order/", json={
            "client_id": str(client.id),
            "products": [{"product_id": str(product.id), "quantity": "1"}],
        })

        assert response.status_code == 403
        body = response.json()
        assert body["error_code"] == "FORBIDDEN"
        assert body["role"] == "sub-admin"

    async def test_sub_admin_cannot_record_payments(self, api, random_id):
        http = api(role=UserRole.SUB_ADMIN)

        response = await http.delete(f"{API}/transaction/{random_id}")

        assert response.status_code == 403

    async def test_sub_admin_can_dispatch(self, api, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        http = api(role=UserRole.SUB_ADMIN)

        response = await http.post(f"{API}/sub-order/batch", json={
            "order_id": str(order.id),
            "lines": [{"product_id": str(product.id), "quantity": "4"}],
        })

        assert response.status_code == 201
        body = response.json()
        assert body["order_status"] == "PARTIALLY_DISPATCHED"
        assert Decimal(body["remaining_quantity"]) == Decimal("6")

    async def test_sub_admin_dashboard_only(self, api):
        http = api(role=UserRole.SUB_ADMIN)

        assert (await http.get(f"{API}/dashboard/sub-admin")).status_code == 200
        assert (await http.get(f"{API}/dashboard/admin")).status_code == 403


# ============================================================
# Orders, dispatch and payments
# ============================================================


class TestOrderEndpoints:

    async def test_create_client_and_order(self, api, product):
        http = api()

        response = await http.post(f"{API}/client/", json={"name": "Kota Builders", "mobile": "98290 12345"})
        assert response.status_code == 201
        client = response.json()
        assert client["mobile"] == "9829012345"

        response = await http.post(f"{API}/order/", json={
            "client_id": client["id"],
            "products": [{"product_id": str(product.id), "quantity": "10"}],
        })

        assert response.status_code == 201
        body = response.json()
        assert Decimal(body["order"]["total_amount"]) == Decimal("1000")
        assert body["order"]["settlement_status"] == "OPEN"
        assert Decimal(body["allocated_amount"]) == Decimal("0")
        assert body["warnings"] == []

    async def test_invalid_payload_is_422(self, api, client):
        http = api()

        response = await http.post(f"{API}/order/", json={"client_id": str(client.id), "products": []})

        assert response.status_code == 422

    async def test_duplicate_product_lines_are_422(self, api, client, product):
        http = api()
        line = {"product_id": str(product.id), "quantity": "5"}

        response = await http.post(f"{API}/order/", json={"client_id": str(client.id), "products": [line, line]})

        assert response.status_code == 422
        orders = await http.get(f"{API}/order/")
        assert orders.json()["total"] == 0

    async def test_overdispatch_is_400_with_details(self, api, db, client, product):
        order, _ = await make_order(db, client, [(product, "5")])
        http = api()

        response = await http.post(f"{API}/sub-order/", json={
            "order_id": str(order.id),
            "product_id": str(product.id),
            "quantity": "6",
        })

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "BAD_REQUEST"
        assert Decimal(body["requested"]) == Decimal("6")

    async def test_payment_form_and_overpayment(self, api, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        http = api()
        order_id = order.id
        form = {"client_id": str(client.id), "order_id": str(order.id)}

        response = await http.post(f"{API}/transaction/", data={**form, "amount": "600", "payment_method": "upi"})
        assert response.status_code == 201
        assert response.json()["payment_method"] == "upi"

        response = await http.post(f"{API}/transaction/", data={**form, "amount": "500"})
        assert response.status_code == 400
        assert response.json()["outstanding"] == "400.00"

        response = await http.get(f"{API}/transaction/order/{order_id}")
        body = response.json()
        assert len(body["transactions"]) == 1
        assert body["txn_status"] == "PARTIAL"

    async def test_cancel_then_status_conflict(self, api, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        http = api()

        response = await http.patch(f"{API}/order/{order.id}/status", json={"status": "CANCELLED"})
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        response = await http.patch(f"{API}/order/{order.id}/status", json={"status": "CLOSED"})
        assert response.status_code == 400

        response = await http.patch(f"{API}/order/{order.id}/status", json={"status": "COMPLETED"})
        assert response.status_code == 422

    async def test_bulk_status(self, api, db, client, product):
        order, _ = await make_order(db, client, [(product, "2")])
        http = api()
        response = await http.post(f"{API}/sub-order/batch", json={
            "order_id": str(order.id),
            "lines": [{"product_id": str(product.id), "quantity": "2"}],
        })
        sub_id = response.json()["sub_orders"][0]["id"]

        response = await http.patch(f"{API}/sub-order/bulk-status", json={
            "updates": [
                {"sub_order_id": sub_id, "status": "COMPLETED"},
                {"sub_order_id": "00000000-0000-0000-0000-000000000000", "status": "COMPLETED"},
            ],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success_count"] == 1
        assert body["failed_count"] == 1
        assert body["completed_orders"] == [order.order_no]


# ============================================================
# PDF responses
# ============================================================


class TestPdfEndpoints:

    async def test_advance_returns_receipt_pdf(self, api, client, monkeypatch):
        monkeypatch.setattr(pdf_service, "advanced_payment_receipt", lambda advance: b"%PDF-receipt")
        http = api()

        response = await http.post(f"{API}/advanced-payment/", data={"client_id": str(client.id), "amount": "500"})

        assert response.status_code == 201
        assert response.headers["content-type"] == "application/pdf"
        assert response.content == b"%PDF-receipt"
        advance_id = response.headers["x-advanced-payment-id"]

        response = await http.get(f"{API}/advanced-payment/client/{client.id}/balance")
        assert Decimal(response.json()["available_balance"]) == Decimal("500")
        assert (await http.get(f"{API}/advanced-payment/{advance_id}")).status_code == 200

    async def test_advance_survives_pdf_failure(self, api, client, monkeypatch):
        def broken(advance):
            raise RuntimeError("WeasyPrint dependencies not found")

        monkeypatch.setattr(pdf_service, "advanced_payment_receipt", broken)
        http = api()

        response = await http.post(f"{API}/advanced-payment/", data={"client_id": str(client.id), "amount": "500"})

        assert response.status_code == 201
        body = response.json()
        assert body["pdf_error"] == "WeasyPrint dependencies not found"
        assert Decimal(body["advanced_payment"]["remaining_amount"]) == Decimal("500")

    async def test_dispatch_invoice_pdf(self, api, db, client, product, monkeypatch):
        monkeypatch.setattr(pdf_service, "dispatch_invoice", lambda invoice, order: b"%PDF-invoice")
        order, _ = await make_order(db, client, [(product, "10")])
        http = api()

        response = await http.post(f"{API}/sub-order/dispatch-invoice", json={
            "order_id": str(order.id),
            "lines": [{"product_id": str(product.id), "quantity": "3"}],
            "vehicle_no": "RJ14 GA 1234",
        })

        assert response.status_code == 201
        assert response.content == b"%PDF-invoice"
        invoice_id = response.headers["x-dispatch-invoice-id"]

        response = await http.get(f"{API}/dispatch-invoice/{invoice_id}")
        assert response.status_code == 200
        assert response.json()["invoice_no"] == f"DISP-{order.order_no}-1"

    async def test_order_ledger_pdf(self, api, db, client, product, monkeypatch):
        monkeypatch.setattr(pdf_service, "order_ledger", lambda ledger: b"%PDF-ledger")
        order, _ = await make_order(db, client, [(product, "10")])
        http = api()

        response = await http.get(f"{API}/order/{order.id}/ledger")

        assert response.status_code == 200
        assert response.content == b"%PDF-ledger"
        assert f"order-{order.order_no}" in response.headers["content-disposition"]

"""
Tests for PDF documents and proof-of-payment storage.

HTML is rendered through the real Jinja templates; WeasyPrint itself is
patched out so the tests do not need Pango.
"""

import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from orderledger.core.exceptions import BadRequestError
from orderledger.schemas.advanced_payment import AdvancedPaymentCreate
from orderledger.schemas.sub_order import DispatchInvoiceCreate, DispatchLine, Party, SubOrderBatchCreate
from orderledger.schemas.transaction import TransactionCreate
from orderledger.services import pdf_service as pdf_module
from orderledger.services.advanced_payment_service import advanced_payment_service
from orderledger.services.order_service import order_service
from orderledger.services.pdf_service import format_date, format_money, pdf_service
from orderledger.services.storage_service import StorageService, build_key, safe_filename, slugify
from orderledger.services.sub_order_service import sub_order_service
from orderledger.services.transaction_service import transaction_service

from conftest import make_order


def upload(content: bytes, filename="receipt.pdf", content_type="application/pdf") -> UploadFile:
    return UploadFile(
        file=BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": content_type}),
    )


# ============================================================
# Filters
# ============================================================


class TestFilters:

    def test_money(self):
        assert format_money(Decimal("1234.5")) == "₹ 1,234.50"
        assert format_money(None) == "₹ 0.00"
        assert format_money("72.00") == "₹ 72.00"

    def test_date(self):
        assert format_date(datetime(2024, 3, 9, tzinfo=timezone.utc)) == "09/03/2024"
        assert format_date(None) == ""


# ============================================================
# Templates
# ============================================================


class TestTemplates:

    async def test_order_ledger(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        await sub_order_service.create_batch(
            db,
            SubOrderBatchCreate(
                order_id=order.id,
                lines=[DispatchLine(product_id=product.id, quantity=Decimal("4"))],
            ),
        )
        await transaction_service.create(
            db,
            TransactionCreate(client_id=client.id, order_id=order.id, amount=Decimal("250"), txn_number="CHQ-77"),
        )

        ledger = await order_service.ledger(db, order.id)
        html = pdf_service.render_html("order_ledger.html", ledger)

        assert "Order ledger" in html
        assert client.name in html
        assert product.name in html
        assert "CHQ-77" in html
        assert "₹ 750.00" in html
        assert "OPEN" in html

    async def test_dispatch_invoice(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "10")])
        invoice = await sub_order_service.create_dispatch_invoice(
            db,
            DispatchInvoiceCreate(
                order_id=order.id,
                lines=[DispatchLine(product_id=product.id, quantity=Decimal("4"))],
                vehicle_no="RJ14 GA 1234",
                buyer=Party(name="Kota Builders", gstin="08ABCDE1234F1Z5"),
            ),
        )
        info = invoice.dispatch_info

        html = pdf_service.render_html(
            "dispatch_invoice.html",
            {"invoice": invoice, "order": order, "client": client, "info": info, "products": info["products"]},
        )

        assert invoice.invoice_no in html
        assert "RJ14 GA 1234" in html
        assert "Kota Builders" in html
        assert "₹ 400.00" in html

    async def test_advance_receipt(self, db, client, product):
        order, _ = await make_order(db, client, [(product, "2")])
        advance, _ = await advanced_payment_service.create(
            db, AdvancedPaymentCreate(client_id=client.id, amount=Decimal("500"), order_id=order.id)
        )

        html = pdf_service.render_html(
            "advanced_payment_receipt.html",
            {"advance": advance, "client": advance.client, "usages": advance.usage_history},
        )

        assert "Advance receipt" in html
        assert f"#{order.order_no}" in html
        assert "₹ 300.00" in html

    def test_render_passes_html_to_weasyprint(self):
        document = MagicMock()
        document.write_pdf.return_value = b"%PDF-1.7"
        html_cls = MagicMock(return_value=document)
        css_cls = MagicMock()

        with patch.object(pdf_module, "_get_weasyprint", return_value=(html_cls, css_cls)):
            content = pdf_service._render("transaction_receipt.html", {
                "txn": SimpleNamespace(
                    transaction_date=date(2024, 3, 9), txn_number=None, transaction_type="cash",
                    payment_method=None, amount=Decimal("250"), remarks=None,
                ),
                "order": SimpleNamespace(
                    order_no=7, total_amount=Decimal("1000"), paid_amount=Decimal("250"),
                    remaining_amount=Decimal("750"),
                ),
                "client": SimpleNamespace(name="Sharma Traders", client_no=3, mobile=None),
            })

        assert content == b"%PDF-1.7"
        assert "Payment receipt" in html_cls.call_args.kwargs["string"]
        css_cls.assert_called_once_with(filename=os.path.join(pdf_module.TEMPLATES_DIR, pdf_module.STYLESHEET))


# ============================================================
# Storage
# ============================================================


class TestStorage:

    def test_key_layout(self):
        now = datetime(2024, 3, 9, 10, 0, tzinfo=timezone.utc)

        key = build_key("Sharma Traders Pvt. Ltd.", "transactions", "UPI receipt (1).png", now=now)

        client_slug, env, category, day, name = key.split("/")
        assert client_slug == "sharma-traders-pvt-ltd"
        assert category == "transactions"
        assert day == "2024-03-09"
        assert name == f"{int(now.timestamp() * 1000)}_UPI_receipt_1_.png"

    def test_helpers(self):
        assert slugify("!!!") == "client"
        assert safe_filename("../../etc/passwd") == "passwd"

    async def test_save_upload(self, tmp_path):
        storage = StorageService(root=str(tmp_path))

        key = await storage.save_upload("Sharma Traders", "advanced-payments", upload(b"%PDF-1.4 body"))

        path = storage.path_for(key)
        assert path.startswith(str(tmp_path))
        with open(path, "rb") as f:
            assert f.read() == b"%PDF-1.4 body"

    async def test_rejects_unsupported_type(self, tmp_path):
        storage = StorageService(root=str(tmp_path))

        with pytest.raises(BadRequestError):
            await storage.save_upload("Sharma", "transactions", upload(b"MZ", "tool.exe", "application/x-msdownload"))

        assert os.listdir(tmp_path) == []

    async def test_rejects_empty_file(self, tmp_path):
        with pytest.raises(BadRequestError):
            await StorageService(root=str(tmp_path)).save_upload("Sharma", "transactions", upload(b""))

    def test_rejects_large_file(self):
        storage = StorageService(root="/unused")
        with pytest.raises(BadRequestError):
            storage.validate("application/pdf", 50 * 1024 * 1024)

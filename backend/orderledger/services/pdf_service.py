"""
PDF generation with WeasyPrint + Jinja2
Project: Order Ledger

Documents: order ledger, transaction receipt, advanced payment receipt
and dispatch invoice. Callers pass rows with their relationships already
loaded.
"""

import logging
import os
from datetime import date
from decimal import Decimal
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from orderledger.core.config import settings
from orderledger.models import AdvancedPayment, Order, SubOrder, Transaction

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")
STYLESHEET = "document_style.css"


# Lazy import of weasyprint to avoid startup errors if its native libraries aren't available
def _get_weasyprint():
    try:
        from weasyprint import HTML, CSS
        return HTML, CSS
    except OSError as e:
        raise RuntimeError(
            "WeasyPrint dependencies not found. Please install Pango "
            "(e.g. apt-get install libpango-1.0-0 libpangoft2-1.0-0)"
        ) from e


def format_money(value: Any) -> str:
    """Jinja filter: 1234.5 -> '₹ 1,234.50'."""
    amount = Decimal(str(value or 0))
    return f"{settings.currency_symbol} {amount:,.2f}"


def format_date(value: Any) -> str:
    return value.strftime("%d/%m/%Y") if value else ""


class PdfService:
    """Renders HTML templates to PDF bytes."""

    def __init__(self):
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["money"] = format_money
        self.env.filters["date"] = format_date

    def _company(self) -> dict[str, Any]:
        return {
            "name": settings.company_name,
            "address": settings.company_address,
            "phone": settings.company_phone,
            "email": settings.company_email,
            "gstin": settings.company_gstin,
        }

    def render_html(self, template_name: str, context: dict[str, Any]) -> str:
        template = self.env.get_template(template_name)
        return template.render(
            company=self._company(),
            today=date.today().strftime("%d/%m/%Y"),
            **context,
        )

    def _render(self, template_name: str, context: dict[str, Any]) -> bytes:
        HTML, CSS = _get_weasyprint()
        html_out = self.render_html(template_name, context)
        css = CSS(filename=os.path.join(TEMPLATES_DIR, STYLESHEET))
        pdf_bytes = HTML(string=html_out, base_url=TEMPLATES_DIR).write_pdf(stylesheets=[css])
        logger.info("Rendered %s (%s bytes)", template_name, len(pdf_bytes))
        return pdf_bytes

    def order_ledger(self, ledger: dict[str, Any]) -> bytes:
        """
        Args:
            ledger: output of OrderService.ledger
        """
        return self._render("order_ledger.html", ledger)

    def transaction_receipt(self, txn: Transaction, order: Order) -> bytes:
        return self._render(
            "transaction_receipt.html",
            {"txn": txn, "order": order, "client": order.client},
        )

    def advanced_payment_receipt(self, advance: AdvancedPayment) -> bytes:
        return self._render(
            "advanced_payment_receipt.html",
            {"advance": advance, "client": advance.client, "usages": advance.usage_history},
        )

    def dispatch_invoice(self, invoice: SubOrder, order: Order) -> bytes:
        info = invoice.dispatch_info or {}
        return self._render(
            "dispatch_invoice.html",
            {
                "invoice": invoice,
                "order": order,
                "client": order.client,
                "info": info,
                "products": info.get("products", []),
            },
        )


pdf_service = PdfService()

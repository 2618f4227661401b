"""
Unit tests for ledger_rules.

Orders are built as transient model instances; nothing touches the
database.
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from orderledger.core.exceptions import BadRequestError, ConflictError, NotFoundError
from orderledger.models import Order, OrderLine
from orderledger.models.order import OrderStatus, SubOrderStatus, TxnStatus
from orderledger.services import ledger_rules
from orderledger.services.ledger_rules import DispatchRequest, SettlementStatus


def build_order(*lines, status=OrderStatus.PENDING, gst_amount="0.00"):
    """lines: (product_id, qty, rate) tuples."""
    order_lines = []
    for n, (product_id, qty, rate) in enumerate(lines, start=1):
        qty, rate = Decimal(qty), Decimal(rate)
        order_lines.append(OrderLine(
            line_no=n,
            product_id=product_id,
            quantity=qty,
            remaining_quantity=qty,
            unit_type="NOS",
            rate_price=rate,
            discount=Decimal("0"),
            amount=ledger_rules.line_amount(rate, qty),
        ))
    subtotal = sum((l.amount for l in order_lines), Decimal("0"))
    total = subtotal + Decimal(gst_amount)
    quantity = sum((l.quantity for l in order_lines), Decimal("0"))
    return Order(
        order_no=1,
        client_id=uuid.uuid4(),
        status=status.value,
        txn_status=TxnStatus.PENDING.value,
        quantity=quantity,
        remaining_quantity=quantity,
        subtotal=subtotal,
        gst_amount=Decimal(gst_amount),
        total_amount=total,
        remaining_amount=total,
        dispatched_value=Decimal("0.00"),
        lines=order_lines,
    )


# ============================================================
# Pricing
# ============================================================


class TestPricing:

    def test_line_amount_without_discount(self):
        assert ledger_rules.line_amount(Decimal("100"), Decimal("10")) == Decimal("1000.00")

    def test_line_amount_with_discount(self):
        assert ledger_rules.line_amount(Decimal("250"), Decimal("4"), Decimal("10")) == Decimal("900.00")

    def test_line_amount_rounds_half_up(self):
        assert ledger_rules.line_amount(Decimal("0.125"), Decimal("1")) == Decimal("0.13")

    @pytest.mark.parametrize("rate,qty,discount", [
        ("100", "0", "0"),
        ("-1", "1", "0"),
        ("100", "1", "101"),
    ])
    def test_line_amount_rejects_invalid_input(self, rate, qty, discount):
        with pytest.raises(BadRequestError):
            ledger_rules.line_amount(Decimal(rate), Decimal(qty), Decimal(discount))

    def test_totals_without_gst(self):
        totals = ledger_rules.order_totals([Decimal("600"), Decimal("400")], gst_enabled=False, gst_rate=Decimal("18"))
        assert totals.subtotal == Decimal("1000.00")
        assert totals.gst_amount == Decimal("0.00")
        assert totals.gst_rate == Decimal("0.00")
        assert totals.total_amount == Decimal("1000.00")

    def test_totals_with_gst(self):
        totals = ledger_rules.order_totals([Decimal("1000")], gst_enabled=True, gst_rate=Decimal("18"))
        assert totals.gst_amount == Decimal("180.00")
        assert totals.total_amount == Decimal("1180.00")


# ============================================================
# Dispatch
# ============================================================


class TestDispatchValidation:

    def test_valid_batch_passes(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        ledger_rules.validate_dispatch_batch(order, [DispatchRequest(pid, Decimal("4"))])

    def test_empty_batch_rejected(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        with pytest.raises(BadRequestError):
            ledger_rules.validate_dispatch_batch(order, [])

    def test_quantities_summed_per_product(self):
        """Two lines of 6 against a remaining 10 are rejected together."""
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        batch = [DispatchRequest(pid, Decimal("6")), DispatchRequest(pid, Decimal("6"))]

        with pytest.raises(BadRequestError) as exc_info:
            ledger_rules.validate_dispatch_batch(order, batch)

        assert exc_info.value.extra["requested"] == "12"
        assert order.lines[0].remaining_quantity == Decimal("10")

    def test_product_not_on_order(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        with pytest.raises(NotFoundError):
            ledger_rules.validate_dispatch_batch(order, [DispatchRequest(uuid.uuid4(), Decimal("1"))])

    def test_unit_mismatch(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        with pytest.raises(BadRequestError, match="Unit type mismatch"):
            ledger_rules.validate_dispatch_batch(
                order, [DispatchRequest(pid, Decimal("1"), unit_type="SET")]
            )

    @pytest.mark.parametrize("status", [OrderStatus.CLOSED, OrderStatus.CANCELLED])
    def test_terminal_orders_reject_dispatch(self, status):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"), status=status)
        with pytest.raises(BadRequestError):
            ledger_rules.validate_dispatch_batch(order, [DispatchRequest(pid, Decimal("1"))])


class TestApplyDispatch:

    def test_dispatch_moves_quantity_not_money(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))

        value = ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("4")))

        assert value == Decimal("400.00")
        assert order.lines[0].remaining_quantity == Decimal("6")
        assert order.remaining_quantity == Decimal("6")
        assert order.dispatched_value == Decimal("400.00")
        assert order.remaining_amount == Decimal("1000.00")

    def test_remaining_quantity_is_sum_of_lines(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        order = build_order((a, "5", "10"), (b, "3", "20"))

        ledger_rules.apply_dispatch(order, DispatchRequest(a, Decimal("2")))
        ledger_rules.apply_dispatch(order, DispatchRequest(b, Decimal("3")))

        assert order.remaining_quantity == sum(l.remaining_quantity for l in order.lines)
        assert order.remaining_quantity == Decimal("3")


# ============================================================
# Order status
# ============================================================


class TestOrderStatus:

    def test_progress_status(self):
        assert ledger_rules.dispatch_progress_status(Decimal("0"), Decimal("100")) == OrderStatus.PENDING
        assert ledger_rules.dispatch_progress_status(Decimal("40"), Decimal("100")) == OrderStatus.PARTIALLY_DISPATCHED
        assert ledger_rules.dispatch_progress_status(Decimal("100"), Decimal("100")) == OrderStatus.COMPLETED

    def test_completed_when_all_sub_orders_completed_and_nothing_left(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("10")))

        status = ledger_rules.derive_order_status(order, [SubOrderStatus.COMPLETED.value])

        assert status == OrderStatus.COMPLETED

    def test_fully_dispatched_with_open_sub_orders_stays_partial(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("10")))

        status = ledger_rules.derive_order_status(
            order, [SubOrderStatus.COMPLETED.value, SubOrderStatus.DISPATCHED.value]
        )

        assert status == OrderStatus.PARTIALLY_DISPATCHED

    def test_all_completed_but_quantity_left(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"))
        ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("4")))

        status = ledger_rules.derive_order_status(order, [SubOrderStatus.COMPLETED.value])

        assert status == OrderStatus.PARTIALLY_DISPATCHED

    def test_completed_order_reverts_to_pending(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "100"), status=OrderStatus.COMPLETED)
        ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("10")))

        status = ledger_rules.derive_order_status(order, [SubOrderStatus.DISPATCHED.value])

        assert status == OrderStatus.PENDING

    @pytest.mark.parametrize("status", [OrderStatus.CLOSED, OrderStatus.CANCELLED])
    def test_terminal_statuses_kept(self, status):
        order = build_order((uuid.uuid4(), "10", "100"), status=status)
        assert ledger_rules.derive_order_status(order, [SubOrderStatus.COMPLETED.value]) == status

    def test_zero_rated_dispatch_is_partial(self):
        pid = uuid.uuid4()
        order = build_order((pid, "10", "0"))
        ledger_rules.apply_dispatch(order, DispatchRequest(pid, Decimal("3")))

        assert ledger_rules.derive_order_status(order, []) == OrderStatus.PARTIALLY_DISPATCHED

    def test_allowed_transitions(self):
        ledger_rules.check_transition(OrderStatus.PENDING.value, OrderStatus.CANCELLED)
        ledger_rules.check_transition(OrderStatus.COMPLETED.value, OrderStatus.CLOSED)

    @pytest.mark.parametrize("current,target", [
        (OrderStatus.COMPLETED, OrderStatus.CANCELLED),
        (OrderStatus.CLOSED, OrderStatus.CANCELLED),
        (OrderStatus.CANCELLED, OrderStatus.CLOSED),
    ])
    def test_forbidden_transitions(self, current, target):
        with pytest.raises(BadRequestError) as exc_info:
            ledger_rules.check_transition(current.value, target)
        assert "allowed" in exc_info.value.extra


# ============================================================
# Payments
# ============================================================


class TestPayments:

    def test_txn_status(self):
        total = Decimal("1000")
        assert ledger_rules.derive_txn_status(total, Decimal("1000")) == TxnStatus.PENDING
        assert ledger_rules.derive_txn_status(total, Decimal("1")) == TxnStatus.PARTIAL
        assert ledger_rules.derive_txn_status(total, Decimal("0")) == TxnStatus.COMPLETED

    def test_full_payment_completes(self):
        order = build_order((uuid.uuid4(), "10", "100"))

        ledger_rules.check_payment(order, Decimal("1000"), Decimal("0"))
        ledger_rules.apply_payment(order, Decimal("1000"))

        assert order.remaining_amount == Decimal("0.00")
        assert order.txn_status == TxnStatus.COMPLETED.value

    def test_overpayment_rejected(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        with pytest.raises(BadRequestError) as exc_info:
            ledger_rules.check_payment(order, Decimal("1000.01"), Decimal("0"))
        assert exc_info.value.extra["outstanding"] == "1000.00"

    def test_paid_sum_over_total_rejected(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        with pytest.raises(BadRequestError):
            ledger_rules.check_payment(order, Decimal("100"), already_paid=Decimal("950"))

    def test_reverse_payment_restores_balance(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        ledger_rules.apply_payment(order, Decimal("300"))
        assert order.txn_status == TxnStatus.PARTIAL.value

        ledger_rules.reverse_payment(order, Decimal("300"))

        assert order.remaining_amount == Decimal("1000.00")
        assert order.txn_status == TxnStatus.PENDING.value

    def test_reverse_payment_beyond_total_rejected(self):
        order = build_order((uuid.uuid4(), "10", "100"))
        ledger_rules.apply_payment(order, Decimal("300"))

        with pytest.raises(ConflictError) as exc_info:
            ledger_rules.reverse_payment(order, Decimal("300.01"))

        assert exc_info.value.extra == {"remaining": "700.00", "total": "1000.00"}
        assert order.remaining_amount == Decimal("700.00")
        assert order.txn_status == TxnStatus.PARTIAL.value

    @pytest.mark.parametrize("status,txn_status,expected", [
        ("COMPLETED", "COMPLETED", SettlementStatus.SETTLED),
        ("COMPLETED", "PARTIAL", SettlementStatus.OPEN),
        ("PARTIALLY_DISPATCHED", "COMPLETED", SettlementStatus.OPEN),
        ("CANCELLED", "PENDING", SettlementStatus.CANCELLED),
    ])
    def test_settlement_status(self, status, txn_status, expected):
        assert ledger_rules.settlement_status(status, txn_status) == expected


# ============================================================
# FIFO allocation
# ============================================================


class TestFifoAllocation:

    @staticmethod
    def advance(remaining):
        return SimpleNamespace(id=uuid.uuid4(), remaining_amount=Decimal(remaining))

    def test_oldest_credit_consumed_first(self):
        first, second = self.advance("300"), self.advance("500")

        plan = ledger_rules.plan_fifo_allocation([first, second], Decimal("600"))

        assert [(s.advance_id, s.amount) for s in plan] == [
            (first.id, Decimal("300")),
            (second.id, Decimal("300")),
        ]

    def test_stops_when_order_is_covered(self):
        first, second = self.advance("1000"), self.advance("500")

        plan = ledger_rules.plan_fifo_allocation([first, second], Decimal("800"))

        assert len(plan) == 1
        assert plan[0].amount == Decimal("800")

    def test_credit_exhausted(self):
        plan = ledger_rules.plan_fifo_allocation([self.advance("500")], Decimal("800"))
        assert sum(s.amount for s in plan) == Decimal("500")

    def test_empty_advances_skipped(self):
        empty, full = self.advance("0"), self.advance("200")
        plan = ledger_rules.plan_fifo_allocation([empty, full], Decimal("100"))
        assert [s.advance_id for s in plan] == [full.id]

    def test_nothing_outstanding(self):
        assert ledger_rules.plan_fifo_allocation([self.advance("500")], Decimal("0")) == []

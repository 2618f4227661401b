"""
Bookkeeping rules
Project: Order Ledger

Pure functions for pricing, dispatch validation, payment and dispatch
status derivation and FIFO advance allocation. Nothing here touches the
database; services load the rows, call these rules and persist the
result.
"""

from __future__ import annotations
import uuid
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Sequence

from orderledger.core.exceptions import BadRequestError, ConflictError, NotFoundError
from orderledger.models.order import OrderStatus, SubOrderStatus, TxnStatus

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Manual status changes. Dispatch-driven statuses are derived, not set.
VALID_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.PENDING: [OrderStatus.CLOSED, OrderStatus.CANCELLED],
    OrderStatus.PARTIALLY_DISPATCHED: [OrderStatus.CLOSED, OrderStatus.CANCELLED],
    OrderStatus.COMPLETED: [OrderStatus.CLOSED],
    OrderStatus.CLOSED: [],
    OrderStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset({OrderStatus.CLOSED, OrderStatus.CANCELLED})


class SettlementStatus(str, Enum):
    """Dispatch and payment combined."""
    OPEN = "OPEN"
    SETTLED = "SETTLED"
    CANCELLED = "CANCELLED"


def money(value) -> Decimal:
    """Round to 2 decimal places, half up."""
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# ------------------------------------------------------------
# Pricing
# ------------------------------------------------------------

def line_amount(rate: Decimal, quantity: Decimal, discount: Decimal = ZERO) -> Decimal:
    """
    Amount of an order line: rate × quantity less a percentage discount.

    Raises:
        BadRequestError: negative rate, non-positive quantity or a discount
            outside 0-100
    """
    if quantity <= ZERO:
        raise BadRequestError("Quantity must be greater than zero")
    if rate < ZERO:
        raise BadRequestError("Rate cannot be negative")
    if discount < ZERO or discount > HUNDRED:
        raise BadRequestError("Discount must be between 0 and 100")
    gross = rate * quantity
    return money(gross - gross * discount / HUNDRED)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    gst_rate: Decimal
    gst_amount: Decimal
    total_amount: Decimal


def order_totals(
    line_amounts: Iterable[Decimal],
    gst_enabled: bool = False,
    gst_rate: Decimal = ZERO,
) -> OrderTotals:
    """Subtotal, GST and grand total of an order."""
    subtotal = money(sum(line_amounts, ZERO))
    rate = gst_rate if gst_enabled else ZERO
    gst_amount = money(subtotal * rate / HUNDRED)
    return OrderTotals(
        subtotal=subtotal,
        gst_rate=money(rate),
        gst_amount=gst_amount,
        total_amount=subtotal + gst_amount,
    )


# ------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------

@dataclass(frozen=True)
class DispatchRequest:
    product_id: uuid.UUID
    quantity: Decimal
    unit_type: Optional[str] = None


def validate_dispatch_batch(order, requests: Sequence[DispatchRequest]) -> None:
    """
    Check a batch of dispatch lines against an order before applying any.

    Quantities for the same product are summed across the batch, so two
    lines of 4 against a remaining 6 are rejected together.

    Raises:
        BadRequestError: empty batch, closed order, unit mismatch or
            quantity above the remaining one
        NotFoundError: product not on the order
    """
    if not requests:
        raise BadRequestError("At least one dispatch line is required")

    if OrderStatus(order.status) in TERMINAL_STATUSES:
        raise BadRequestError(
            f"Order #{order.order_no} is {order.status} and cannot be dispatched"
        )

    requested: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
    for req in requests:
        if req.quantity <= ZERO:
            raise BadRequestError("Dispatch quantity must be greater than zero")
        line = order.get_line(req.product_id)
        if line is None:
            raise NotFoundError(
                f"Product {req.product_id} is not part of order #{order.order_no}"
            )
        if req.unit_type and req.unit_type != line.unit_type:
            raise BadRequestError(
                f"Unit type mismatch for product {req.product_id}: "
                f"expected {line.unit_type}, got {req.unit_type}"
            )
        requested[req.product_id] += req.quantity

    for product_id, total in requested.items():
        line = order.get_line(product_id)
        if total > line.remaining_quantity:
            raise BadRequestError(
                f"Dispatch quantity {total} exceeds remaining quantity "
                f"{line.remaining_quantity} for product {product_id}",
                extra={
                    "product_id": str(product_id),
                    "requested": str(total),
                    "remaining": str(line.remaining_quantity),
                },
            )


def apply_dispatch(order, request: DispatchRequest) -> Decimal:
    """
    Move `request.quantity` off the matching line and return the value
    dispatched. remaining_amount is left untouched.
    """
    line = order.get_line(request.product_id)
    line.remaining_quantity = line.remaining_quantity - request.quantity
    order.remaining_quantity = sum((l.remaining_quantity for l in order.lines), ZERO)
    value = money(line.unit_price * request.quantity)
    order.dispatched_value = money(order.dispatched_value + value)
    return value


def dispatch_progress_status(dispatched_value: Decimal, total_value: Decimal) -> OrderStatus:
    """Status from cumulative dispatched value against the order value."""
    if dispatched_value <= ZERO:
        return OrderStatus.PENDING
    if dispatched_value < total_value:
        return OrderStatus.PARTIALLY_DISPATCHED
    return OrderStatus.COMPLETED


def derive_order_status(order, sub_order_statuses: Sequence[str]) -> OrderStatus:
    """
    Dispatch status of an order after a dispatch or a sub-order status change.

    - CLOSED and CANCELLED are kept.
    - COMPLETED when there is at least one sub-order, all are COMPLETED
      and nothing remains to dispatch.
    - An order that was COMPLETED and no longer qualifies goes back to PENDING.
    - Otherwise the dispatch progress decides, and a fully dispatched order
      whose sub-orders are still open stays PARTIALLY_DISPATCHED.
    """
    status = OrderStatus(order.status)
    if status in TERMINAL_STATUSES:
        return status

    all_completed = bool(sub_order_statuses) and all(
        s == SubOrderStatus.COMPLETED.value for s in sub_order_statuses
    )
    if all_completed and order.remaining_quantity == ZERO:
        return OrderStatus.COMPLETED

    if status == OrderStatus.COMPLETED:
        return OrderStatus.PENDING

    progress = dispatch_progress_status(order.dispatched_value, order.subtotal)
    if progress == OrderStatus.COMPLETED:
        return OrderStatus.PARTIALLY_DISPATCHED
    if progress == OrderStatus.PENDING and order.remaining_quantity < order.quantity:
        # zero-rated lines dispatch no value
        return OrderStatus.PARTIALLY_DISPATCHED
    return progress


def check_transition(current: str, target: OrderStatus) -> None:
    """
    Raises:
        BadRequestError: when `target` is not reachable from `current`
    """
    allowed = VALID_TRANSITIONS.get(OrderStatus(current), [])
    if target not in allowed:
        raise BadRequestError(
            f"Status transition not allowed: {current} -> {target.value}",
            extra={"allowed": [s.value for s in allowed]},
        )


# ------------------------------------------------------------
# Payments
# ------------------------------------------------------------

def derive_txn_status(total_amount: Decimal, remaining_amount: Decimal) -> TxnStatus:
    if remaining_amount <= ZERO:
        return TxnStatus.COMPLETED
    if remaining_amount < total_amount:
        return TxnStatus.PARTIAL
    return TxnStatus.PENDING


def check_payment(order, amount: Decimal, already_paid: Decimal) -> None:
    """
    Raises:
        BadRequestError: non-positive amount, or one that would exceed
            the order total or its outstanding balance
    """
    if amount <= ZERO:
        raise BadRequestError("Payment amount must be greater than zero")
    if already_paid + amount > order.total_amount or amount > order.remaining_amount:
        raise BadRequestError(
            f"Payment of {amount} exceeds the outstanding amount "
            f"{order.remaining_amount} of order #{order.order_no}",
            extra={
                "outstanding": str(order.remaining_amount),
                "already_paid": str(already_paid),
            },
        )


def apply_payment(order, amount: Decimal) -> None:
    order.remaining_amount = money(order.remaining_amount - amount)
    order.txn_status = derive_txn_status(order.total_amount, order.remaining_amount).value


def reverse_payment(order, amount: Decimal) -> None:
    """
    Raises:
        ConflictError: the restored balance would exceed the order total,
            i.e. the recorded payments and remaining_amount disagree
    """
    restored = money(order.remaining_amount + amount)
    if restored > order.total_amount:
        raise ConflictError(
            f"Reversing {amount} would leave order #{order.order_no} with "
            f"{restored} outstanding on a total of {order.total_amount}",
            extra={
                "remaining": str(order.remaining_amount),
                "total": str(order.total_amount),
            },
        )
    order.remaining_amount = restored
    order.txn_status = derive_txn_status(order.total_amount, order.remaining_amount).value


def settlement_status(status: str, txn_status: str) -> SettlementStatus:
    if status == OrderStatus.CANCELLED.value:
        return SettlementStatus.CANCELLED
    if status == OrderStatus.COMPLETED.value and txn_status == TxnStatus.COMPLETED.value:
        return SettlementStatus.SETTLED
    return SettlementStatus.OPEN


# ------------------------------------------------------------
# FIFO allocation
# ------------------------------------------------------------

@dataclass(frozen=True)
class AllocationStep:
    advance_id: uuid.UUID
    amount: Decimal


def plan_fifo_allocation(advances: Sequence, outstanding: Decimal) -> list[AllocationStep]:
    """
    Walk `advances` (already oldest first) and take
    min(advance.remaining_amount, outstanding) from each until the order is
    covered or the credit runs out.
    """
    steps: list[AllocationStep] = []
    left = outstanding
    for advance in advances:
        if left <= ZERO:
            break
        if advance.remaining_amount <= ZERO:
            continue
        take = min(advance.remaining_amount, left)
        steps.append(AllocationStep(advance_id=advance.id, amount=take))
        left -= take
    return steps

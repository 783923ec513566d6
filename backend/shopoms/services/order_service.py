"""
Order Ledger Service - submission and read path

WHY: Orders are the only financial record. Validation happens entirely
before anything is written, and a submission is written exactly once.

Pricing modes (ORDER_PRICING_MODE):
- server: totals are recomputed from current catalog prices and the
  client's figures must agree within ORDER_PRICE_TOLERANCE
- client: the payload's totals are stored as given (legacy clients)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, ORDER_STATUS_OPEN
from ..validation import ValidationError, CENT, cents_to_amount, to_cents, to_positive_int
from ..time_utils import utcnow
from .concurrency import run_read, run_write
from .products_service import products_by_id


class InvalidOrder(ValidationError):
    """Raised for order payloads that fail validation."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PriceMismatch(InvalidOrder):
    """Client totals disagree with the server's recomputation."""


@dataclass(frozen=True)
class LineRequest:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class OrderRequest:
    customer_name: str
    lines: list[LineRequest]
    subtotal_cents: int
    tax_cents: int
    total_cents: int


@dataclass
class PricedOrder:
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    unit_prices: dict[int, int] = field(default_factory=dict)


_clock_lock = threading.Lock()
_last_created_at: datetime | None = None


def _next_created_at() -> datetime:
    """
    UTC now, clamped so it never goes below the previous order's timestamp
    in this process (wall clock adjustments can step backwards).
    """
    global _last_created_at
    with _clock_lock:
        now = utcnow()
        if _last_created_at is not None and now < _last_created_at:
            now = _last_created_at
        _last_created_at = now
        return now


def _product_ref(item: dict, index: int) -> int:
    ref = item.get("product", item.get("product_id"))
    if isinstance(ref, dict):
        ref = ref.get("id")
    if ref is None:
        raise InvalidOrder(f"Item {index + 1} is missing a product reference.")
    try:
        return to_positive_int(ref, f"items[{index}].product")
    except ValidationError as exc:
        raise InvalidOrder(str(exc))


def parse_order(payload) -> OrderRequest:
    """
    Shape validation shared by both pricing modes.

    Raises InvalidOrder with the first problem found.
    """
    if not isinstance(payload, dict):
        raise InvalidOrder("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise InvalidOrder("Order must have at least one item.")

    lines: list[LineRequest] = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise InvalidOrder(f"Item {index + 1} must be an object.")
        product_id = _product_ref(item, index)
        if "quantity" not in item:
            raise InvalidOrder(f"Item {index + 1} is missing a quantity.")
        try:
            quantity = to_positive_int(item["quantity"], f"items[{index}].quantity")
        except ValidationError as exc:
            raise InvalidOrder(str(exc))
        lines.append(LineRequest(product_id=product_id, quantity=quantity))

    totals = {}
    for key in ("subtotal", "tax", "total"):
        if key not in payload or payload[key] is None:
            raise InvalidOrder("Subtotal, tax, and total must be numbers.")
        try:
            totals[key] = to_cents(payload[key], key)
        except ValidationError as exc:
            raise InvalidOrder(str(exc))

    customer_name = payload.get("customer_name", payload.get("customerName")) or ""
    if not isinstance(customer_name, str):
        raise InvalidOrder("customer_name must be a string")
    customer_name = customer_name.strip()
    if len(customer_name) > 255:
        raise InvalidOrder("customer_name exceeds max length 255")

    return OrderRequest(
        customer_name=customer_name,
        lines=lines,
        subtotal_cents=totals["subtotal"],
        tax_cents=totals["tax"],
        total_cents=totals["total"],
    )


def _tolerance_cents() -> int:
    tolerance: Decimal = current_app.config["ORDER_PRICE_TOLERANCE"]
    return int((tolerance / CENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _check_balance(req: OrderRequest, tolerance_cents: int) -> None:
    drift = abs(req.subtotal_cents + req.tax_cents - req.total_cents)
    if drift > tolerance_cents:
        raise InvalidOrder(
            "Subtotal plus tax must equal total.",
            details={
                "subtotal": cents_to_amount(req.subtotal_cents),
                "tax": cents_to_amount(req.tax_cents),
                "total": cents_to_amount(req.total_cents),
            },
        )


def price_order(req: OrderRequest, tax_rate: Decimal) -> PricedOrder:
    """
    Authoritative totals from current catalog prices.

    Raises InvalidOrder if any line references a product that does not exist.
    """
    products = products_by_id(line.product_id for line in req.lines)
    missing = sorted({line.product_id for line in req.lines if line.product_id not in products})
    if missing:
        raise InvalidOrder(
            "Order references unknown products.",
            details={"product_ids": missing},
        )

    unit_prices = {pid: p.price_cents for pid, p in products.items()}
    subtotal = sum(unit_prices[line.product_id] * line.quantity for line in req.lines)
    tax = int((Decimal(subtotal) * tax_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return PricedOrder(
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=subtotal + tax,
        unit_prices=unit_prices,
    )


def _check_against_server_price(req: OrderRequest, priced: PricedOrder, tolerance_cents: int) -> None:
    diverging = {}
    for key in ("subtotal", "tax", "total"):
        submitted = getattr(req, f"{key}_cents")
        expected = getattr(priced, f"{key}_cents")
        if abs(submitted - expected) > tolerance_cents:
            diverging[key] = {
                "submitted": cents_to_amount(submitted),
                "expected": cents_to_amount(expected),
            }
    if diverging:
        current_app.logger.warning("Order rejected: price mismatch on %s", ", ".join(sorted(diverging)))
        raise PriceMismatch("Submitted totals do not match catalog prices.", details=diverging)


def submit_order(payload) -> Order:
    """
    Validate, price and persist an order.

    Nothing is written unless every check passes. The write is attempted once;
    a store failure surfaces as ServiceUnavailable without retry.

    Raises:
        InvalidOrder: bad shape, unbalanced totals, unknown product (server mode)
        PriceMismatch: client totals diverge from server pricing
        ServiceUnavailable: store unreachable
    """
    req = parse_order(payload)
    tolerance_cents = _tolerance_cents()
    _check_balance(req, tolerance_cents)

    unit_prices: dict[int, int] = {}
    subtotal, tax, total = req.subtotal_cents, req.tax_cents, req.total_cents

    if current_app.config["ORDER_PRICING_MODE"] == "server":
        priced = price_order(req, current_app.config["ORDER_TAX_RATE"])
        _check_against_server_price(req, priced, tolerance_cents)
        unit_prices = priced.unit_prices
        subtotal, tax, total = priced.subtotal_cents, priced.tax_cents, priced.total_cents

    order = Order(
        customer_name=req.customer_name,
        subtotal_cents=subtotal,
        tax_cents=tax,
        total_cents=total,
        status=ORDER_STATUS_OPEN,
    )
    for position, line in enumerate(req.lines):
        order.items.append(
            OrderItem(
                position=position,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=unit_prices.get(line.product_id),
            )
        )

    def _op():
        order.created_at = _next_created_at()
        db.session.add(order)
        db.session.commit()
        return order

    saved = run_write(_op)
    current_app.logger.info(
        "Order accepted id=%s lines=%d total_cents=%d", saved.id, len(req.lines), saved.total_cents
    )
    return saved


def list_orders() -> list[dict]:
    """
    Every order, oldest first, with line items resolved against the catalog.

    Lines whose product was deleted keep their product_id and get product=None.
    """
    orders = run_read(
        lambda: db.session.query(Order).order_by(Order.created_at.asc(), Order.id.asc()).all()
    )
    products = products_by_id(item.product_id for order in orders for item in order.items)
    return [order.to_dict(products) for order in orders]

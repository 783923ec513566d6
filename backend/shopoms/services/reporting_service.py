# Overview: Service-layer operations for reporting; read-only aggregates over the order ledger.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderItem, Product
from ..time_utils import (
    parse_iso_datetime,
    start_of_day,
    start_of_month,
    start_of_next_month,
    to_utc_z,
    utcnow,
)
from ..validation import cents_to_amount
from .concurrency import run_read


class ReportError(Exception):
    """Raised when report parameters are unusable."""
    pass


@dataclass(frozen=True)
class Window:
    """Half-open aggregation window [start, end), UTC-naive."""
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {"start": to_utc_z(self.start), "end": to_utc_z(self.end)}


@dataclass(frozen=True)
class ProductSales:
    product_id: int
    name: str
    units_sold: int

    def to_dict(self) -> dict:
        return {"id": self.product_id, "name": self.name, "sales": self.units_sold}


def day_window(now: datetime) -> Window:
    start = start_of_day(now)
    return Window(start=start, end=start + timedelta(days=1))


def month_window(now: datetime) -> Window:
    return Window(start=start_of_month(now), end=start_of_next_month(now))


def parse_reference_time(value: str | None) -> datetime | None:
    """Optional `at` query parameter: the instant a report is computed for."""
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ReportError("at must be an ISO-8601 datetime")


def _sum_totals_cents(window: Window) -> int:
    def _op():
        return db.session.query(
            func.coalesce(func.sum(Order.total_cents), 0)
        ).filter(
            Order.created_at >= window.start,
            Order.created_at < window.end,
        ).scalar()

    return int(run_read(_op) or 0)


def sales_in_window(window: Window) -> dict:
    total_cents = _sum_totals_cents(window)
    return {
        "total": cents_to_amount(total_cents),
        "total_cents": total_cents,
        **window.to_dict(),
    }


def sales_today(now: datetime | None = None) -> dict:
    """Sum of order totals for the UTC day containing `now`."""
    return sales_in_window(day_window(now or utcnow()))


def sales_this_month(now: datetime | None = None) -> dict:
    """Sum of order totals for the calendar month (UTC) containing `now`."""
    return sales_in_window(month_window(now or utcnow()))


def units_sold_by_product() -> dict[int, int]:
    """Quantity per product id across every line item, deleted products included."""
    def _op():
        return db.session.query(
            OrderItem.product_id,
            func.coalesce(func.sum(OrderItem.quantity), 0),
        ).group_by(OrderItem.product_id).all()

    return {product_id: int(qty) for product_id, qty in run_read(_op)}


def top_products() -> list[ProductSales]:
    """
    Every catalog product exactly once, best sellers first.

    Ties keep catalog order (ascending id): sorted() is stable. Quantities
    sold under ids no longer in the catalog are not attributed to anyone.
    """
    counts = units_sold_by_product()
    products = run_read(lambda: db.session.query(Product).order_by(Product.id.asc()).all())

    rows = [
        ProductSales(product_id=p.id, name=p.name, units_sold=counts.get(p.id, 0))
        for p in products
    ]
    return sorted(rows, key=lambda row: row.units_sold, reverse=True)

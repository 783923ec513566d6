from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from ..validation import cents_to_amount


# Single creation state. Lifecycle transitions (Paid, Void, ...) would need
# an explicit transition table before more values are added here.
ORDER_STATUS_OPEN = "Open"
ORDER_STATUSES = (ORDER_STATUS_OPEN,)


class Order(db.Model):
    """
    Submitted order. Append-only: no endpoint updates or deletes rows.

    Totals are stored in cents. In server pricing mode they are the
    server's recomputation; in client mode they are the payload's.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in ORDER_STATUSES) + ")", name="ck_orders_status"
        ),
        db.Index("ix_orders_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_name = db.Column(db.String(255), nullable=False, default="")

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_OPEN)

    # Server-assigned, UTC-naive
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def to_dict(self, products: dict | None = None) -> dict:
        """
        `products` maps product id -> Product for resolving line items;
        without it only the raw references are returned.
        """
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "items": [item.to_dict(products) for item in self.items],
            "subtotal": cents_to_amount(self.subtotal_cents),
            "tax": cents_to_amount(self.tax_cents),
            "total": cents_to_amount(self.total_cents),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class OrderItem(db.Model):
    """
    Line item on an order.

    product_id is a weak reference: no foreign key, the product may no
    longer exist.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        db.UniqueConstraint("order_id", "position", name="uq_order_items_order_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Price snapshot at submission (server pricing only)
    unit_price_cents = db.Column(db.Integer, nullable=True)

    order = db.relationship("Order", back_populates="items")

    def to_dict(self, products: dict | None = None) -> dict:
        data = {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": cents_to_amount(self.unit_price_cents),
        }
        if products is not None:
            product = products.get(self.product_id)
            data["product"] = product.to_dict() if product else None
        return data

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow
from ..validation import cents_to_amount


class Product(db.Model):
    """
    Catalog entry.

    Order line items point at products by id only, so a product can be
    hard-deleted without touching historical orders.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)

    # Authoritative storage in cents (responses format as currency)
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": cents_to_amount(self.price_cents),
            "price_cents": self.price_cents,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

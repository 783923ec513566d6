# backend/shopoms/services/products_service.py
"""
Catalog Service

Plain keyed CRUD over the products table. Routes validate payloads with
validation.validate_payload before calling in here, so every patch is
already normalized (price converted to price_cents).
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError
from .concurrency import run_read, run_write

PRODUCT_MUTABLE_FIELDS = {"name", "category", "price_cents"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products() -> list[Product]:
    """All products in catalog iteration order (ascending id)."""
    return run_read(lambda: db.session.query(Product).order_by(Product.id.asc()).all())


def products_by_id(product_ids) -> dict[int, Product]:
    """Resolve a set of ids; ids with no product are simply absent."""
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    rows = run_read(lambda: db.session.query(Product).filter(Product.id.in_(ids)).all())
    return {p.id: p for p in rows}


def get_product(product_id: int) -> Product:
    p = run_read(lambda: db.session.get(Product, product_id))
    if p is None:
        raise NotFoundError("Product not found.")
    return p


def create_product(*, patch: dict) -> Product:
    """Create product from a validated patch dict."""
    p = Product()
    apply_product_patch(p, patch)

    def _op():
        db.session.add(p)
        db.session.commit()
        return p

    created = run_write(_op)
    current_app.logger.info("Product created id=%s", created.id)
    return created


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update a product.

    Raises NotFoundError if the id does not resolve.
    """
    p = get_product(product_id)
    apply_product_patch(p, patch)

    def _op():
        db.session.commit()
        return p

    return run_write(_op)


def delete_product(*, product_id: int) -> dict:
    """
    Hard-delete a product and return the removed record.

    Historical order lines keep the dangling id; reporting treats it as
    an unknown product.

    Raises NotFoundError if the id does not resolve.
    """
    p = get_product(product_id)
    snapshot = p.to_dict()

    def _op():
        db.session.delete(p)
        db.session.commit()

    run_write(_op)
    current_app.logger.info("Product deleted id=%s", product_id)
    return snapshot

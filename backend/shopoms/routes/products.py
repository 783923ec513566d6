# Overview: Flask API routes for catalog operations; parses input and returns JSON responses.

# backend/shopoms/routes/products.py
"""
Product management routes.

SECURITY: All routes require a bearer token (any role).
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..services import products_service
from ..services.concurrency import ServiceUnavailable
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price"},
    required_on_create={"name", "category", "price"},
    money_fields={"price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _unavailable():
    return jsonify({"success": False, "error": "Service temporarily unavailable."}), 503


@products_bp.get("")
@require_auth
def list_products_route():
    """List all products in catalog order."""
    try:
        products = products_service.list_products()
    except ServiceUnavailable:
        return _unavailable()
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"success": False, "error": "Failed to fetch products."}), 500

    return jsonify([p.to_dict() for p in products]), 200


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a new product. name, category and price are required."""
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        product = products_service.create_product(patch=patch)
    except ServiceUnavailable:
        return _unavailable()
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"success": False, "error": "Failed to save product."}), 500

    return jsonify({"success": True, "product": product.to_dict()}), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Update any subset of name, category and price."""
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    except ValidationError as e:
        return jsonify({"success": False, "error": str(e)}), 400

    try:
        product = products_service.update_product(product_id=product_id, patch=patch)
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except ServiceUnavailable:
        return _unavailable()
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"success": False, "error": "Failed to update product."}), 500

    return jsonify({"success": True, "product": product.to_dict()}), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """Delete a product. Orders that reference it are left untouched."""
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except NotFoundError as e:
        return jsonify({"success": False, "error": str(e)}), 404
    except ServiceUnavailable:
        return _unavailable()
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"success": False, "error": "Failed to delete product."}), 500

    return jsonify({"success": True, "product": deleted}), 200

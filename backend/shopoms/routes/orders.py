# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/shopoms/routes/orders.py
"""Order ledger API routes"""

from flask import Blueprint, request, jsonify, current_app

from ..services import order_service
from ..services.order_service import InvalidOrder
from ..services.concurrency import ServiceUnavailable
from ..decorators import require_read_access


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_read_access
def list_orders_route():
    """All orders with line item product details resolved."""
    try:
        orders = order_service.list_orders()
    except ServiceUnavailable:
        return jsonify({"success": False, "error": "Service temporarily unavailable."}), 503
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"success": False, "error": "Failed to fetch orders."}), 500

    return jsonify(orders), 200


@orders_bp.post("")
def submit_order_route():
    """
    Submit an order.

    Body: {customer_name?, items: [{product, quantity}], subtotal, tax, total}
    """
    payload = request.get_json(silent=True)

    try:
        order = order_service.submit_order(payload)
    except InvalidOrder as e:
        body = {"success": False, "error": str(e)}
        if e.details:
            body["details"] = e.details
        return jsonify(body), 400
    except ServiceUnavailable:
        return jsonify({"success": False, "error": "Service temporarily unavailable."}), 503
    except Exception:
        current_app.logger.exception("Failed to submit order")
        return jsonify({"success": False, "error": "Failed to save order."}), 500

    return jsonify({"success": True, "order": order.to_dict()}), 201

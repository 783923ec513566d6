# Overview: Flask API routes for login and token checks; parses input and returns JSON responses.

# backend/shopoms/routes/auth.py
"""
Authentication API routes

- POST /api/login issues a 24-hour bearer token
- GET /api/protected echoes the identity carried by a valid token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services.auth_service import InvalidCredentials
from ..services.concurrency import ServiceUnavailable
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue a bearer token.

    Token must be sent as `Authorization: Bearer <token>` on protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not isinstance(username, str) or not isinstance(password, str) or not username.strip() or not password:
        return jsonify({"success": False, "error": "Username and password are required."}), 400

    try:
        result = auth_service.login(username, password)
    except InvalidCredentials as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except ServiceUnavailable:
        return jsonify({"success": False, "error": "Service temporarily unavailable."}), 503
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"success": False, "error": "An error occurred. Please try again."}), 500

    return jsonify({
        "success": True,
        "token": result.token,
        **result.identity.to_dict(),
    }), 200


@auth_bp.get("/protected")
@require_auth
def protected_route():
    """Smoke-test endpoint for clients holding a token."""
    return jsonify({
        "success": True,
        "message": "Protected data accessed!",
        "identity": g.identity.to_dict(),
    }), 200

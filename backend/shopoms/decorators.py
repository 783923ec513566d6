# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import token_service
from .services.token_service import Unauthenticated, TokenExpiredOrInvalid


def _authenticate():
    """
    Resolve the bearer token into g.identity.

    Returns an error response tuple, or None when the caller is authenticated.
    """
    try:
        token = token_service.bearer_token_from_header(request.headers.get("Authorization"))
        g.identity = token_service.authorize(token)
    except Unauthenticated as e:
        return jsonify({"success": False, "error": str(e)}), 401
    except TokenExpiredOrInvalid:
        return jsonify({"success": False, "error": "Invalid or expired token."}), 403
    return None


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.identity (token_service.Identity) for the route. Role is not
    checked: any authenticated staff member may call the route.

    Returns 401 if the Authorization header is missing or malformed,
    403 if the token signature or expiry check fails.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        error = _authenticate()
        if error is not None:
            return error
        return f(*args, **kwargs)

    return decorated_function


def require_read_access(f):
    """
    Gate for order and report reads.

    READS_REQUIRE_AUTH=False keeps these routes open to anonymous callers
    (legacy behaviour). Otherwise a valid token is required and its role
    must be listed in READ_ROLES.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_app.config.get("READS_REQUIRE_AUTH", True):
            return f(*args, **kwargs)

        error = _authenticate()
        if error is not None:
            return error

        allowed = current_app.config.get("READ_ROLES") or ()
        if g.identity.role not in allowed:
            return jsonify({
                "success": False,
                "error": "Permission denied",
                "required_roles": list(allowed),
            }), 403

        return f(*args, **kwargs)

    return decorated_function

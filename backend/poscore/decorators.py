# Overview: Authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import token_service


def _is_authenticated() -> bool:
    return getattr(g, "operator_context", None) is not None


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid bearer token and establish tenant context.

    MULTI-TENANT: Sets g.operator_context (OperatorContext). Routes hand it
    to services explicitly; vendor/operator ids are never taken from the
    request body or ad-hoc headers.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or idle token
    - Operator or vendor deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"success": False, "error": "Authentication required"}), 401

        context = token_service.validate_token(token)
        if context is None:
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        g.operator_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Require the authenticated operator to hold one of the given roles.

    Must be applied after @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"success": False, "error": "Authentication required"}), 401

            ctx = g.operator_context
            if ctx.role not in roles:
                current_app.logger.warning(
                    "Operator %s (role %s) denied %s %s",
                    ctx.operator_id, ctx.role, request.method, request.path,
                )
                return jsonify({
                    "success": False,
                    "error": "Permission denied",
                    "details": {"required_roles": list(roles)},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

# Overview: Flask API routes for operator login/logout; parses input and returns JSON responses.

# backend/poscore/routes/auth.py
"""
Operator Authentication API routes

- POST /api/auth/login   username + password (+ optional vendor slug) -> bearer token
- POST /api/auth/logout  revokes the presented token
- GET  /api/auth/me      operator and tenant context behind the token
"""

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..extensions import db
from ..models import Operator
from ..responses import error_response, internal_error_response
from ..services import auth_service, token_service
from ..decorators import bearer_token, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate an operator and issue a bearer token.

    Token must be included in the Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        password = data.get("password")

        if not username or not password:
            return jsonify({"success": False, "error": "username and password required"}), 400

        operator = auth_service.authenticate(username, password, vendor_slug=data.get("vendor"))
        record, token = token_service.issue_token(operator)

        return jsonify({
            "success": True,
            "operator": operator.to_dict(),
            "token": token,
            "expires_at": record.to_dict()["expires_at"],
            "vendor_id": operator.vendor_id,
            "location_id": operator.location_id,
        }), 200

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to login operator")


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke bearer token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if token is None:
            return jsonify({"success": False, "error": "Authorization header required"}), 401

        if not token_service.revoke_token(token, reason="Logout"):
            return jsonify({"success": False, "error": "Invalid or expired token"}), 401

        return jsonify({"success": True, "message": "Logout successful"}), 200

    except Exception as e:
        return internal_error_response(e, "Failed to logout operator")


@auth_bp.get("/me")
@require_auth
def me_route():
    ctx = g.operator_context
    operator = db.session.get(Operator, ctx.operator_id)
    return jsonify({
        "success": True,
        "operator": operator.to_dict(),
        "vendor_id": ctx.vendor_id,
        "location_id": ctx.location_id,
        "role": ctx.role,
    })

# Overview: Flask API routes for registers operations; parses input and returns JSON responses.

# backend/poscore/routes/registers.py
"""
Register Registry API Routes

DESIGN:
- Registers are created at store setup and only ever deactivated
- Listing includes each register's current open session (or null)

SECURITY:
- Any authenticated operator can view registers of their vendor
- Creating and deactivating registers requires the manager role
"""

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..models import Register
from ..models.auth import ROLE_MANAGER
from ..responses import error_response, internal_error_response
from ..services import register_service
from ..decorators import require_auth, require_role
from ..validation import ModelValidationPolicy, validate_payload, require_int_arg


registers_bp = Blueprint("registers", __name__, url_prefix="/api/registers")

REGISTER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"location_id", "register_number", "name"},
    required_on_create={"location_id", "register_number", "name"},
)


@registers_bp.post("/")
@registers_bp.post("")
@require_auth
@require_role(ROLE_MANAGER)
def create_register_route():
    """
    Create a new POS register.

    Request body:
    {
        "location_id": 1,
        "register_number": "REG-01",
        "name": "Front Counter Register 1"
    }
    """
    try:
        patch = validate_payload(model=Register, payload=request.get_json(silent=True), policy=REGISTER_CREATE_POLICY)
        register = register_service.create_register(g.operator_context, **patch)
        return jsonify({"success": True, "register": register.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to create register")


@registers_bp.get("/")
@registers_bp.get("")
@require_auth
def list_registers_route():
    """
    List registers at a location with their current sessions.

    Query params:
        location_id (required unless the operator is tied to a location)
        include_inactive=true
    """
    try:
        ctx = g.operator_context
        location_id = require_int_arg(request.args, "location_id") or ctx.location_id
        if location_id is None:
            return jsonify({"success": False, "error": "location_id is required"}), 400
        include_inactive = request.args.get("include_inactive", "").lower() == "true"

        registers = register_service.list_registers(ctx, location_id, include_inactive=include_inactive)
        return jsonify({
            "success": True,
            "registers": [register_service.register_with_session(r) for r in registers],
        })

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to list registers")


@registers_bp.get("/<int:register_id>")
@require_auth
def get_register_route(register_id: int):
    try:
        register = register_service.get_register(g.operator_context, register_id)
        return jsonify({"success": True, "register": register_service.register_with_session(register)})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get register")


@registers_bp.post("/<int:register_id>/deactivate")
@require_auth
@require_role(ROLE_MANAGER)
def deactivate_register_route(register_id: int):
    """Deactivate a register. Rejected while it has an open session."""
    try:
        register = register_service.deactivate_register(g.operator_context, register_id)
        return jsonify({"success": True, "register": register.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to deactivate register")

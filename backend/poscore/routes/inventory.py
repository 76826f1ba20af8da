# Overview: Flask API routes for inventory and stock movements; parses input and returns JSON responses.

# backend/poscore/routes/inventory.py
"""
Inventory & Stock Movement API Routes

- /api/stock-movements   record one movement / list the movement ledger
- /api/inventory         on-hand rows, purchase-order receipt, transfers

Quantities are magnitudes; the sign comes from movement_type.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..models import StockMovement
from ..models.auth import ROLE_MANAGER
from ..responses import error_response, internal_error_response
from ..services import inventory_service
from ..decorators import require_auth, require_role
from ..validation import ModelValidationPolicy, validate_payload, require_int_arg


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")
stock_movements_bp = Blueprint("stock_movements", __name__, url_prefix="/api/stock-movements")

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "inventory_id",
        "product_id",
        "movement_type",
        "quantity",
        "from_location_id",
        "to_location_id",
        "cost_per_unit",
        "reference_type",
        "reference_id",
        "reason",
    },
    required_on_create={"inventory_id", "product_id", "movement_type", "quantity"},
)

RECEIVE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "location_id",
        "quantity",
        "cost_per_unit",
        "reference_type",
        "reference_id",
        "reason",
    },
    required_on_create={"product_id", "location_id", "quantity"},
    extra_fields={"location_id": "to_location_id"},
)

TRANSFER_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "from_location_id", "to_location_id", "quantity", "reason"},
    required_on_create={"product_id", "from_location_id", "to_location_id", "quantity"},
)


# =============================================================================
# STOCK MOVEMENTS
# =============================================================================

@stock_movements_bp.post("/")
@stock_movements_bp.post("")
@require_auth
def record_movement_route():
    """
    Record one stock movement.

    Request body:
    {
        "inventory_id": 3,
        "product_id": 7,
        "movement_type": "damage",
        "quantity": 2,
        "reason": "Dropped jar"
    }
    """
    try:
        patch = validate_payload(
            model=StockMovement,
            payload=request.get_json(silent=True),
            policy=MOVEMENT_POLICY,
        )
        movement = inventory_service.record_stock_movement(g.operator_context, **patch)
        return jsonify({"success": True, "movement": movement.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to record stock movement")


@stock_movements_bp.get("/")
@stock_movements_bp.get("")
@require_auth
def list_movements_route():
    """Query params: product_id, inventory_id, movement_type, limit (default 50, max 500)."""
    try:
        movements = inventory_service.list_stock_movements(
            g.operator_context,
            product_id=require_int_arg(request.args, "product_id"),
            inventory_id=require_int_arg(request.args, "inventory_id"),
            movement_type=request.args.get("movement_type") or None,
            limit=require_int_arg(request.args, "limit") or inventory_service.DEFAULT_MOVEMENT_LIMIT,
        )
        return jsonify({"success": True, "movements": [m.to_dict() for m in movements]})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to list stock movements")


# =============================================================================
# INVENTORY
# =============================================================================

@inventory_bp.get("/")
@inventory_bp.get("")
@require_auth
def list_inventory_route():
    """Query params: location_id (defaults to the operator's location), low_stock=true."""
    try:
        ctx = g.operator_context
        location_id = require_int_arg(request.args, "location_id") or ctx.location_id
        if location_id is None:
            return jsonify({"success": False, "error": "location_id is required"}), 400
        low_stock_only = request.args.get("low_stock", "").lower() == "true"

        records = inventory_service.list_inventory(ctx, location_id, low_stock_only=low_stock_only)
        return jsonify({"success": True, "inventory": [r.to_dict() for r in records]})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to list inventory")


@inventory_bp.get("/<int:inventory_id>")
@require_auth
def get_inventory_route(inventory_id: int):
    try:
        record = inventory_service.get_inventory(g.operator_context, inventory_id)
        return jsonify({"success": True, "inventory": record.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get inventory")


@inventory_bp.post("/receive")
@require_auth
@require_role(ROLE_MANAGER)
def receive_route():
    """
    Receive stock against a purchase order.

    Request body:
    {
        "product_id": 7,
        "location_id": 1,
        "quantity": 20,
        "cost_per_unit": 3.00,
        "reference_id": "PO-1042"
    }
    """
    try:
        patch = validate_payload(
            model=StockMovement,
            payload=request.get_json(silent=True),
            policy=RECEIVE_POLICY,
        )
        if patch.get("reference_type") is None:
            patch.pop("reference_type", None)
        movement = inventory_service.receive_stock(g.operator_context, **patch)
        return jsonify({"success": True, "movement": movement.to_dict()}), 201

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to receive stock")


@inventory_bp.post("/transfer")
@require_auth
@require_role(ROLE_MANAGER)
def transfer_route():
    """
    Move stock between two locations of the vendor.

    Request body:
    {
        "product_id": 7,
        "from_location_id": 1,
        "to_location_id": 2,
        "quantity": 5
    }
    """
    try:
        patch = validate_payload(
            model=StockMovement,
            payload=request.get_json(silent=True),
            policy=TRANSFER_POLICY,
        )
        out_movement, in_movement = inventory_service.transfer_stock(g.operator_context, **patch)
        return jsonify({
            "success": True,
            "transfer_out": out_movement.to_dict(),
            "transfer_in": in_movement.to_dict(),
        }), 201

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to transfer stock")

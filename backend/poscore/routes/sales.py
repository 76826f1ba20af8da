# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/poscore/routes/sales.py
"""
POS Sales API Routes

A sale is submitted complete (lines + payment) and recorded in one
transaction: sale, stock deductions and session totals together.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..responses import error_response, internal_error_response
from ..services import sales_service
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

SALE_FIELDS = (
    "tax_amount",
    "cash_amount",
    "card_amount",
    "cash_tendered",
    "customer_id",
)


@sales_bp.post("/")
@sales_bp.post("")
@require_auth
def complete_sale_route():
    """
    Complete a sale against an open session.

    Request body:
    {
        "session_id": 12,
        "items": [{"inventory_id": 3, "quantity": 1, "unit_price": 35.00}],
        "payment_method": "cash",
        "tax_amount": 5.25,
        "cash_tendered": 50.00,
        "customer_id": null
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        session_id = data.get("session_id")
        if not isinstance(session_id, int) or isinstance(session_id, bool):
            return jsonify({"success": False, "error": "session_id must be an integer"}), 400
        if not data.get("payment_method"):
            return jsonify({"success": False, "error": "payment_method required"}), 400

        kwargs = {k: data[k] for k in SALE_FIELDS if data.get(k) is not None}
        sale = sales_service.complete_sale(
            g.operator_context,
            session_id=session_id,
            items=data.get("items"),
            payment_method=data["payment_method"],
            **kwargs,
        )
        return jsonify({"success": True, "sale": sale.to_dict(include_lines=True)}), 201

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to complete sale")


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(g.operator_context, sale_id)
        return jsonify({"success": True, "sale": sale.to_dict(include_lines=True)})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get sale")


@sales_bp.post("/<int:sale_id>/void")
@require_auth
def void_sale_route(sale_id: int):
    """
    Void a completed sale.

    Request body: {"reason": "Rang up wrong product"}
    """
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.void_sale(g.operator_context, sale_id, data.get("reason"))
        return jsonify({"success": True, "sale": sale.to_dict(include_lines=True)})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to void sale")

# Overview: Flask API routes for register sessions; parses input and returns JSON responses.

# backend/poscore/routes/sessions.py
"""
Register Session API Routes

DESIGN:
- get-or-create is idempotent: every caller for a register gets the same
  open session back
- Counter increments are atomic single-statement updates
- Session lifecycle: open -> closed (read-only once closed)

SECURITY:
- vendor and operator always come from the bearer token; vendor_id /
  user_id in request bodies are ignored
"""

from flask import Blueprint, request, jsonify, g

from ..errors import PosError
from ..models import RegisterSession
from ..responses import error_response, internal_error_response
from ..services import session_service, sales_service
from ..decorators import require_auth
from ..validation import ModelValidationPolicy, validate_payload, require_int_arg


sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")

OPEN_SESSION_POLICY = ModelValidationPolicy(
    writable_fields={"register_id", "location_id", "opening_cash"},
    required_on_create={"register_id", "location_id"},
)

END_SESSION_POLICY = ModelValidationPolicy(
    writable_fields={"closing_cash", "notes"},
)


@sessions_bp.post("/get-or-create")
@require_auth
def get_or_create_session_route():
    """
    Find or open the session for a register.

    Request body:
    {
        "register_id": 1,
        "location_id": 1,
        "opening_cash": 200.00  (optional, ignored if a session is already open)
    }
    """
    try:
        ctx = g.operator_context
        patch = validate_payload(
            model=RegisterSession,
            payload=request.get_json(silent=True),
            policy=OPEN_SESSION_POLICY,
        )
        session = session_service.get_or_create_session(
            patch["register_id"],
            patch["location_id"],
            ctx.vendor_id,
            ctx.operator_id,
            opening_cash=patch.get("opening_cash"),
        )
        return jsonify({"success": True, "session": session.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get or create session")


@sessions_bp.post("/<int:session_id>/increment")
@require_auth
def increment_counter_route(session_id: int):
    """
    Atomically add to one session counter.

    Request body: {"counter_name": "walk_in_sales", "amount": 12.50}
    """
    try:
        data = request.get_json(silent=True) or {}
        counter_name = data.get("counter_name")
        if not counter_name or "amount" not in data:
            return jsonify({"success": False, "error": "counter_name and amount required"}), 400

        session = session_service.increment_session_counter(
            g.operator_context,
            session_id,
            str(counter_name),
            data["amount"],
        )
        return jsonify({"success": True, "session": session.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to increment session counter")


@sessions_bp.post("/<int:session_id>/end")
@require_auth
def end_session_route(session_id: int):
    """
    Close a session.

    Request body (optional):
    {
        "closing_cash": 512.25,
        "notes": "Short one roll of quarters"
    }
    """
    try:
        patch = validate_payload(
            model=RegisterSession,
            payload=request.get_json(silent=True),
            policy=END_SESSION_POLICY,
            partial=True,
        )
        session = session_service.end_session(
            g.operator_context,
            session_id,
            closing_cash=patch.get("closing_cash"),
            notes=patch.get("notes"),
        )
        return jsonify({"success": True, "session": session.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to end session")


@sessions_bp.get("/")
@sessions_bp.get("")
@require_auth
def list_sessions_route():
    """Query params: register_id, status (open|closed), limit (default 50)."""
    try:
        sessions = session_service.list_sessions(
            g.operator_context,
            register_id=require_int_arg(request.args, "register_id"),
            status=request.args.get("status") or None,
            limit=require_int_arg(request.args, "limit") or 50,
        )
        return jsonify({"success": True, "sessions": [s.to_dict() for s in sessions]})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to list sessions")


@sessions_bp.get("/<int:session_id>")
@require_auth
def get_session_route(session_id: int):
    try:
        session = session_service.get_session(g.operator_context, session_id)
        return jsonify({"success": True, "session": session.to_dict()})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get session")


@sessions_bp.get("/<int:session_id>/summary")
@require_auth
def session_summary_route(session_id: int):
    try:
        summary = session_service.get_session_summary(g.operator_context, session_id)
        return jsonify({"success": True, **summary})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to get session summary")


@sessions_bp.get("/<int:session_id>/sales")
@require_auth
def session_sales_route(session_id: int):
    try:
        sales = sales_service.list_session_sales(g.operator_context, session_id)
        return jsonify({"success": True, "sales": [s.to_dict() for s in sales]})

    except PosError as e:
        return error_response(e)
    except Exception as e:
        return internal_error_response(e, "Failed to list session sales")

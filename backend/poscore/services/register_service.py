"""
Register Registry

Tracks POS terminals per location. Read-mostly reference data: the only
write paths are store setup (create) and deactivation.

DESIGN PRINCIPLES:
- Registers are never deleted, only deactivated
- Register numbers are unique within a location
- A register with an open session cannot be deactivated
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InvalidStateError, ValidationError
from ..extensions import db
from ..models import Register, RegisterSession
from ..models.registers import SESSION_OPEN
from .tenant_service import require_location, require_register
from .token_service import OperatorContext


def create_register(
    ctx: OperatorContext,
    *,
    location_id: int,
    register_number: str,
    name: str,
) -> Register:
    """
    Create a new POS register at one of the vendor's locations.

    Raises:
        NotFoundError: location is not the vendor's
        ConflictError: register_number already used at this location
    """
    location = require_location(ctx.vendor_id, location_id)

    register_number = (register_number or "").strip()
    name = (name or "").strip()
    if not register_number or not name:
        raise ValidationError("register_number and name required")

    existing = db.session.query(Register).filter_by(
        location_id=location.id,
        register_number=register_number,
    ).first()
    if existing:
        raise ConflictError(f"Register '{register_number}' already exists at this location")

    register = Register(
        vendor_id=ctx.vendor_id,
        location_id=location.id,
        register_number=register_number,
        name=name,
        is_active=True,
    )
    db.session.add(register)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError(f"Register '{register_number}' already exists at this location") from exc

    current_app.logger.info("Register %s created at location %s", register.id, location.id)
    return register


def get_open_session(register_id: int) -> RegisterSession | None:
    """Currently open session for a register, if any."""
    return db.session.query(RegisterSession).filter_by(
        register_id=register_id,
        status=SESSION_OPEN,
    ).first()


def list_registers(ctx: OperatorContext, location_id: int, *, include_inactive: bool = False) -> list[Register]:
    """Registers at a location ordered by register number."""
    require_location(ctx.vendor_id, location_id)

    query = db.session.query(Register).filter_by(vendor_id=ctx.vendor_id, location_id=location_id)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Register.register_number).all()


def get_register(ctx: OperatorContext, register_id: int) -> Register:
    return require_register(ctx.vendor_id, register_id)


def register_with_session(register: Register) -> dict:
    """Register JSON including its current open session (or None)."""
    data = register.to_dict()
    current = get_open_session(register.id)
    data["current_session"] = current.to_dict() if current else None
    return data


def deactivate_register(ctx: OperatorContext, register_id: int) -> Register:
    """
    Deactivate a register (soft delete).

    Inactive registers cannot open new sessions.
    """
    register = require_register(ctx.vendor_id, register_id)

    if get_open_session(register.id):
        raise InvalidStateError("Cannot deactivate register with an open session. End the session first.")

    register.is_active = False
    db.session.commit()

    current_app.logger.info("Register %s deactivated by operator %s", register.id, ctx.operator_id)
    return register

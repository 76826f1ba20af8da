"""
Register Session Manager

Opens and closes cash-drawer sessions and accumulates their running
counters for end-of-day reconciliation.

DESIGN PRINCIPLES:
- At most one open session per register. Enforced twice: the register row
  is locked before the existence check, and the partial unique index
  uq_register_sessions_open_register rejects anything that slips past.
- Counters move only through single UPDATE statements guarded by
  status = 'open'. Never read-modify-write in Python.
- Voids add to compensating counters; total_sales never goes down.
- open -> closed is the only transition. Closed sessions are history.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..amounts import money, to_decimal, MONEY_PLACES, QUANTITY_PLACES
from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import RegisterSession, Sale
from ..models.registers import SESSION_CLOSED, SESSION_OPEN
from ..models.sales import SALE_COMPLETED
from poscore.time_utils import compact_stamp, utcnow
from .concurrency import begin_write, run_with_retry
from .register_service import get_open_session
from .tenant_service import require_register, require_session
from .token_service import OperatorContext

MONEY_COUNTERS = frozenset({
    "total_sales",
    "total_cash",
    "total_card",
    "walk_in_sales",
    "pickup_orders_fulfilled",
    "total_voided",
    "voided_cash",
})
COUNT_COUNTERS = frozenset({"total_transactions", "voided_transactions"})
SESSION_COUNTERS = MONEY_COUNTERS | COUNT_COUNTERS

# Incrementing one of these means a sale was completed: total_sales and
# total_transactions move with it in the same statement.
SALE_COUNTERS = frozenset({"total_sales", "walk_in_sales", "pickup_orders_fulfilled"})

MAX_LIST_LIMIT = 200


def generate_session_number(now=None) -> str:
    """S-YYYYMMDD-HHMMSS. Not unique on its own; the register index is the real key."""
    return f"S-{compact_stamp(now or utcnow())}"


def get_or_create_session(
    register_id: int,
    location_id: int,
    vendor_id: int,
    operator_id: int,
    opening_cash=None,
) -> RegisterSession:
    """
    Return the register's open session, creating it if there is none.

    Idempotent: repeated or concurrent calls for the same register all get
    the same session back. An existing open session is returned unchanged
    (opening_cash of later calls is ignored).

    Raises:
        NotFoundError: register not in this vendor
        ValidationError: register is at another location, bad opening_cash
        InvalidStateError: register is deactivated
        ConflictError: the open-session index rejected the insert; re-fetch
    """
    if opening_cash is None:
        opening_cash = current_app.config["DEFAULT_OPENING_CASH"]
    opening = money(opening_cash, "opening_cash")
    if opening < 0:
        raise ValidationError("opening_cash cannot be negative")

    def _open() -> RegisterSession:
        begin_write()
        register = require_register(vendor_id, register_id, lock=True)
        if register.location_id != location_id:
            raise ValidationError(
                "Register does not belong to location",
                details={"register_id": register_id, "location_id": location_id},
            )

        existing = get_open_session(register.id)
        if existing is not None:
            db.session.commit()
            return existing

        if not register.is_active:
            raise InvalidStateError("Cannot open a session on an inactive register")

        now = utcnow()
        session = RegisterSession(
            session_number=generate_session_number(now),
            register_id=register.id,
            location_id=register.location_id,
            vendor_id=vendor_id,
            operator_id=operator_id,
            status=SESSION_OPEN,
            opening_cash=opening,
            total_sales=Decimal("0"),
            total_transactions=0,
            total_cash=Decimal("0"),
            total_card=Decimal("0"),
            walk_in_sales=Decimal("0"),
            pickup_orders_fulfilled=Decimal("0"),
            total_voided=Decimal("0"),
            voided_transactions=0,
            voided_cash=Decimal("0"),
            opened_at=now,
        )
        db.session.add(session)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            current_app.logger.warning("Duplicate open session rejected for register %s", register_id)
            raise ConflictError(
                "Register already has an open session; fetch it instead of creating one",
                details={"register_id": register_id},
            ) from exc

        current_app.logger.info(
            "Session %s (%s) opened on register %s by operator %s",
            session.id, session.session_number, register_id, operator_id,
        )
        return session

    return run_with_retry(_open)


def _increment(session_id: int, vendor_id: int, increments: dict, *, stamp: bool = True) -> None:
    """
    Add to several counters of an open session in one UPDATE statement.

    Does not commit. A closed or foreign session matches zero rows and is
    reported as InvalidStateError / NotFoundError.
    """
    table = RegisterSession.__table__
    values = {table.c[name]: table.c[name] + amount for name, amount in increments.items()}
    values[table.c.version_id] = table.c.version_id + 1
    if stamp:
        values[table.c.last_transaction_at] = utcnow()

    stmt = (
        update(table)
        .where(table.c.id == session_id)
        .where(table.c.vendor_id == vendor_id)
        .where(table.c.status == SESSION_OPEN)
        .values(values)
    )
    result = db.session.execute(stmt)
    if result.rowcount == 1:
        return

    status = db.session.query(RegisterSession.status).filter_by(id=session_id, vendor_id=vendor_id).scalar()
    if status is None:
        raise NotFoundError("Session not found", details={"session_id": session_id})
    raise InvalidStateError("Session is closed", details={"session_id": session_id, "status": status})


def _refresh(session_id: int) -> RegisterSession:
    return db.session.get(RegisterSession, session_id, populate_existing=True)


def _counter_amount(counter_name: str, amount):
    if counter_name in COUNT_COUNTERS:
        count = to_decimal(amount, counter_name, places=QUANTITY_PLACES)
        if count != count.to_integral_value():
            raise ValidationError(f"{counter_name} takes a whole number")
        value = int(count)
    else:
        value = money(amount, "amount")
    if value < 0:
        raise ValidationError("Counters cannot be decreased; record a void instead")
    return value


def increment_session_counter(ctx: OperatorContext, session_id: int, counter_name: str, amount) -> RegisterSession:
    """
    Atomically add amount to one session counter.

    Sale counters (total_sales, walk_in_sales, pickup_orders_fulfilled)
    also bump total_sales and total_transactions in the same statement.
    """
    if counter_name not in SESSION_COUNTERS:
        raise InvalidStateError(f"Unknown session counter '{counter_name}'")
    value = _counter_amount(counter_name, amount)

    increments = {counter_name: value}
    if counter_name in SALE_COUNTERS:
        increments["total_sales"] = value
        increments["total_transactions"] = 1

    def _apply() -> RegisterSession:
        _increment(session_id, ctx.vendor_id, increments)
        db.session.commit()
        return _refresh(session_id)

    return run_with_retry(_apply)


def apply_sale_to_session(
    session_id: int,
    vendor_id: int,
    *,
    total: Decimal,
    cash_amount: Decimal,
    card_amount: Decimal,
    walk_in: bool,
) -> None:
    """Roll a completed sale into the session counters. Caller owns the transaction."""
    channel = "walk_in_sales" if walk_in else "pickup_orders_fulfilled"
    _increment(session_id, vendor_id, {
        "total_sales": total,
        "total_transactions": 1,
        "total_cash": cash_amount,
        "total_card": card_amount,
        channel: total,
    })


def apply_void_to_session(session_id: int, vendor_id: int, *, total: Decimal, cash_amount: Decimal) -> None:
    """Compensating counters for a voided sale. Caller owns the transaction."""
    _increment(session_id, vendor_id, {
        "total_voided": total,
        "voided_transactions": 1,
        "voided_cash": cash_amount,
    })


def end_session(ctx: OperatorContext, session_id: int, closing_cash=None, notes: str | None = None) -> RegisterSession:
    """
    Close a session and freeze its counters.

    expected_cash = opening_cash + total_cash - voided_cash. When the
    counted closing_cash is supplied the variance against it is stored too.

    Raises:
        NotFoundError: session not in this vendor
        InvalidStateError: session already closed
    """
    counted = money(closing_cash, "closing_cash") if closing_cash is not None else None
    if counted is not None and counted < 0:
        raise ValidationError("closing_cash cannot be negative")

    def _close() -> RegisterSession:
        begin_write()
        session = require_session(ctx.vendor_id, session_id, lock=True)
        if not session.is_open:
            raise InvalidStateError("Session already closed", details={"session_id": session_id})

        expected = (session.opening_cash + session.total_cash - session.voided_cash).quantize(MONEY_PLACES)

        session.status = SESSION_CLOSED
        session.closed_at = utcnow()
        session.closed_by_operator_id = ctx.operator_id
        session.expected_cash = expected
        if counted is not None:
            session.closing_cash = counted
            session.cash_variance = counted - expected
        if notes:
            session.notes = notes.strip()

        db.session.commit()
        current_app.logger.info(
            "Session %s closed by operator %s (expected cash %s, variance %s)",
            session.id, ctx.operator_id, session.expected_cash, session.cash_variance,
        )
        return session

    return run_with_retry(_close)


def get_session(ctx: OperatorContext, session_id: int) -> RegisterSession:
    return require_session(ctx.vendor_id, session_id)


def get_session_summary(ctx: OperatorContext, session_id: int) -> dict:
    """
    Session plus sale figures for the reconciliation screen.

    net_sales = total_sales - total_voided.
    """
    session = require_session(ctx.vendor_id, session_id)

    sales_count, completed_count = db.session.query(
        func.count(Sale.id),
        func.count(Sale.id).filter(Sale.status == SALE_COMPLETED),
    ).filter(Sale.session_id == session.id).one()

    net_sales = (session.total_sales - session.total_voided).quantize(MONEY_PLACES)
    return {
        "session": session.to_dict(),
        "sales_count": sales_count,
        "completed_sales_count": completed_count,
        "net_sales": float(net_sales),
        "is_closed": not session.is_open,
        "cash_variance": float(session.cash_variance) if session.cash_variance is not None else None,
    }


def list_sessions(
    ctx: OperatorContext,
    *,
    register_id: int | None = None,
    status: str | None = None,
    limit: int = 50,
) -> list[RegisterSession]:
    """Vendor's sessions, newest first."""
    if status is not None and status not in (SESSION_OPEN, SESSION_CLOSED):
        raise ValidationError("status must be 'open' or 'closed'")
    limit = max(1, min(int(limit), MAX_LIST_LIMIT))

    query = db.session.query(RegisterSession).filter_by(vendor_id=ctx.vendor_id)
    if register_id is not None:
        query = query.filter_by(register_id=register_id)
    if status is not None:
        query = query.filter_by(status=status)
    return query.order_by(RegisterSession.opened_at.desc(), RegisterSession.id.desc()).limit(limit).all()

from __future__ import annotations

from ..extensions import db
from poscore.amounts import as_number
from poscore.time_utils import to_utc_z

SESSION_OPEN = "open"
SESSION_CLOSED = "closed"


class Register(db.Model):
    """
    Physical POS register/terminal at a location.

    DESIGN: Registers are persistent (never deleted, only deactivated).
    Each register has many sessions over time but at most one open session.
    """
    __tablename__ = "registers"
    __table_args__ = (
        db.UniqueConstraint("location_id", "register_number", name="uq_registers_location_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    # Human-readable identifier (e.g., "REG-01", "FRONT", "DRIVE-THRU")
    register_number = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(128), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    location = db.relationship("Location", backref=db.backref("registers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        return "active" if self.is_active else "inactive"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "location_id": self.location_id,
            "register_number": self.register_number,
            "name": self.name,
            "status": self.status,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RegisterSession(db.Model):
    """
    One open cash-drawer period on a register.

    LIFECYCLE: open -> closed. No reopening; closed sessions are history.

    INVARIANT: at most one open session per register, enforced by the
    partial unique index below in addition to the lock-then-check in
    session_service.get_or_create_session.

    Counters are only ever increased, by single UPDATE statements
    (session_service._increment). Voids are recorded in the compensating
    total_voided / voided_transactions / voided_cash counters; total_sales
    is never decremented.
    """
    __tablename__ = "register_sessions"
    __table_args__ = (
        db.Index(
            "uq_register_sessions_open_register",
            "register_id",
            unique=True,
            sqlite_where=db.text("status = 'open'"),
            postgresql_where=db.text("status = 'open'"),
        ),
        db.Index("ix_register_sessions_vendor_status", "vendor_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_number = db.Column(db.String(32), nullable=False, index=True)

    register_id = db.Column(db.Integer, db.ForeignKey("registers.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)
    closed_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SESSION_OPEN, index=True)

    opening_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Running totals
    total_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)
    total_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_card = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    walk_in_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    pickup_orders_fulfilled = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Compensating counters for voids
    total_voided = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    voided_transactions = db.Column(db.Integer, nullable=False, default=0)
    voided_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Reconciliation (set when closing)
    closing_cash = db.Column(db.Numeric(12, 2), nullable=True)
    expected_cash = db.Column(db.Numeric(12, 2), nullable=True)
    cash_variance = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    last_transaction_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    register = db.relationship("Register", backref=db.backref("sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SESSION_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_number": self.session_number,
            "register_id": self.register_id,
            "location_id": self.location_id,
            "vendor_id": self.vendor_id,
            "operator_id": self.operator_id,
            "closed_by_operator_id": self.closed_by_operator_id,
            "status": self.status,
            "opening_cash": as_number(self.opening_cash),
            "total_sales": as_number(self.total_sales),
            "total_transactions": self.total_transactions,
            "total_cash": as_number(self.total_cash),
            "total_card": as_number(self.total_card),
            "walk_in_sales": as_number(self.walk_in_sales),
            "pickup_orders_fulfilled": as_number(self.pickup_orders_fulfilled),
            "total_voided": as_number(self.total_voided),
            "voided_transactions": self.voided_transactions,
            "voided_cash": as_number(self.voided_cash),
            "closing_cash": as_number(self.closing_cash),
            "expected_cash": as_number(self.expected_cash),
            "cash_variance": as_number(self.cash_variance),
            "notes": self.notes,
            "opened_at": to_utc_z(self.opened_at),
            "last_transaction_at": to_utc_z(self.last_transaction_at),
            "closed_at": to_utc_z(self.closed_at),
        }

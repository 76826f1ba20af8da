from __future__ import annotations

from ..extensions import db
from poscore.amounts import as_number
from poscore.time_utils import to_utc_z

SALE_COMPLETED = "completed"
SALE_VOIDED = "voided"

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_SPLIT = "split"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CARD, PAYMENT_SPLIT)


class Sale(db.Model):
    """
    Completed POS sale.

    Created only by sales_service.complete_sale, in the same transaction as
    its stock movements and session counter update. Immutable afterwards
    except for voiding, which is recorded with compensating movements and
    session counters rather than edits to the amounts.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "sale_number", name="uq_sales_vendor_number"),
        db.Index("ix_sales_session_created", "session_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_number = db.Column(db.String(64), nullable=False)

    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    register_id = db.Column(db.Integer, db.ForeignKey("registers.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("register_sessions.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)

    # Pickup orders carry a customer; walk-ins do not
    customer_id = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SALE_COMPLETED, index=True)

    payment_method = db.Column(db.String(16), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    cash_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    card_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cash_tendered = db.Column(db.Numeric(12, 2), nullable=True)
    change_given = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    voided_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    lines = db.relationship("SaleLine", backref="sale", lazy=True, order_by="SaleLine.id")

    @property
    def is_walk_in(self) -> bool:
        return self.customer_id is None

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_number": self.sale_number,
            "vendor_id": self.vendor_id,
            "location_id": self.location_id,
            "register_id": self.register_id,
            "session_id": self.session_id,
            "operator_id": self.operator_id,
            "customer_id": self.customer_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "subtotal": as_number(self.subtotal),
            "tax_amount": as_number(self.tax_amount),
            "total": as_number(self.total),
            "cash_amount": as_number(self.cash_amount),
            "card_amount": as_number(self.card_amount),
            "cash_tendered": as_number(self.cash_tendered),
            "change_given": as_number(self.change_given),
            "created_at": to_utc_z(self.created_at),
            "voided_by_operator_id": self.voided_by_operator_id,
            "voided_at": to_utc_z(self.voided_at),
            "void_reason": self.void_reason,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.id"), nullable=False)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    # Deduction recorded when the sale completed
    stock_movement_id = db.Column(db.Integer, db.ForeignKey("stock_movements.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "inventory_id": self.inventory_id,
            "quantity": as_number(self.quantity),
            "unit_price": as_number(self.unit_price),
            "line_total": as_number(self.line_total),
            "stock_movement_id": self.stock_movement_id,
        }

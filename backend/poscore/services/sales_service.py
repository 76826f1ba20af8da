"""
POS Sale Orchestration

A completed sale is one unit of work: sale + lines, one pos_sale stock
movement per line, and the session counters. All of it is written in a
single database transaction; any failure rolls every step back, so stock
is never deducted without the matching session totals or vice versa.

Voids are compensating events: a void movement per line, compensating
session counters, and the sale marked voided. Amounts are never edited.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from flask import current_app

from ..amounts import money, quantity as to_quantity, MONEY_PLACES
from ..errors import InsufficientStockError, InvalidStateError, ValidationError
from ..extensions import db
from ..models import InventoryRecord, Sale, SaleLine, Vendor
from ..models.sales import PAYMENT_CARD, PAYMENT_CASH, PAYMENT_METHODS, SALE_COMPLETED, SALE_VOIDED
from poscore.time_utils import compact_stamp, utcnow
from .concurrency import begin_write, run_with_retry
from .inventory_service import record_stock_movement
from .session_service import apply_sale_to_session, apply_void_to_session
from .tenant_service import require_inventory, require_location, require_sale, require_session
from .token_service import OperatorContext

ZERO = Decimal("0.00")


def generate_sale_number(location_slug: str, sale_id: int, now=None) -> str:
    """<LOC>-YYYYMMDD-NNNNNN, NNNNNN being the sale id."""
    day = compact_stamp(now or utcnow(), with_time=False)
    return f"{location_slug.upper()}-{day}-{sale_id:06d}"


def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each item must be an object", details={"index": index})
        inventory_id = item.get("inventory_id")
        if not isinstance(inventory_id, int) or isinstance(inventory_id, bool):
            raise ValidationError("inventory_id must be an integer", details={"index": index})
        qty = to_quantity(item.get("quantity"), "quantity")
        if qty <= 0:
            raise ValidationError("quantity must be positive", details={"index": index})
        unit_price = money(item.get("unit_price"), "unit_price")
        if unit_price < 0:
            raise ValidationError("unit_price cannot be negative", details={"index": index})
        parsed.append({
            "inventory_id": inventory_id,
            "quantity": qty,
            "unit_price": unit_price,
            "line_total": (qty * unit_price).quantize(MONEY_PLACES),
        })
    return parsed


def _split_payment(payment_method: str, total: Decimal, cash_amount, card_amount) -> tuple[Decimal, Decimal]:
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of {', '.join(PAYMENT_METHODS)}")
    if payment_method == PAYMENT_CASH:
        return total, ZERO
    if payment_method == PAYMENT_CARD:
        return ZERO, total

    if cash_amount is None or card_amount is None:
        raise ValidationError("split payments require cash_amount and card_amount")
    cash = money(cash_amount, "cash_amount")
    card = money(card_amount, "card_amount")
    if cash < 0 or card < 0:
        raise ValidationError("Payment amounts cannot be negative")
    if cash + card != total:
        raise ValidationError(
            "cash_amount + card_amount must equal the sale total",
            details={"total": float(total), "cash_amount": float(cash), "card_amount": float(card)},
        )
    return cash, card


def _check_availability(vendor_id: int, location_id: int, lines: list[dict]) -> dict[int, InventoryRecord]:
    """
    Resolve every line's inventory row and verify aggregated quantities.

    The conditional UPDATE in the ledger is still the authoritative guard;
    this reports every short line at once instead of the first one.
    """
    requested: dict[int, Decimal] = {}
    for line in lines:
        requested[line["inventory_id"]] = requested.get(line["inventory_id"], Decimal("0")) + line["quantity"]

    records = {}
    # Fixed lock order across concurrent sales
    for inventory_id in sorted(requested):
        record = require_inventory(vendor_id, inventory_id, lock=True)
        if record.location_id != location_id:
            raise ValidationError(
                "Inventory is not stocked at this session's location",
                details={"inventory_id": inventory_id},
            )
        records[inventory_id] = record

    allow_negative = bool(db.session.query(Vendor.allow_negative_stock).filter_by(id=vendor_id).scalar())
    if not allow_negative:
        short = [
            {
                "inventory_id": inventory_id,
                "product_id": records[inventory_id].product_id,
                "requested": float(qty),
                "available": float(records[inventory_id].quantity),
            }
            for inventory_id, qty in requested.items()
            if records[inventory_id].quantity < qty
        ]
        if short:
            raise InsufficientStockError("Insufficient inventory to complete sale", details={"items": short})
    return records


def complete_sale(
    ctx: OperatorContext,
    *,
    session_id: int,
    items,
    payment_method: str,
    tax_amount=0,
    cash_amount=None,
    card_amount=None,
    cash_tendered=None,
    customer_id: str | None = None,
) -> Sale:
    """
    Record a completed POS sale against an open session.

    items: [{"inventory_id", "quantity", "unit_price"}, ...]. A sale with a
    customer_id is a fulfilled pickup order; without one it is a walk-in.

    Raises:
        ValidationError: malformed items or payment
        NotFoundError: session or inventory not in this vendor
        InvalidStateError: session is closed
        InsufficientStockError: a line exceeds what is on hand
    """
    lines = _parse_items(items)
    subtotal = sum((line["line_total"] for line in lines), ZERO)
    tax = money(tax_amount, "tax_amount")
    if tax < 0:
        raise ValidationError("tax_amount cannot be negative")
    total = subtotal + tax
    cash, card = _split_payment(payment_method, total, cash_amount, card_amount)

    tendered = None
    change = None
    if cash_tendered is not None:
        if cash == 0:
            raise ValidationError("cash_tendered only applies to cash payments")
        tendered = money(cash_tendered, "cash_tendered")
        if tendered < cash:
            raise ValidationError("cash_tendered is less than the cash due")
        change = tendered - cash

    if customer_id is not None:
        customer_id = str(customer_id).strip() or None

    def _complete() -> Sale:
        begin_write()
        session = require_session(ctx.vendor_id, session_id, lock=True)
        if not session.is_open:
            raise InvalidStateError("Session is closed", details={"session_id": session_id})
        location = require_location(ctx.vendor_id, session.location_id)

        records = _check_availability(ctx.vendor_id, session.location_id, lines)

        sale = Sale(
            sale_number=f"PENDING-{uuid.uuid4().hex}",
            vendor_id=ctx.vendor_id,
            location_id=session.location_id,
            register_id=session.register_id,
            session_id=session.id,
            operator_id=ctx.operator_id,
            customer_id=customer_id,
            status=SALE_COMPLETED,
            payment_method=payment_method,
            subtotal=subtotal,
            tax_amount=tax,
            total=total,
            cash_amount=cash,
            card_amount=card,
            cash_tendered=tendered,
            change_given=change,
            created_at=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()
        sale.sale_number = generate_sale_number(location.slug, sale.id, sale.created_at)

        for line in lines:
            record = records[line["inventory_id"]]
            movement = record_stock_movement(
                ctx,
                inventory_id=record.id,
                product_id=record.product_id,
                movement_type="pos_sale",
                quantity=line["quantity"],
                from_location_id=session.location_id,
                reference_type="sale",
                reference_id=sale.id,
                commit=False,
            )
            db.session.add(SaleLine(
                sale_id=sale.id,
                product_id=record.product_id,
                inventory_id=record.id,
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                line_total=line["line_total"],
                stock_movement_id=movement.id,
            ))

        apply_sale_to_session(
            session.id,
            ctx.vendor_id,
            total=total,
            cash_amount=cash,
            card_amount=card,
            walk_in=sale.is_walk_in,
        )

        db.session.commit()
        return sale

    sale = run_with_retry(_complete)
    current_app.logger.info(
        "Sale %s completed on session %s: total %s (%s)",
        sale.sale_number, session_id, total, payment_method,
    )
    return sale


def void_sale(ctx: OperatorContext, sale_id: int, reason: str) -> Sale:
    """
    Void a completed sale whose session is still open.

    Stock comes back through one 'void' movement per line and the session
    records the void in its compensating counters.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("reason is required to void a sale")

    def _void() -> Sale:
        begin_write()
        sale = require_sale(ctx.vendor_id, sale_id, lock=True)
        if sale.status == SALE_VOIDED:
            raise InvalidStateError("Sale already voided", details={"sale_id": sale_id})
        if sale.status != SALE_COMPLETED:
            raise InvalidStateError(f"Cannot void sale with status {sale.status}")

        session = require_session(ctx.vendor_id, sale.session_id, lock=True)
        if not session.is_open:
            raise InvalidStateError(
                "Cannot void a sale from a closed session",
                details={"sale_id": sale_id, "session_id": session.id},
            )

        for line in sale.lines:
            record_stock_movement(
                ctx,
                inventory_id=line.inventory_id,
                product_id=line.product_id,
                movement_type="void",
                quantity=line.quantity,
                to_location_id=sale.location_id,
                reference_type="sale_void",
                reference_id=sale.id,
                reason=reason,
                commit=False,
            )

        sale.status = SALE_VOIDED
        sale.voided_at = utcnow()
        sale.voided_by_operator_id = ctx.operator_id
        sale.void_reason = reason

        apply_void_to_session(session.id, ctx.vendor_id, total=sale.total, cash_amount=sale.cash_amount)

        db.session.commit()
        return sale

    sale = run_with_retry(_void)
    current_app.logger.info("Sale %s voided by operator %s: %s", sale.sale_number, ctx.operator_id, reason)
    return sale


def get_sale(ctx: OperatorContext, sale_id: int) -> Sale:
    return require_sale(ctx.vendor_id, sale_id)


def list_session_sales(ctx: OperatorContext, session_id: int) -> list[Sale]:
    session = require_session(ctx.vendor_id, session_id)
    return db.session.query(Sale).filter_by(session_id=session.id).order_by(Sale.created_at, Sale.id).all()

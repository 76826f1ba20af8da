# Overview: Stock movement ledger; atomic quantity and average-cost updates on inventory rows.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, case, select, update
from sqlalchemy.exc import IntegrityError

from ..amounts import quantity as to_quantity, to_decimal, COST_PLACES
from ..errors import InsufficientStockError, InvalidStateError, NotFoundError, ValidationError
from ..extensions import db
from ..models import InventoryRecord, StockMovement, Vendor
from ..models.inventory import DECREASING_MOVEMENTS, INCREASING_MOVEMENTS, MOVEMENT_TYPES
from poscore.time_utils import compact_stamp, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry, supports_update_returning
from .tenant_service import require_inventory, require_location, require_product
from .token_service import OperatorContext
"""
POS Inventory Invariants (authoritative)

Inventory model:
- Quantity on hand is stored on the inventory row (one per product+location)
  and changed only by record_stock_movement and the helpers built on it.
- Every change appends exactly one StockMovement row in the same transaction.

Atomicity:
- The quantity change is ONE conditional UPDATE:
      UPDATE inventory SET quantity = quantity + :delta
      WHERE id = :id [AND quantity >= :amount]
      RETURNING quantity, average_cost
  The database serializes concurrent writers on the row, so there are no
  lost updates and no application-level read-then-write.
- quantity_before is derived from the returned quantity_after, so the
  movement's before/after pair is exactly what this statement did.

Business invariants:
- The sign of the change comes from the movement type, never from the
  caller: quantity is taken as a magnitude.
- Decreasing movements may not take quantity below zero unless the vendor
  has allow_negative_stock set; the guard is the WHERE clause above.
- Receiving (purchase, transfer_in) with a unit cost blends the running
  weighted-average cost inside the same UPDATE:
      (quantity * average_cost + q * c) / (quantity + q)
  falling back to c when nothing was on hand or no cost was known.

Audit:
- stock_movements is append-only (no updates/deletes).
- quantity_after = quantity_before + quantity_delta for every row.
"""

COST_BLENDING_MOVEMENTS = frozenset({"purchase", "transfer_in"})

DEFAULT_MOVEMENT_LIMIT = 50
MAX_MOVEMENT_LIMIT = 500


def movement_sign(movement_type: str) -> int:
    """+1 for increasing movement types, -1 for decreasing ones."""
    if movement_type in INCREASING_MOVEMENTS:
        return 1
    if movement_type in DECREASING_MOVEMENTS:
        return -1
    raise InvalidStateError(
        f"Unknown movement_type '{movement_type}'",
        details={"allowed": sorted(MOVEMENT_TYPES)},
    )


def _magnitude(value) -> Decimal:
    amount = abs(to_quantity(value, "quantity"))
    if amount == 0:
        raise ValidationError("quantity must be non-zero")
    return amount


def _unit_cost(value) -> Decimal | None:
    if value is None:
        return None
    cost = to_decimal(value, "cost_per_unit", places=COST_PLACES)
    if cost < 0:
        raise ValidationError("cost_per_unit cannot be negative")
    return cost


def _allows_negative_stock(vendor_id: int) -> bool:
    return bool(db.session.query(Vendor.allow_negative_stock).filter_by(id=vendor_id).scalar())


def _apply_movement(
    *,
    vendor_id: int,
    operator_id: int | None,
    inventory_id: int,
    product_id: int,
    movement_type: str,
    amount: Decimal,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    cost_per_unit: Decimal | None = None,
    reference_type: str | None = None,
    reference_id=None,
    reason: str | None = None,
) -> StockMovement:
    """Conditional UPDATE of the inventory row plus its movement row. Does not commit."""
    sign = movement_sign(movement_type)

    owner = db.session.query(InventoryRecord.product_id).filter_by(id=inventory_id, vendor_id=vendor_id).first()
    if owner is None:
        raise NotFoundError("Inventory record not found", details={"inventory_id": inventory_id})
    if owner.product_id != product_id:
        raise ValidationError(
            "product_id does not match inventory record",
            details={"inventory_id": inventory_id, "product_id": product_id},
        )

    table = InventoryRecord.__table__
    c = table.c
    delta = amount * sign

    values = {
        c.quantity: c.quantity + delta,
        c.version_id: c.version_id + 1,
    }
    if cost_per_unit is not None and movement_type in COST_BLENDING_MOVEMENTS:
        values[c.average_cost] = case(
            (
                and_(c.quantity > 0, c.average_cost.isnot(None)),
                (c.quantity * c.average_cost + amount * cost_per_unit) / (c.quantity + amount),
            ),
            else_=cost_per_unit,
        )

    stmt = update(table).where(c.id == inventory_id).where(c.vendor_id == vendor_id).values(values)
    guarded = sign < 0 and not _allows_negative_stock(vendor_id)
    if guarded:
        stmt = stmt.where(c.quantity >= amount)

    if supports_update_returning():
        row = db.session.execute(stmt.returning(c.quantity)).first()
        after = row.quantity if row is not None else None
    else:
        result = db.session.execute(stmt)
        after = None
        if result.rowcount == 1:
            after = db.session.execute(select(c.quantity).where(c.id == inventory_id)).scalar_one()

    if after is None:
        available = db.session.execute(select(c.quantity).where(c.id == inventory_id)).scalar()
        current_app.logger.warning(
            "Insufficient stock on inventory %s: requested %s, available %s",
            inventory_id, amount, available,
        )
        raise InsufficientStockError(
            "Insufficient stock",
            details={
                "inventory_id": inventory_id,
                "product_id": product_id,
                "requested": float(amount),
                "available": float(available) if available is not None else None,
            },
        )

    movement = StockMovement(
        vendor_id=vendor_id,
        inventory_id=inventory_id,
        product_id=product_id,
        movement_type=movement_type,
        quantity=amount,
        quantity_delta=delta,
        quantity_before=after - delta,
        quantity_after=after,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        cost_per_unit=cost_per_unit,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        reason=reason,
        operator_id=operator_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_stock_movement(
    ctx: OperatorContext,
    *,
    inventory_id: int,
    product_id: int,
    movement_type: str,
    quantity,
    from_location_id: int | None = None,
    to_location_id: int | None = None,
    cost_per_unit=None,
    reference_type: str | None = None,
    reference_id=None,
    reason: str | None = None,
    commit: bool = True,
) -> StockMovement:
    """
    Apply one stock movement to an inventory row and append its audit row.

    With commit=False the caller owns the transaction (sale orchestration);
    otherwise the movement is committed, retrying on lock contention.

    Raises:
        ValidationError: missing field, zero quantity, product mismatch
        InvalidStateError: unknown movement_type
        NotFoundError: inventory row not in this vendor
        InsufficientStockError: decreasing movement would go below zero
    """
    missing = [
        name for name, value in (
            ("inventory_id", inventory_id),
            ("product_id", product_id),
            ("movement_type", movement_type),
            ("quantity", quantity),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})

    movement_sign(movement_type)
    amount = _magnitude(quantity)
    cost = _unit_cost(cost_per_unit)

    def _record() -> StockMovement:
        movement = _apply_movement(
            vendor_id=ctx.vendor_id,
            operator_id=ctx.operator_id,
            inventory_id=inventory_id,
            product_id=product_id,
            movement_type=movement_type,
            amount=amount,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            cost_per_unit=cost,
            reference_type=reference_type,
            reference_id=reference_id,
            reason=reason,
        )
        if commit:
            db.session.commit()
        return movement

    if not commit:
        return _record()
    return run_with_retry(_record)


def _find_or_create_inventory(vendor_id: int, product_id: int, location_id: int) -> InventoryRecord:
    query = db.session.query(InventoryRecord).filter_by(product_id=product_id, location_id=location_id)
    record = query.first()
    if record is not None:
        return record

    record = InventoryRecord(
        vendor_id=vendor_id,
        product_id=product_id,
        location_id=location_id,
        quantity=Decimal("0"),
    )
    try:
        with db.session.begin_nested():
            db.session.add(record)
    except IntegrityError:
        # Another writer created the row first
        record = query.first()
        if record is None:
            raise
    return record


def receive_stock(
    ctx: OperatorContext,
    *,
    product_id: int,
    location_id: int,
    quantity,
    cost_per_unit=None,
    reference_type: str | None = "purchase_order",
    reference_id=None,
    reason: str | None = None,
) -> StockMovement:
    """
    Receive goods into a location (purchase-order receipt).

    Creates the inventory row on first receipt, then records a purchase
    movement that blends cost_per_unit into the average cost.
    """
    product = require_product(ctx.vendor_id, product_id)
    location = require_location(ctx.vendor_id, location_id)
    amount = _magnitude(quantity)
    cost = _unit_cost(cost_per_unit)

    def _receive() -> StockMovement:
        begin_write()
        record = _find_or_create_inventory(ctx.vendor_id, product.id, location.id)
        movement = _apply_movement(
            vendor_id=ctx.vendor_id,
            operator_id=ctx.operator_id,
            inventory_id=record.id,
            product_id=product.id,
            movement_type="purchase",
            amount=amount,
            to_location_id=location.id,
            cost_per_unit=cost,
            reference_type=reference_type,
            reference_id=reference_id,
            reason=reason,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_receive)
    current_app.logger.info(
        "Received %s of product %s at location %s (movement %s)",
        amount, product.id, location.id, movement.id,
    )
    return movement


def transfer_stock(
    ctx: OperatorContext,
    *,
    product_id: int,
    from_location_id: int,
    to_location_id: int,
    quantity,
    reason: str | None = None,
) -> tuple[StockMovement, StockMovement]:
    """
    Move stock between two of the vendor's locations in one transaction.

    The destination receives at the source's average cost.
    Returns (transfer_out, transfer_in).
    """
    if from_location_id == to_location_id:
        raise ValidationError("from_location_id and to_location_id must differ")

    product = require_product(ctx.vendor_id, product_id)
    source_location = require_location(ctx.vendor_id, from_location_id)
    dest_location = require_location(ctx.vendor_id, to_location_id)
    amount = _magnitude(quantity)

    def _transfer() -> tuple[StockMovement, StockMovement]:
        begin_write()
        # Locked so the cost carried to the destination matches the row transfer_out updates
        source = lock_for_update(db.session.query(InventoryRecord).filter_by(
            product_id=product.id,
            location_id=source_location.id,
        )).populate_existing().first()
        if source is None:
            raise NotFoundError(
                "No inventory for product at source location",
                details={"product_id": product.id, "location_id": source_location.id},
            )
        unit_cost = source.average_cost
        dest = _find_or_create_inventory(ctx.vendor_id, product.id, dest_location.id)
        reference = f"TR-{compact_stamp(utcnow())}-{source.id}"

        out_movement = _apply_movement(
            vendor_id=ctx.vendor_id,
            operator_id=ctx.operator_id,
            inventory_id=source.id,
            product_id=product.id,
            movement_type="transfer_out",
            amount=amount,
            from_location_id=source_location.id,
            to_location_id=dest_location.id,
            cost_per_unit=unit_cost,
            reference_type="transfer",
            reference_id=reference,
            reason=reason,
        )
        in_movement = _apply_movement(
            vendor_id=ctx.vendor_id,
            operator_id=ctx.operator_id,
            inventory_id=dest.id,
            product_id=product.id,
            movement_type="transfer_in",
            amount=amount,
            from_location_id=source_location.id,
            to_location_id=dest_location.id,
            cost_per_unit=unit_cost,
            reference_type="transfer",
            reference_id=reference,
            reason=reason,
        )
        db.session.commit()
        return out_movement, in_movement

    movements = run_with_retry(_transfer)
    current_app.logger.info(
        "Transferred %s of product %s from location %s to %s",
        amount, product.id, source_location.id, dest_location.id,
    )
    return movements


def list_stock_movements(
    ctx: OperatorContext,
    *,
    product_id: int | None = None,
    inventory_id: int | None = None,
    movement_type: str | None = None,
    limit: int = DEFAULT_MOVEMENT_LIMIT,
) -> list[StockMovement]:
    """Vendor's movements, newest first, optionally filtered."""
    if movement_type is not None:
        movement_sign(movement_type)
    limit = max(1, min(int(limit), MAX_MOVEMENT_LIMIT))

    query = db.session.query(StockMovement).filter_by(vendor_id=ctx.vendor_id)
    if product_id is not None:
        query = query.filter_by(product_id=product_id)
    if inventory_id is not None:
        query = query.filter_by(inventory_id=inventory_id)
    if movement_type is not None:
        query = query.filter_by(movement_type=movement_type)
    return query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(limit).all()


def get_inventory(ctx: OperatorContext, inventory_id: int) -> InventoryRecord:
    record = require_inventory(ctx.vendor_id, inventory_id)
    db.session.refresh(record)
    return record


def list_inventory(ctx: OperatorContext, location_id: int, *, low_stock_only: bool = False) -> list[InventoryRecord]:
    require_location(ctx.vendor_id, location_id)
    records = db.session.query(InventoryRecord).filter_by(
        vendor_id=ctx.vendor_id,
        location_id=location_id,
    ).populate_existing().order_by(InventoryRecord.product_id).all()
    if low_stock_only:
        records = [r for r in records if r.is_low_stock]
    return records

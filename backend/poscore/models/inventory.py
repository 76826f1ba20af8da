from __future__ import annotations

from ..extensions import db
from poscore.amounts import as_number
from poscore.time_utils import to_utc_z

# Movement classes. The sign of the quantity change is derived from class
# membership; the caller only supplies a magnitude.
INCREASING_MOVEMENTS = frozenset({"purchase", "return", "found", "adjustment", "void", "transfer_in"})
DECREASING_MOVEMENTS = frozenset({"sale", "damage", "loss", "pos_sale", "online_order", "transfer_out"})
MOVEMENT_TYPES = INCREASING_MOVEMENTS | DECREASING_MOVEMENTS


class Product(db.Model):
    """
    Product master data, scoped to a vendor.

    SKUs are unique within a vendor. price is the default shelf price; the
    POS may sell at a different unit price per line.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "sku", name="uq_products_vendor_sku"),
        db.Index("ix_products_vendor_name", "vendor_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    vendor = db.relationship("Vendor", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} vendor_id={self.vendor_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price": as_number(self.price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryRecord(db.Model):
    """
    Quantity of a product on hand at one location.

    CONTENTION POINT: every sale at the location touches this row. quantity
    and average_cost are only changed by inventory_service through single
    conditional UPDATE statements, never read-modify-write in Python.

    Rows are never deleted; zero is a valid quantity.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location_id", name="uq_inventory_product_location"),
        db.Index("ix_inventory_vendor_location", "vendor_id", "location_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    # Quantity-weighted mean of receiving costs
    average_cost = db.Column(db.Numeric(14, 4), nullable=True)

    low_stock_threshold = db.Column(db.Numeric(14, 3), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventory_records", lazy=True))
    location = db.relationship("Location", backref=db.backref("inventory_records", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        if self.low_stock_threshold is None:
            return False
        return self.quantity <= self.low_stock_threshold

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": as_number(self.quantity),
            "average_cost": as_number(self.average_cost),
            "low_stock_threshold": as_number(self.low_stock_threshold),
            "is_low_stock": self.is_low_stock,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable audit row for one inventory quantity change.

    APPEND-ONLY: created once per inventory-affecting event, never updated
    or deleted. quantity is the unsigned magnitude; quantity_delta carries
    the sign derived from movement_type, and
    quantity_after = quantity_before + quantity_delta always holds.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_inventory_created", "inventory_id", "created_at"),
        db.Index("ix_stock_movements_reference", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(32), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    quantity_delta = db.Column(db.Numeric(14, 3), nullable=False)
    quantity_before = db.Column(db.Numeric(14, 3), nullable=False)
    quantity_after = db.Column(db.Numeric(14, 3), nullable=False)

    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    cost_per_unit = db.Column(db.Numeric(14, 4), nullable=True)

    # Originating document: "sale", "purchase_order", "adjustment", "transfer", ...
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)

    reason = db.Column(db.String(255), nullable=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "inventory_id": self.inventory_id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "quantity": as_number(self.quantity),
            "quantity_delta": as_number(self.quantity_delta),
            "quantity_before": as_number(self.quantity_before),
            "quantity_after": as_number(self.quantity_after),
            "from_location_id": self.from_location_id,
            "to_location_id": self.to_location_id,
            "cost_per_unit": as_number(self.cost_per_unit),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reason": self.reason,
            "operator_id": self.operator_id,
            "created_at": to_utc_z(self.created_at),
        }

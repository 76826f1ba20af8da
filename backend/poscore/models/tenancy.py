from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z

class Vendor(db.Model):
    """
    Multi-tenant root: every tenant is a Vendor.

    All locations, operators, registers, products, inventory, sessions and
    sales carry vendor_id. No data may cross vendor boundaries; services
    treat another vendor's rows as not found.

    POLICY:
    - allow_negative_stock: when False (default) decreasing stock movements
      are rejected if they would take on-hand below zero. When True the
      deduction is applied unconditionally (backorder model).
    """
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False, unique=True, index=True)

    allow_negative_stock = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Vendor id={self.id} slug={self.slug!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "allow_negative_stock": self.allow_negative_stock,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Location(db.Model):
    """
    Retail location (store) of a vendor.

    Slugs are unique within a vendor, not globally. The first three letters
    of the slug prefix POS sale numbers.
    """
    __tablename__ = "locations"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "slug", name="uq_locations_vendor_slug"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vendor = db.relationship("Vendor", backref=db.backref("locations", lazy=True))

    def __repr__(self) -> str:
        return f"<Location id={self.id} slug={self.slug!r} vendor_id={self.vendor_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "name": self.name,
            "slug": self.slug,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

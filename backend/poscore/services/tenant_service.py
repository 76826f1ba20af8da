"""
Multi-Tenant Service: vendor scoping helpers

Every id that arrives from a client is resolved through one of these
helpers with the authenticated vendor_id. A row owned by another vendor is
reported exactly like a missing row (NotFoundError) so existence is never
revealed across tenants.

USAGE:
    location = require_location(ctx.vendor_id, location_id)
    register = require_register(ctx.vendor_id, register_id, lock=True)
"""

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Vendor, Location, Register, RegisterSession, Product, InventoryRecord, Sale
from .concurrency import lock_for_update


def _scoped_get(model, label: str, vendor_id: int, entity_id: int, *, lock: bool = False):
    query = db.session.query(model).filter_by(id=entity_id, vendor_id=vendor_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    entity = query.first()
    if entity is None:
        raise NotFoundError(f"{label} not found", details={f"{label.lower().replace(' ', '_')}_id": entity_id})
    return entity


def require_vendor(vendor_id: int) -> Vendor:
    vendor = db.session.get(Vendor, vendor_id)
    if vendor is None or not vendor.is_active:
        raise NotFoundError("Vendor not found")
    return vendor


def require_location(vendor_id: int, location_id: int) -> Location:
    return _scoped_get(Location, "Location", vendor_id, location_id)


def require_register(vendor_id: int, register_id: int, *, lock: bool = False) -> Register:
    return _scoped_get(Register, "Register", vendor_id, register_id, lock=lock)


def require_session(vendor_id: int, session_id: int, *, lock: bool = False) -> RegisterSession:
    return _scoped_get(RegisterSession, "Session", vendor_id, session_id, lock=lock)


def require_product(vendor_id: int, product_id: int) -> Product:
    return _scoped_get(Product, "Product", vendor_id, product_id)


def require_inventory(vendor_id: int, inventory_id: int, *, lock: bool = False) -> InventoryRecord:
    return _scoped_get(InventoryRecord, "Inventory", vendor_id, inventory_id, lock=lock)


def require_sale(vendor_id: int, sale_id: int, *, lock: bool = False) -> Sale:
    return _scoped_get(Sale, "Sale", vendor_id, sale_id, lock=lock)

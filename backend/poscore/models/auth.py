from __future__ import annotations

from ..extensions import db
from poscore.time_utils import to_utc_z

ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
ROLES = (ROLE_MANAGER, ROLE_CASHIER)


class Operator(db.Model):
    """
    POS operator account (budtender, manager).

    MULTI-TENANT: Operators belong to exactly one vendor. Usernames are
    unique within a vendor. location_id is the operator's home location
    and may be None for vendor-level managers.
    """
    __tablename__ = "operators"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", "username", name="uq_operators_vendor_username"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    username = db.Column(db.String(64), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(16), nullable=False, default=ROLE_CASHIER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    vendor = db.relationship("Vendor", backref=db.backref("operators", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
            "location_id": self.location_id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class AuthToken(db.Model):
    """
    Bearer token issued at login.

    Only the SHA-256 hash of the token is stored. vendor_id is captured at
    issue time and is the tenant context for every request made with it.
    """
    __tablename__ = "auth_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False, index=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    operator = db.relationship("Operator", backref=db.backref("auth_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operator_id": self.operator_id,
            "vendor_id": self.vendor_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }

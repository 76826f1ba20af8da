# Overview: Operator accounts and password handling.

"""
Operator Authentication Service

Operators belong to exactly one vendor; usernames are vendor-scoped.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with uppercase, lowercase, digit and special char
- Bearer tokens are managed separately (see token_service.py)
"""

from __future__ import annotations

import bcrypt
import re
from flask import current_app

from ..errors import AuthenticationError, ConflictError, ValidationError
from ..extensions import db
from ..models import Operator, Location, Vendor
from ..models.auth import ROLES, ROLE_CASHIER
from poscore.time_utils import utcnow
from .tenant_service import require_vendor


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost BCRYPT_ROUNDS, default 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def create_operator(
    *,
    vendor_id: int,
    username: str,
    email: str,
    password: str,
    role: str = ROLE_CASHIER,
    location_id: int | None = None,
) -> Operator:
    """Create an operator inside a vendor. Username must be unique within the vendor."""
    require_vendor(vendor_id)

    if role not in ROLES:
        raise ValidationError(f"role must be one of {', '.join(ROLES)}")

    if location_id is not None:
        location = db.session.query(Location).filter_by(id=location_id, vendor_id=vendor_id).first()
        if location is None:
            raise ValidationError("location does not belong to vendor")

    username = username.strip()
    existing = db.session.query(Operator).filter_by(vendor_id=vendor_id, username=username).first()
    if existing:
        raise ConflictError(f"Operator '{username}' already exists")

    operator = Operator(
        vendor_id=vendor_id,
        location_id=location_id,
        username=username,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(operator)
    db.session.commit()
    return operator


def authenticate(username: str, password: str, vendor_slug: str | None = None) -> Operator:
    """
    Resolve credentials to an active operator.

    vendor_slug disambiguates when the same username exists in several
    vendors; without it such a login is refused rather than guessed.
    Every credential failure raises the same error.
    """
    query = db.session.query(Operator).filter_by(username=username.strip(), is_active=True)
    if vendor_slug:
        query = query.join(Vendor, Vendor.id == Operator.vendor_id).filter(Vendor.slug == vendor_slug)

    candidates = query.all()
    if not vendor_slug and len({operator.vendor_id for operator in candidates}) > 1:
        current_app.logger.info("Ambiguous login for username=%s without vendor", username)
        raise AuthenticationError(
            "Vendor is required for this username",
            details={"required_fields": ["vendor"]},
        )

    for operator in candidates:
        if verify_password(password, operator.password_hash) and operator.vendor.is_active:
            operator.last_login_at = utcnow()
            return operator

    current_app.logger.info("Failed login for username=%s", username)
    raise AuthenticationError("Invalid username or password")

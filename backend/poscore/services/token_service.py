# Overview: Bearer token issue/validation and the per-request operator context.

"""
Bearer Token Management

Tokens are 32 random bytes (hex), hashed with SHA-256 before storage and
time-limited by an absolute lifetime and an idle timeout. vendor_id is
captured when the token is issued and becomes the tenant context of
every request made with it.

The OperatorContext returned by validate_token is what routes hand to the
services explicitly. Identity is never read from request bodies or ad-hoc
headers.
"""

from __future__ import annotations

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import AuthToken, Operator
from ..models.auth import ROLE_MANAGER
from poscore.time_utils import utcnow


@dataclass(frozen=True)
class OperatorContext:
    """Authenticated identity threaded through every service call. operator_id is None for console commands."""
    operator_id: int | None
    vendor_id: int
    location_id: int | None
    role: str

    @property
    def is_manager(self) -> bool:
        return self.role == ROLE_MANAGER

    @classmethod
    def for_operator(cls, operator: Operator) -> "OperatorContext":
        return cls(
            operator_id=operator.id,
            vendor_id=operator.vendor_id,
            location_id=operator.location_id,
            role=operator.role,
        )


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient for high-entropy tokens (unlike passwords)."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def issue_token(operator: Operator) -> tuple[AuthToken, str]:
    """
    Create a token for an authenticated operator.

    Returns (token_record, plaintext_token). Only the hash is stored.
    """
    plaintext = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config["AUTH_TOKEN_TTL_HOURS"])

    record = AuthToken(
        operator_id=operator.id,
        vendor_id=operator.vendor_id,
        token_hash=hash_token(plaintext),
        created_at=now,
        last_used_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    db.session.add(record)
    db.session.commit()
    return record, plaintext


def _revoke(record: AuthToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason
    db.session.commit()


def validate_token(token: str) -> OperatorContext | None:
    """
    Resolve a bearer token to an OperatorContext.

    Returns None if the token is unknown, revoked, expired, idle for too
    long, or its operator/vendor has been deactivated. Idle and
    deactivation failures revoke the token.
    """
    record = db.session.query(AuthToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if record is None:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None

    idle_limit = timedelta(minutes=current_app.config["AUTH_TOKEN_IDLE_MINUTES"])
    if now - record.last_used_at > idle_limit:
        _revoke(record, "Idle timeout")
        return None

    operator = record.operator
    if operator is None or not operator.is_active or operator.vendor_id != record.vendor_id:
        _revoke(record, "Operator deactivated")
        return None
    if not operator.vendor.is_active:
        _revoke(record, "Vendor deactivated")
        return None

    record.last_used_at = now
    db.session.commit()

    return OperatorContext.for_operator(operator)


def revoke_token(token: str, reason: str = "Logout") -> bool:
    record = db.session.query(AuthToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if record is None:
        return False
    _revoke(record, reason)
    return True

# Overview: Payload validation against model column metadata and per-endpoint policies.

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from poscore.time_utils import parse_iso_datetime

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .amounts import to_decimal
from .errors import ValidationError

# Caller-supplied identity is never trusted; these keys are dropped from
# bodies and the authenticated OperatorContext is used instead.
IDENTITY_FIELDS = frozenset({"vendor_id", "operator_id", "user_id"})


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - ignored_fields: accepted in the body but discarded
    - extra_fields: writable keys that are not columns on the model, mapped to a column to borrow its type
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    ignored_fields: frozenset[str] = IDENTITY_FIELDS
    extra_fields: dict[str, str] = field(default_factory=dict)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{key} must be an integer")
            if 'e' in stripped.lower():
                raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
            if '.' in stripped:
                raise ValidationError(f"{key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{key} must be an integer")
        if isinstance(value, float):
            raise ValidationError(f"{key} must be an integer, not a decimal")
        raise ValidationError(f"{key} must be an integer")

    # Money / quantity / cost, quantized to the column scale
    if isinstance(coltype, Numeric):
        places = Decimal(1).scaleb(-(coltype.scale or 0))
        return to_decimal(value, key, places=places)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool = False,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length, Numeric scale)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = {k: v for k, v in payload.items() if k not in policy.ignored_fields}

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols and k not in policy.extra_fields:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[policy.extra_fields.get(k, k)]

        if raw is None:
            if not col.nullable and k in policy.required_on_create:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(k, col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def require_int_arg(args, name: str, *, required: bool = False) -> int | None:
    """Integer query-string argument; ValidationError on junk."""
    raw = args.get(name)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")

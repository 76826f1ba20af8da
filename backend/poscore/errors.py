# Overview: Domain exception hierarchy shared by services and routes.

"""
Error taxonomy for the POS core.

Every domain failure raised by a service is a PosError carrying the HTTP
status the API boundary should answer with and an optional details dict.
Routes translate PosError into {"success": false, "error": ..., "details": ...};
anything else is a storage/programming failure and becomes a logged 500.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for domain errors surfaced to API callers."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"success": False, "error": str(self)}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(PosError, ValueError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(PosError):
    """Referenced register, session, inventory record (etc.) does not exist for this vendor."""
    status_code = 404


class InvalidStateError(PosError):
    """Mutation attempted against an entity in the wrong lifecycle state."""
    status_code = 409


class ConflictError(PosError, ValueError):
    """409-level uniqueness conflict. Callers must re-query instead of retrying the insert."""
    status_code = 409


class InsufficientStockError(PosError):
    """A decreasing movement would take on-hand quantity below zero."""
    status_code = 409


class AuthenticationError(PosError):
    status_code = 401


class StorageError(PosError):
    """Underlying query or transaction failure, reported without schema detail."""
    status_code = 500

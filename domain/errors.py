"""
Error taxonomy for the sales ledger core.

Every error carries an HTTP-ish `status_code`, a machine-readable `code`
and an optional `context` mapping naming the records involved, so that the
API layer can tell the caller exactly which precondition failed.

Batch operations do not raise for per-item failures; they report them in
their result (see `services.batch.BatchItemError`).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class SalesOpsError(Exception):
    """Base class for all expected, caller-reportable failures."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, context: Optional[Mapping[str, Any]] = None):
        self.message = message
        self.context = dict(context or {})
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.context:
            payload["context"] = self.context
        return payload


class UnauthenticatedError(SalesOpsError):
    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required", context: Optional[Mapping[str, Any]] = None):
        super().__init__(message, context)


class UnauthorizedError(SalesOpsError):
    """Identity is known but its role does not grant the operation."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Access denied", context: Optional[Mapping[str, Any]] = None):
        super().__init__(message, context)


class NotFoundError(SalesOpsError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", context: Optional[Mapping[str, Any]] = None):
        self.resource = resource
        super().__init__(f"{resource} not found", context)


class ValidationError(SalesOpsError):
    """Malformed input, wrong record source, or a failed business-rule precondition."""

    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(SalesOpsError):
    """A conditional update lost a race (e.g. two shoppers claiming one Sale)."""

    status_code = 409
    code = "CONFLICT"


class ExternalSystemError(SalesOpsError):
    """The external ledger API rejected, failed or timed out a call."""

    status_code = 502
    code = "EXTERNAL_SYSTEM_ERROR"

    def __init__(self, service: str, message: str, context: Optional[Mapping[str, Any]] = None):
        self.service = service
        merged = dict(context or {})
        merged["service"] = service
        super().__init__(f"{service} error: {message}", merged)


class StoreError(SalesOpsError):
    """The record store returned an error for a read or write."""

    status_code = 500
    code = "STORE_ERROR"


class LinkIntegrityError(SalesOpsError):
    """
    A link left the ledger half-applied and could not be rolled back.

    Needs manual remediation: the context names both records.
    """

    status_code = 500
    code = "LINK_INTEGRITY_ERROR"


__all__ = [
    "ConflictError",
    "ExternalSystemError",
    "LinkIntegrityError",
    "NotFoundError",
    "SalesOpsError",
    "StoreError",
    "UnauthenticatedError",
    "UnauthorizedError",
    "ValidationError",
]

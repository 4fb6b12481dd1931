"""Domain error taxonomy.

Every error carries a stable ``kind`` and an HTTP-ish ``status_code`` so the
API layer can translate it without knowing each subclass. Database failures
are not part of this hierarchy: ``psycopg2.Error`` propagates
as-is and is reported as an opaque infrastructure error.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for expected, caller-visible domain failures."""

    kind = "booking_error"
    status_code = 400

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        self.message = message
        self.reason = reason
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"kind": self.kind, "message": self.message}
        if self.reason is not None:
            body["reason"] = self.reason
        return body


class ValidationError(BookingError):
    """Malformed or out-of-range input."""

    kind = "validation_error"
    status_code = 400


class InvalidInputError(ValidationError):
    """Non-positive nightly rate or night count given to the calculator."""


class NotFoundError(BookingError):
    """Referenced property, booking, user or discount code is absent."""

    kind = "not_found"
    status_code = 404


class AuthorizationError(BookingError):
    kind = "forbidden"
    status_code = 403


class ConflictError(BookingError):
    """Invalid state transition or duplicate resource."""

    kind = "conflict"
    status_code = 409


class DomainRuleViolation(BookingError):
    """Business rule rejected the request (ineligible discount, unavailable property)."""

    kind = "domain_rule_violation"
    status_code = 422

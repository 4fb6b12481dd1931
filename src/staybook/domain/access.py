"""Who may act on a booking.

View, pay, cancel and invoice all share one rule: the principal must be an
administrator, the guest who made the booking, or the owner of the booked
property.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from staybook.domain.errors import AuthorizationError

Role = Literal["guest", "host", "admin"]
ROLES = ("guest", "host", "admin")


@dataclass(frozen=True)
class Principal:
    """The acting user as seen by the core."""

    id: str
    role: Role
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def can_access_booking(
    principal: Principal,
    booking_user_id: str,
    property_owner_id: str | None,
) -> bool:
    if principal.is_admin:
        return True
    if principal.id == booking_user_id:
        return True
    return property_owner_id is not None and principal.id == property_owner_id


def require_booking_access(
    principal: Principal,
    booking_user_id: str,
    property_owner_id: str | None,
    *,
    action: str = "access",
) -> None:
    """Raise AuthorizationError unless can_access_booking() allows it."""
    if not can_access_booking(principal, booking_user_id, property_owner_id):
        raise AuthorizationError(f"Not authorized to {action} this booking")


def canceled_by_role(principal: Principal, property_owner_id: str | None) -> Role:
    """Who a cancellation is attributed to: admin, then host, then guest."""
    if principal.is_admin:
        return "admin"
    if property_owner_id is not None and principal.id == property_owner_id:
        return "host"
    return "guest"

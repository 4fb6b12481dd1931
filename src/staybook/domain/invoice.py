"""Invoice data for paid bookings.

The core only assembles the fields; rendering (PDF or otherwise), storage
and download are handled by the caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from staybook.domain.access import Principal, require_booking_access
from staybook.domain.bookings import load_booking
from staybook.domain.errors import DomainRuleViolation, NotFoundError
from staybook.infra.db import txn
from staybook.infra.repositories import users_repository
from staybook.infra.time import utc_now


@dataclass(frozen=True)
class InvoiceData:
    invoice_id: str | None
    issued_at: datetime
    customer: dict[str, Any]
    property: dict[str, Any]
    booking: dict[str, Any]
    payment: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoice_id": self.invoice_id,
            "issued_at": self.issued_at.isoformat(),
            "customer": self.customer,
            "property": self.property,
            "booking": self.booking,
            "payment": self.payment,
        }


def get_invoice_data(
    principal: Principal,
    booking_id: str,
    *,
    now: datetime | None = None,
) -> InvoiceData:
    """Collect everything an invoice shows for a paid booking.

    Raises:
        NotFoundError: Booking (or its guest) does not exist.
        AuthorizationError: Principal may not act on the booking.
        DomainRuleViolation: Booking has not been paid.
    """
    now = now or utc_now()

    with txn() as cur:
        booking, prop = load_booking(cur, booking_id)
        require_booking_access(principal, booking.user_id, prop["owner_id"], action="view the invoice of")

        if not booking.is_paid:
            raise DomainRuleViolation(
                "Invoice can only be generated for paid bookings", reason="not_paid"
            )

        guest = users_repository.get_user(cur, booking.user_id)
        if guest is None:
            raise NotFoundError("Guest not found")

    breakdown = booking.price_breakdown
    payment_info = booking.payment_info or {}

    return InvoiceData(
        invoice_id=booking.invoice_id,
        issued_at=now,
        customer={
            "name": " ".join(p for p in (guest["first_name"], guest["last_name"]) if p),
            "email": guest["email"],
        },
        property={
            "title": prop["title"],
            "address": prop.get("address"),
            "city": prop.get("city"),
            "region": prop.get("region"),
            "country": prop.get("country"),
        },
        booking={
            "id": booking.id,
            "check_in": booking.check_in.isoformat(),
            "check_out": booking.check_out.isoformat(),
            "num_nights": booking.num_nights,
            "num_guests": booking.num_guests,
        },
        payment={
            "breakdown": breakdown.to_dict(),
            "lines": breakdown.summary_lines(),
            "total_price": f"{booking.total_price:.2f}",
            "payment_status": booking.payment_status,
            "method": payment_info.get("method"),
            "payment_id": payment_info.get("id"),
        },
    )

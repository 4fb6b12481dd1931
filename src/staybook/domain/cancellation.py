"""Cancel booking domain logic - transactional cancellation with refund calculation.

Orchestrates cancellation inside a single DB transaction:
lock -> authorize -> validate status -> calculate refund -> update -> release nights.

Refund tiers, keyed on whole days until check-in:

    more than 7 days   -> 100% of the total price
    more than 3 days   ->  50%
    otherwise          ->   0%

Exactly 7 days falls in the 50% tier and exactly 3 days in the 0% tier.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal

from staybook.domain.access import Principal, canceled_by_role, require_booking_access
from staybook.domain.bookings import Booking, load_booking
from staybook.domain.errors import ConflictError
from staybook.domain.pricing import to_money
from staybook.infra.db import txn
from staybook.infra.repositories import bookings_repository, properties_repository
from staybook.infra.time import utc_midnight, utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

FULL_REFUND_AFTER_DAYS = 7
PARTIAL_REFUND_AFTER_DAYS = 3
PARTIAL_REFUND_RATE = Decimal("0.5")

_SECONDS_PER_DAY = 24 * 60 * 60


def days_until_check_in(check_in: date, now: datetime) -> int:
    """Whole days from *now* to check-in (00:00 UTC), rounded up."""
    seconds = (utc_midnight(check_in) - now).total_seconds()
    return math.ceil(seconds / _SECONDS_PER_DAY)


def calculate_refund(total_price: Decimal, check_in: date, now: datetime) -> Decimal:
    """Refund amount for canceling at *now*."""
    days = days_until_check_in(check_in, now)

    if days > FULL_REFUND_AFTER_DAYS:
        return to_money(total_price)
    if days > PARTIAL_REFUND_AFTER_DAYS:
        return to_money(total_price * PARTIAL_REFUND_RATE)
    return Decimal("0.00")


def cancel_booking(
    principal: Principal,
    booking_id: str,
    *,
    reason: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """Cancel a pending or confirmed booking.

    This function:
    1. Locks the booking with FOR UPDATE
    2. Checks the principal is admin, the guest or the property owner
    3. Rejects canceled/completed bookings with ConflictError (nothing changes)
    4. Attributes the cancellation (admin > host > guest)
    5. Calculates the refund tier
    6. Updates the booking
    7. Releases the nights it held on the property ledger

    Discount usage is not given back.

    Raises:
        NotFoundError: Booking does not exist.
        AuthorizationError: Principal may not act on the booking.
        ConflictError: Booking already canceled or completed.
    """
    now = now or utc_now()

    with txn() as cur:
        booking, prop = load_booking(cur, booking_id, lock=True)
        owner_id = prop["owner_id"]
        require_booking_access(principal, booking.user_id, owner_id, action="cancel")

        if booking.status == "canceled":
            raise ConflictError("Booking is already canceled")
        if booking.status == "completed":
            raise ConflictError("Completed bookings cannot be canceled")

        canceled_by = canceled_by_role(principal, owner_id)
        refund_amount = calculate_refund(booking.total_price, booking.check_in, now)
        has_refund = refund_amount > 0

        payment_status = booking.payment_status
        if booking.is_paid and has_refund:
            payment_status = "refunded"

        row = bookings_repository.mark_canceled(
            cur,
            booking_id,
            canceled_by=canceled_by,
            reason=reason,
            refund_amount=refund_amount,
            refund_status="pending" if has_refund else None,
            payment_status=payment_status,
            refund_date=now if has_refund else None,
        )
        if row is None:
            raise ConflictError("Booking changed while canceling it")

        released = properties_repository.release_booked(cur, booking_id=booking_id)

    logger.info(
        "booking_canceled",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                canceled_by=canceled_by,
                refund_amount=str(refund_amount),
                released_nights=len(released),
            )
        },
    )
    return Booking.from_row(row)

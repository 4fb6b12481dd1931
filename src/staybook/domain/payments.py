"""Payment confirmation.

Records a completed payment on a booking, confirms it and assigns its
invoice identifier. The identifier is assigned once; confirming an already
paid booking again returns it unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from staybook.domain.access import Principal, require_booking_access
from staybook.domain.bookings import Booking, load_booking
from staybook.domain.errors import ConflictError, ValidationError
from staybook.infra.db import txn
from staybook.infra.repositories import bookings_repository
from staybook.infra.time import utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

PAYMENT_METHODS = ("credit_card", "debit_card", "paypal", "stripe", "razorpay")


@dataclass(frozen=True)
class PaymentInfo:
    id: str | None
    status: str | None = None
    method: str = "credit_card"
    tax: Decimal = Decimal("0")
    transaction_id: str | None = None
    last4_digits: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tax"] = str(self.tax)
        return data


def generate_invoice_id(booking_id: str, now: datetime) -> str:
    """``INV-<last 6 digits of epoch millis>-<last 6 chars of booking id>``."""
    millis = int(now.timestamp() * 1000)
    suffix = booking_id.replace("-", "")[-6:].upper()
    return f"INV-{millis % 1_000_000:06d}-{suffix}"


def _validate_payment_info(payment_info: PaymentInfo) -> None:
    if not payment_info.id:
        raise ValidationError("Payment information is required")
    if payment_info.method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Payment method must be one of {', '.join(PAYMENT_METHODS)}"
        )
    if payment_info.tax < 0:
        raise ValidationError("Payment tax must not be negative")


def confirm_payment(
    principal: Principal,
    booking_id: str,
    payment_info: PaymentInfo,
    *,
    now: datetime | None = None,
) -> Booking:
    """Mark a booking paid and confirmed.

    Args:
        principal: Acting user; must pass the booking access rule.
        booking_id: Booking UUID.
        payment_info: Provider payment data; ``id`` is required.
        now: Clock override for the invoice identifier.

    Returns:
        The confirmed booking.

    Raises:
        NotFoundError: Booking does not exist.
        AuthorizationError: Principal may not act on the booking.
        ValidationError: Missing payment id or unknown method.
        ConflictError: Booking is canceled or completed.
    """
    now = now or utc_now()

    with txn() as cur:
        booking, prop = load_booking(cur, booking_id, lock=True)
        require_booking_access(principal, booking.user_id, prop["owner_id"], action="pay for")
        _validate_payment_info(payment_info)

        if booking.is_terminal:
            raise ConflictError(f"Cannot pay for a {booking.status} booking")

        if booking.is_paid:
            logger.info(
                "payment_already_confirmed",
                extra={"extra_fields": safe_log_context(booking_id=booking_id)},
            )
            return booking

        row = bookings_repository.mark_paid(
            cur,
            booking_id,
            payment_info=payment_info.to_dict(),
            invoice_id=generate_invoice_id(booking_id, now),
        )
        if row is None:
            raise ConflictError("Booking changed while confirming payment")

    confirmed = Booking.from_row(row)
    logger.info(
        "payment_confirmed",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking_id,
                invoice_id=confirmed.invoice_id,
                method=payment_info.method,
            )
        },
    )
    return confirmed

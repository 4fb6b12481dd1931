"""Booking lifecycle: quote, create, view, list and complete.

States::

    pending -> confirmed -> completed
    pending | confirmed -> canceled

canceled and completed are terminal. Payment confirmation lives in
payments.py, cancellation in cancellation.py and invoice data in invoice.py;
they share the loaders defined here.

Create runs in one transaction: the discount usage increment, the booking
row and the claimed nights are committed together or not at all.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from staybook.domain.access import Principal, require_booking_access
from staybook.domain.discounts import DiscountCode, ineligibility_reason, normalize_code
from staybook.domain.errors import (
    AuthorizationError,
    ConflictError,
    DomainRuleViolation,
    NotFoundError,
    ValidationError,
)
from staybook.domain.pricing import PriceBreakdown, calculate_price, to_money
from staybook.infra.db import txn
from staybook.infra.repositories import (
    bookings_repository,
    discounts_repository,
    properties_repository,
)
from staybook.infra.settings import get_settings
from staybook.infra.time import utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

TERMINAL_STATUSES = ("canceled", "completed")


@dataclass(frozen=True)
class BookingRequest:
    """Already-validated booking input."""

    property_id: str
    check_in: date
    check_out: date
    num_guests: int = 1
    discount_code: str | None = None
    message: str | None = None
    special_requests: str | None = None


@dataclass
class Booking:
    id: str
    property_id: str
    user_id: str
    check_in: date
    check_out: date
    num_nights: int
    num_guests: int
    price_breakdown: PriceBreakdown
    total_price: Decimal
    status: str = "pending"
    payment_status: str = "pending"
    payment_info: dict[str, Any] | None = None
    invoice_id: str | None = None
    canceled_by: str | None = None
    cancellation_reason: str | None = None
    refund_amount: Decimal = Decimal("0.00")
    refund_status: str | None = None
    refund_date: datetime | None = None
    message: str | None = None
    special_requests: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "completed"

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Booking":
        return cls(
            id=row["id"],
            property_id=row["property_id"],
            user_id=row["user_id"],
            check_in=row["check_in"],
            check_out=row["check_out"],
            num_nights=row["num_nights"],
            num_guests=row["num_guests"],
            price_breakdown=PriceBreakdown.from_dict(row["price_breakdown"]),
            total_price=to_money(row["total_price"]),
            status=row["status"],
            payment_status=row["payment_status"],
            payment_info=row.get("payment_info"),
            invoice_id=row.get("invoice_id"),
            canceled_by=row.get("canceled_by"),
            cancellation_reason=row.get("cancellation_reason"),
            refund_amount=to_money(row.get("refund_amount") or 0),
            refund_status=row.get("refund_status"),
            refund_date=row.get("refund_date"),
            message=row.get("message"),
            special_requests=row.get("special_requests"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "property_id": self.property_id,
            "user_id": self.user_id,
            "check_in": self.check_in.isoformat(),
            "check_out": self.check_out.isoformat(),
            "num_nights": self.num_nights,
            "num_guests": self.num_guests,
            "price_breakdown": self.price_breakdown.to_dict(),
            "total_price": f"{self.total_price:.2f}",
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_info": self.payment_info,
            "invoice_id": self.invoice_id,
            "invoice_url": f"/bookings/{self.id}/invoice" if self.invoice_id else None,
            "canceled_by": self.canceled_by,
            "cancellation_reason": self.cancellation_reason,
            "refund_amount": f"{self.refund_amount:.2f}",
            "refund_status": self.refund_status,
            "refund_date": self.refund_date.isoformat() if self.refund_date else None,
            "message": self.message,
            "special_requests": self.special_requests,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ── Stay arithmetic ───────────────────────────────────────


def count_nights(check_in: date, check_out: date) -> int:
    """Calendar-day distance between the two dates."""
    return abs((check_out - check_in).days)


def stay_nights(check_in: date, check_out: date) -> list[date]:
    """Every night of [check_in, check_out); the check-out day is not a night."""
    return [check_in + timedelta(days=i) for i in range((check_out - check_in).days)]


def validate_stay(
    check_in: date,
    check_out: date,
    num_guests: int,
    *,
    today: date,
) -> int:
    """Validate dates and guest count, returning the number of nights."""
    if check_in <= today:
        raise ValidationError("Check-in date must be in the future")
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date")
    if num_guests < 1:
        raise ValidationError("Number of guests must be at least 1")
    return count_nights(check_in, check_out)


# ── Shared loaders ────────────────────────────────────────


def load_property(cur: PgCursor, property_id: str) -> dict[str, Any]:
    prop = properties_repository.get_property(cur, property_id)
    if prop is None:
        raise NotFoundError("Property not found")
    return prop


def load_booking(
    cur: PgCursor,
    booking_id: str,
    *,
    lock: bool = False,
) -> tuple[Booking, dict[str, Any]]:
    """Fetch a booking and its property, raising NotFoundError when absent."""
    row = bookings_repository.get_booking(cur, booking_id, lock=lock)
    if row is None:
        raise NotFoundError("Booking not found")
    return Booking.from_row(row), load_property(cur, row["property_id"])


def _require_bookable(prop: dict[str, Any]) -> None:
    if not prop["is_active"] or not prop["is_approved"]:
        raise DomainRuleViolation(
            "Property is not available for booking", reason="property_unavailable"
        )


def _resolve_discount(
    cur: PgCursor,
    code: str,
    *,
    amount: Decimal,
    user_id: str | None,
    property_id: str,
    now: datetime,
) -> DiscountCode:
    """Load *code* and make sure it applies, raising otherwise."""
    row = discounts_repository.get_discount_by_code(cur, normalize_code(code))
    if row is None:
        raise NotFoundError("Discount code not found")

    discount = DiscountCode.from_row(row)
    reason = ineligibility_reason(discount, amount, user_id, property_id, now=now)
    if reason is not None:
        raise DomainRuleViolation("This discount code cannot be applied", reason=reason)
    return discount


def _price_stay(
    prop: dict[str, Any],
    nights: int,
    discount: DiscountCode | None = None,
) -> PriceBreakdown:
    settings = get_settings()
    return calculate_price(
        prop["nightly_rate"],
        nights,
        region=prop.get("region"),
        discount=discount.as_applied() if discount else None,
        cleaning_fee=settings.cleaning_fee,
        service_fee_rate=settings.service_fee_rate,
    )


# ── Operations ────────────────────────────────────────────


def quote_booking(
    request: BookingRequest,
    *,
    principal: Principal | None = None,
    now: datetime | None = None,
) -> PriceBreakdown:
    """Price a prospective stay without persisting anything.

    Applies the same checks as create_booking (dates, bookable property,
    free nights, discount eligibility) but never counts a discount use.
    """
    now = now or utc_now()
    nights = validate_stay(
        request.check_in, request.check_out, request.num_guests, today=now.date()
    )

    with txn() as cur:
        prop = load_property(cur, request.property_id)
        _require_bookable(prop)

        taken = properties_repository.get_booked_nights(
            cur,
            property_id=request.property_id,
            start=request.check_in,
            end=request.check_out,
        )
        if taken:
            raise DomainRuleViolation(
                "Property is already booked for the selected dates",
                reason="dates_unavailable",
            )

        breakdown = _price_stay(prop, nights)
        if request.discount_code:
            discount = _resolve_discount(
                cur,
                request.discount_code,
                amount=breakdown.subtotal_after_tax,
                user_id=principal.id if principal else None,
                property_id=request.property_id,
                now=now,
            )
            breakdown = _price_stay(prop, nights, discount)

    return breakdown


def create_booking(
    principal: Principal,
    request: BookingRequest,
    *,
    now: datetime | None = None,
) -> Booking:
    """Create a pending booking and claim its nights.

    Steps, all in one transaction:
    1. Validate dates and guest count.
    2. Load the property; it must be active and approved.
    3. Price the stay from the property's nightly rate and region.
    4. If a discount code is given: it must exist and be eligible for the
       after-tax subtotal; its usage is counted (conditional on the cap)
       and the stay is re-priced with it.
    5. Insert the booking as 'pending'.
    6. Claim every night in [check_in, check_out) on the property ledger.

    Raises:
        ValidationError: Bad dates or guest count.
        NotFoundError: Unknown property or discount code.
        DomainRuleViolation: Property not bookable, nights taken, or
            discount not applicable.
    """
    now = now or utc_now()
    nights = validate_stay(
        request.check_in, request.check_out, request.num_guests, today=now.date()
    )

    with txn() as cur:
        prop = load_property(cur, request.property_id)
        _require_bookable(prop)

        breakdown = _price_stay(prop, nights)

        if request.discount_code:
            discount = _resolve_discount(
                cur,
                request.discount_code,
                amount=breakdown.subtotal_after_tax,
                user_id=principal.id,
                property_id=request.property_id,
                now=now,
            )
            if discounts_repository.increment_usage(cur, discount.code) is None:
                raise DomainRuleViolation(
                    "This discount code cannot be applied", reason="maxed-out"
                )
            breakdown = _price_stay(prop, nights, discount)
            logger.info(
                "discount_applied",
                extra={
                    "extra_fields": safe_log_context(
                        code=discount.code,
                        property_id=request.property_id,
                        discount_amount=str(breakdown.discount_amount),
                    )
                },
            )

        row = bookings_repository.insert_booking(
            cur,
            property_id=request.property_id,
            user_id=principal.id,
            check_in=request.check_in,
            check_out=request.check_out,
            num_nights=nights,
            num_guests=request.num_guests,
            total_price=breakdown.total_price,
            price_breakdown=breakdown.to_dict(),
            message=request.message,
            special_requests=request.special_requests,
        )
        booking = Booking.from_row(row)

        wanted = stay_nights(request.check_in, request.check_out)
        claimed = properties_repository.mark_booked(
            cur,
            property_id=request.property_id,
            booking_id=booking.id,
            nights=wanted,
        )
        if len(claimed) != len(wanted):
            raise DomainRuleViolation(
                "Property is already booked for the selected dates",
                reason="dates_unavailable",
            )

    logger.info(
        "booking_created",
        extra={
            "extra_fields": safe_log_context(
                booking_id=booking.id,
                property_id=booking.property_id,
                nights=nights,
                total_price=str(booking.total_price),
            )
        },
    )
    return booking


def get_booking(principal: Principal, booking_id: str) -> Booking:
    with txn() as cur:
        booking, prop = load_booking(cur, booking_id)
    require_booking_access(principal, booking.user_id, prop["owner_id"], action="view")
    return booking


def list_bookings(principal: Principal) -> list[Booking]:
    """Admins see every booking, hosts the bookings on their properties, guests their own."""
    with txn() as cur:
        if principal.is_admin:
            rows = bookings_repository.list_bookings(cur)
        elif principal.role == "host":
            rows = bookings_repository.list_bookings(cur, owner_id=principal.id)
        else:
            rows = bookings_repository.list_bookings(cur, user_id=principal.id)
    return [Booking.from_row(row) for row in rows]


def complete_booking(principal: Principal, booking_id: str) -> Booking:
    """Close a confirmed stay. Only an administrator or the property owner may."""
    with txn() as cur:
        booking, prop = load_booking(cur, booking_id, lock=True)
        if not (principal.is_admin or principal.id == prop["owner_id"]):
            raise AuthorizationError("Not authorized to complete this booking")
        if booking.status != "confirmed":
            raise ConflictError(
                f"Only confirmed bookings can be completed (status: {booking.status})"
            )
        row = bookings_repository.mark_completed(cur, booking_id)
        if row is None:
            raise ConflictError("Booking changed while completing it")

    logger.info(
        "booking_completed",
        extra={"extra_fields": safe_log_context(booking_id=booking_id)},
    )
    return Booking.from_row(row)

"""Booking endpoints: quote, create, read, pay, cancel, complete, invoice."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field

from staybook.api.auth import get_current_user
from staybook.domain.access import Principal
from staybook.domain.bookings import (
    BookingRequest,
    complete_booking,
    create_booking,
    get_booking,
    list_bookings,
    quote_booking,
)
from staybook.domain.cancellation import cancel_booking
from staybook.domain.invoice import get_invoice_data
from staybook.domain.payments import PaymentInfo, confirm_payment


class BookingBody(BaseModel):
    property_id: str
    check_in: date
    check_out: date
    num_guests: int = 1
    discount_code: str | None = None
    message: str | None = Field(default=None, max_length=1000)
    special_requests: str | None = Field(default=None, max_length=500)

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            property_id=self.property_id,
            check_in=self.check_in,
            check_out=self.check_out,
            num_guests=self.num_guests,
            discount_code=self.discount_code,
            message=self.message,
            special_requests=self.special_requests,
        )


class PaymentInfoBody(BaseModel):
    id: str
    status: str | None = None
    method: str = "credit_card"
    tax: Decimal = Decimal("0")
    transaction_id: str | None = None
    last4_digits: str | None = Field(default=None, pattern=r"^\d{4}$")


class PayBody(BaseModel):
    payment_info: PaymentInfoBody


class CancelBody(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/quote")
def quote(
    body: BookingBody,
    user: Principal = Depends(get_current_user),
) -> dict:
    """Price a stay without booking it."""
    breakdown = quote_booking(body.to_request(), principal=user)
    return {"price_breakdown": breakdown.to_dict()}


@router.post("", status_code=201)
def create(
    body: BookingBody,
    user: Principal = Depends(get_current_user),
) -> dict:
    return create_booking(user, body.to_request()).to_dict()


@router.get("")
def list_all(user: Principal = Depends(get_current_user)) -> dict:
    """Bookings visible to the caller (all for admins, by property for hosts)."""
    bookings = list_bookings(user)
    return {"count": len(bookings), "bookings": [b.to_dict() for b in bookings]}


@router.get("/{booking_id}")
def get_one(
    booking_id: str = Path(..., description="Booking UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    return get_booking(user, booking_id).to_dict()


@router.put("/{booking_id}/pay")
def pay(
    body: PayBody,
    booking_id: str = Path(..., description="Booking UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    """Record the provider payment and confirm the booking."""
    info = body.payment_info
    booking = confirm_payment(
        user,
        booking_id,
        PaymentInfo(
            id=info.id,
            status=info.status,
            method=info.method,
            tax=info.tax,
            transaction_id=info.transaction_id,
            last4_digits=info.last4_digits,
        ),
    )
    return booking.to_dict()


@router.put("/{booking_id}/cancel")
def cancel(
    body: CancelBody | None = None,
    booking_id: str = Path(..., description="Booking UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    booking = cancel_booking(user, booking_id, reason=body.reason if body else None)
    return booking.to_dict()


@router.put("/{booking_id}/complete")
def complete(
    booking_id: str = Path(..., description="Booking UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    return complete_booking(user, booking_id).to_dict()


@router.get("/{booking_id}/invoice")
def invoice(
    booking_id: str = Path(..., description="Booking UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    """Invoice data for a paid booking; rendering is left to the client."""
    return get_invoice_data(user, booking_id).to_dict()

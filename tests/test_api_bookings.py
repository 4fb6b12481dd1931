"""Tests for /bookings endpoints.

Domain operations are patched where the routes import them; these tests
cover request parsing, status codes and response shape.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import make_booking_row, make_principal, make_property
from staybook.api.auth import get_current_user
from staybook.api.factory import create_app
from staybook.domain.bookings import Booking
from staybook.domain.errors import AuthorizationError, NotFoundError, ValidationError
from staybook.domain.pricing import calculate_price

ROUTES = "staybook.api.routes.bookings"


@pytest.fixture
def guest():
    return make_principal("guest")


@pytest.fixture
def prop():
    return make_property()


@pytest.fixture
def client(guest):
    app = create_app()
    app.dependency_overrides[get_current_user] = lambda: guest
    return TestClient(app, raise_server_exceptions=False)


BODY = {
    "property_id": "p1",
    "check_in": "2030-07-01",
    "check_out": "2030-07-04",
    "num_guests": 2,
    "discount_code": "SAVE10",
}


class TestAuthRequired:
    def test_no_token_is_401(self):
        response = TestClient(create_app()).get("/bookings")
        assert response.status_code == 401


class TestQuoteAndCreate:
    def test_quote(self, client, guest):
        breakdown = calculate_price(Decimal("100"), 3)
        with patch(f"{ROUTES}.quote_booking", return_value=breakdown) as quote:
            response = client.post("/bookings/quote", json=BODY)

        assert response.status_code == 200
        assert response.json()["price_breakdown"]["total_price"] == "434.50"
        request = quote.call_args.args[0]
        assert request.check_in == date(2030, 7, 1)
        assert quote.call_args.kwargs["principal"] == guest

    def test_create_returns_201(self, client, guest, prop):
        booking = Booking.from_row(make_booking_row(prop, guest.id))
        with patch(f"{ROUTES}.create_booking", return_value=booking) as create:
            response = client.post("/bookings", json=BODY)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["total_price"] == "434.50"
        assert data["invoice_url"] is None
        principal, request = create.call_args.args
        assert principal == guest
        assert request.discount_code == "SAVE10"
        assert request.num_guests == 2

    def test_domain_validation_error_is_400(self, client):
        with patch(f"{ROUTES}.create_booking", side_effect=ValidationError("Check-in date must be in the future")):
            response = client.post("/bookings", json=BODY)
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

    def test_malformed_body_is_422(self, client):
        response = client.post("/bookings", json={"property_id": "p1", "check_in": "soon"})
        assert response.status_code == 422


class TestReadEndpoints:
    def test_list(self, client, guest, prop):
        rows = [make_booking_row(prop, guest.id), make_booking_row(prop, guest.id)]
        with patch(f"{ROUTES}.list_bookings", return_value=[Booking.from_row(r) for r in rows]):
            response = client.get("/bookings")
        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_get_not_found(self, client):
        with patch(f"{ROUTES}.get_booking", side_effect=NotFoundError("Booking not found")):
            response = client.get("/bookings/missing")
        assert response.status_code == 404
        assert response.json() == {"kind": "not_found", "message": "Booking not found"}

    def test_get_forbidden(self, client):
        with patch(f"{ROUTES}.get_booking", side_effect=AuthorizationError("Not authorized to view this booking")):
            response = client.get("/bookings/b1")
        assert response.status_code == 403
        assert response.json()["kind"] == "forbidden"


class TestLifecycleEndpoints:
    def test_pay(self, client, guest, prop):
        row = make_booking_row(
            prop, guest.id, status="confirmed", payment_status="completed", invoice_id="INV-000001-ABCDEF"
        )
        with patch(f"{ROUTES}.confirm_payment", return_value=Booking.from_row(row)) as confirm:
            response = client.put(
                f"/bookings/{row['id']}/pay",
                json={"payment_info": {"id": "pay_1", "method": "paypal", "last4_digits": "4242"}},
            )

        assert response.status_code == 200
        assert response.json()["invoice_url"] == f"/bookings/{row['id']}/invoice"
        info = confirm.call_args.args[2]
        assert info.id == "pay_1"
        assert info.method == "paypal"

    def test_pay_requires_payment_id(self, client):
        response = client.put("/bookings/b1/pay", json={"payment_info": {"method": "paypal"}})
        assert response.status_code == 422

    def test_cancel_with_reason(self, client, guest, prop):
        row = make_booking_row(prop, guest.id, status="canceled", canceled_by="guest")
        with patch(f"{ROUTES}.cancel_booking", return_value=Booking.from_row(row)) as cancel:
            response = client.put(f"/bookings/{row['id']}/cancel", json={"reason": "sick"})
        assert response.status_code == 200
        assert response.json()["canceled_by"] == "guest"
        assert cancel.call_args.kwargs["reason"] == "sick"

    def test_cancel_without_body(self, client, guest, prop):
        row = make_booking_row(prop, guest.id, status="canceled")
        with patch(f"{ROUTES}.cancel_booking", return_value=Booking.from_row(row)) as cancel:
            response = client.put(f"/bookings/{row['id']}/cancel")
        assert response.status_code == 200
        assert cancel.call_args.kwargs["reason"] is None

    def test_complete(self, client, guest, prop):
        row = make_booking_row(prop, guest.id, status="completed")
        with patch(f"{ROUTES}.complete_booking", return_value=Booking.from_row(row)):
            response = client.put(f"/bookings/{row['id']}/complete")
        assert response.json()["status"] == "completed"

    def test_invoice(self, client):
        from staybook.domain.invoice import InvoiceData
        from helpers import NOW

        data = InvoiceData(
            invoice_id="INV-1",
            issued_at=NOW,
            customer={"name": "Ana", "email": "ana@example.com"},
            property={"title": "Seaside Cottage"},
            booking={"id": "b1"},
            payment={"total_price": "434.50"},
        )
        with patch(f"{ROUTES}.get_invoice_data", return_value=data):
            response = client.get("/bookings/b1/invoice")
        assert response.status_code == 200
        assert response.json()["invoice_id"] == "INV-1"

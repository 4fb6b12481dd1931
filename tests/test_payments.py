"""Tests for payment confirmation."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from helpers import NOW, make_booking_row, make_principal, make_property, mock_txn
from staybook.domain.errors import AuthorizationError, ConflictError, ValidationError
from staybook.domain.payments import PaymentInfo, confirm_payment, generate_invoice_id

REPO = "staybook.infra.repositories"
PAYMENT = PaymentInfo(id="pay_123", status="succeeded", method="credit_card", last4_digits="4242")


def _paid(row, *, payment_info, invoice_id):
    return {
        **row,
        "status": "confirmed",
        "payment_status": "completed",
        "payment_info": payment_info,
        "invoice_id": row["invoice_id"] or invoice_id,
    }


class TestInvoiceId:
    def test_format(self):
        now = datetime(2030, 6, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)
        invoice_id = generate_invoice_id("3f2b8c1e-0000-4000-8000-00000a1b2c3d", now)
        millis = int(now.timestamp() * 1000) % 1_000_000
        assert invoice_id == f"INV-{millis:06d}-1B2C3D"

    def test_deterministic_per_booking_and_instant(self):
        assert generate_invoice_id("abc-def-123456", NOW) == generate_invoice_id("abc-def-123456", NOW)
        assert generate_invoice_id("abc-def-123456", NOW) != generate_invoice_id("abc-def-654321", NOW)


class TestConfirmPayment:
    def _confirm(self, principal, row, prop, info=PAYMENT):
        def fake_mark_paid(cur, booking_id, *, payment_info, invoice_id):
            return _paid(row, payment_info=payment_info, invoice_id=invoice_id)

        with mock_txn("staybook.domain.payments"), \
             patch(f"{REPO}.bookings_repository.get_booking", return_value=row), \
             patch(f"{REPO}.properties_repository.get_property", return_value=prop), \
             patch(f"{REPO}.bookings_repository.mark_paid", side_effect=fake_mark_paid) as mark:
            return confirm_payment(principal, row["id"], info, now=NOW), mark

    def test_guest_pays_pending_booking(self):
        guest = make_principal("guest")
        prop = make_property()
        row = make_booking_row(prop, guest.id)

        booking, mark = self._confirm(guest, row, prop)

        assert booking.status == "confirmed"
        assert booking.payment_status == "completed"
        assert booking.invoice_id == generate_invoice_id(row["id"], NOW)
        assert booking.payment_info["id"] == "pay_123"
        stored = mark.call_args.kwargs["payment_info"]
        assert stored["tax"] == "0"
        json.dumps(stored)

    def test_owner_and_admin_may_confirm(self):
        prop = make_property()
        row = make_booking_row(prop, "guest-1")
        for principal in (make_principal("host", prop["owner_id"]), make_principal("admin")):
            booking, _ = self._confirm(principal, row, prop)
            assert booking.status == "confirmed"

    def test_already_paid_is_returned_unchanged(self):
        guest = make_principal("guest")
        prop = make_property()
        row = make_booking_row(
            prop, guest.id, status="confirmed", payment_status="completed", invoice_id="INV-000001-ABCDEF"
        )
        booking, mark = self._confirm(guest, row, prop)
        mark.assert_not_called()
        assert booking.invoice_id == "INV-000001-ABCDEF"

    @pytest.mark.parametrize("status", ["canceled", "completed"])
    def test_terminal_booking_conflict(self, status):
        guest = make_principal("guest")
        prop = make_property()
        row = make_booking_row(prop, guest.id, status=status)
        with pytest.raises(ConflictError):
            self._confirm(guest, row, prop)

    @pytest.mark.parametrize(
        "info",
        [
            PaymentInfo(id=None),
            PaymentInfo(id=""),
            PaymentInfo(id="pay_1", method="cash"),
            PaymentInfo(id="pay_1", tax=Decimal("-1")),
        ],
    )
    def test_invalid_payment_info(self, info):
        guest = make_principal("guest")
        prop = make_property()
        row = make_booking_row(prop, guest.id)
        with pytest.raises(ValidationError):
            self._confirm(guest, row, prop, info)

    def test_stranger_rejected_before_validation(self):
        prop = make_property()
        row = make_booking_row(prop, "guest-1")
        with pytest.raises(AuthorizationError):
            self._confirm(make_principal("guest"), row, prop, PaymentInfo(id=None))

    def test_concurrent_cancel_is_conflict(self):
        guest = make_principal("guest")
        prop = make_property()
        row = make_booking_row(prop, guest.id)
        with mock_txn("staybook.domain.payments"), \
             patch(f"{REPO}.bookings_repository.get_booking", return_value=row), \
             patch(f"{REPO}.properties_repository.get_property", return_value=prop), \
             patch(f"{REPO}.bookings_repository.mark_paid", return_value=None):
            with pytest.raises(ConflictError):
                confirm_payment(guest, row["id"], PAYMENT, now=NOW)

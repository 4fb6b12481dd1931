"""Shared test helper functions for Staybook tests.

This module contains helper functions that can be imported by both conftest.py
and individual test files. These are NOT fixtures - they are regular functions.
"""

from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import jwt

from staybook.domain.access import Principal
from staybook.domain.pricing import calculate_price

TEST_JWT_SECRET = "test-secret-with-enough-length-for-hs256"

# 2030-06-01 12:00 UTC; check-in dates in tests are relative to it
NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def _create_token(
    sub: str = "user-123",
    secret: str = TEST_JWT_SECRET,
    iss: str | None = None,
    aud: str | None = None,
    exp: int | None = None,
) -> str:
    """Create signed HS256 JWT for testing."""
    now = int(time.time())
    payload: dict[str, Any] = {
        "sub": sub,
        "exp": exp if exp is not None else now + 3600,
        "iat": now,
    }
    if iss:
        payload["iss"] = iss
    if aud:
        payload["aud"] = aud
    return jwt.encode(payload, secret, algorithm="HS256")


def make_principal(role: str = "guest", user_id: str | None = None) -> Principal:
    return Principal(id=user_id or str(uuid.uuid4()), role=role)


def make_property(
    owner_id: str | None = None,
    *,
    nightly_rate: str = "100.00",
    region: str | None = None,
    is_active: bool = True,
    is_approved: bool = True,
) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "owner_id": owner_id or str(uuid.uuid4()),
        "title": "Seaside Cottage",
        "nightly_rate": Decimal(nightly_rate),
        "address": "1 Ocean Ave",
        "city": "Santa Cruz",
        "region": region,
        "country": "US",
        "is_active": is_active,
        "is_approved": is_approved,
    }


def make_booking_row(
    prop: dict[str, Any],
    user_id: str,
    *,
    check_in: date = date(2030, 7, 1),
    check_out: date = date(2030, 7, 4),
    status: str = "pending",
    payment_status: str = "pending",
    invoice_id: str | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a bookings row the way bookings_repository returns it."""
    nights = (check_out - check_in).days
    breakdown = calculate_price(prop["nightly_rate"], nights, region=prop["region"])
    row: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "property_id": prop["id"],
        "user_id": user_id,
        "check_in": check_in,
        "check_out": check_out,
        "num_nights": nights,
        "num_guests": 2,
        "price_breakdown": breakdown.to_dict(),
        "total_price": breakdown.total_price,
        "status": status,
        "payment_status": payment_status,
        "payment_info": None,
        "invoice_id": invoice_id,
        "canceled_by": None,
        "cancellation_reason": None,
        "refund_amount": Decimal("0.00"),
        "refund_status": None,
        "refund_date": None,
        "message": None,
        "special_requests": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def make_discount_row(code: str = "SUMMER20", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "code": code,
        "description": "Summer sale",
        "type": "percentage",
        "value": Decimal("10"),
        "max_uses": None,
        "current_uses": 0,
        "min_booking_amount": Decimal("0"),
        "applicable_property_ids": [],
        "applicable_user_ids": [],
        "valid_from": datetime(2030, 1, 1, tzinfo=timezone.utc),
        "valid_until": datetime(2030, 12, 31, tzinfo=timezone.utc),
        "is_active": True,
        "created_by": None,
    }
    row.update(overrides)
    return row


@contextmanager
def mock_txn(module: str):
    """Patch ``<module>.txn`` with a context manager yielding a MagicMock cursor."""
    with patch(f"{module}.txn") as txn_mock:
        cur = MagicMock()
        txn_mock.return_value.__enter__.return_value = cur
        txn_mock.return_value.__exit__.return_value = False
        yield cur

"""Bookings repository - persistence for bookings.

Uses raw SQL with psycopg2 (no ORM). State transitions are guarded by the
expected current status in the WHERE clause, so a concurrent transition
makes the update return no row instead of overwriting it.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from psycopg2.extensions import cursor as PgCursor

BOOKING_COLUMNS = (
    "id",
    "property_id",
    "user_id",
    "check_in",
    "check_out",
    "num_nights",
    "num_guests",
    "total_price",
    "price_breakdown",
    "status",
    "payment_status",
    "payment_info",
    "invoice_id",
    "canceled_by",
    "cancellation_reason",
    "refund_amount",
    "refund_status",
    "refund_date",
    "message",
    "special_requests",
    "created_at",
    "updated_at",
)

_SELECT_COLUMNS = ", ".join(f"b.{c}" for c in BOOKING_COLUMNS)
_RETURNING = ", ".join(BOOKING_COLUMNS)

CANCELLABLE_STATUSES = ("pending", "confirmed")
PAYABLE_STATUSES = ("pending", "confirmed")


def _row_to_dict(row: tuple | None) -> dict[str, Any] | None:
    if row is None:
        return None
    data = dict(zip(BOOKING_COLUMNS, row))
    for key in ("id", "property_id", "user_id"):
        data[key] = str(data[key])
    return data


def insert_booking(
    cur: PgCursor,
    *,
    property_id: str,
    user_id: str,
    check_in: date,
    check_out: date,
    num_nights: int,
    num_guests: int,
    total_price: Decimal,
    price_breakdown: dict[str, Any],
    message: str | None = None,
    special_requests: str | None = None,
) -> dict[str, Any]:
    """Insert a booking in status 'pending'.

    Returns:
        The stored booking row as a dict.
    """
    cur.execute(
        f"""
        INSERT INTO bookings (
            property_id, user_id, check_in, check_out, num_nights,
            num_guests, total_price, price_breakdown, message, special_requests
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s::jsonb, %s, %s)
        RETURNING {_RETURNING}
        """,
        (
            property_id,
            user_id,
            check_in,
            check_out,
            num_nights,
            num_guests,
            total_price,
            json.dumps(price_breakdown),
            message,
            special_requests,
        ),
    )
    return _row_to_dict(cur.fetchone())


def get_booking(
    cur: PgCursor,
    booking_id: str,
    *,
    lock: bool = False,
) -> dict[str, Any] | None:
    """Fetch a booking by ID, optionally locking the row FOR UPDATE."""
    query = f"SELECT {_SELECT_COLUMNS} FROM bookings b WHERE b.id = %s"
    if lock:
        query += " FOR UPDATE"
    cur.execute(query, (booking_id,))
    return _row_to_dict(cur.fetchone())


def list_bookings(
    cur: PgCursor,
    *,
    user_id: str | None = None,
    owner_id: str | None = None,
) -> list[dict[str, Any]]:
    """List bookings newest first.

    Args:
        user_id: Only bookings made by this guest.
        owner_id: Only bookings on properties owned by this host.
        With neither filter every booking is returned.
    """
    conditions: list[str] = []
    params: list[Any] = []
    if user_id is not None:
        conditions.append("b.user_id = %s")
        params.append(user_id)
    if owner_id is not None:
        conditions.append("p.owner_id = %s")
        params.append(owner_id)

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    cur.execute(
        f"""
        SELECT {_SELECT_COLUMNS}
        FROM bookings b
        JOIN properties p ON p.id = b.property_id
        {where}
        ORDER BY b.created_at DESC
        """,
        tuple(params),
    )
    return [_row_to_dict(row) for row in cur.fetchall()]


def mark_paid(
    cur: PgCursor,
    booking_id: str,
    *,
    payment_info: dict[str, Any],
    invoice_id: str,
) -> dict[str, Any] | None:
    """Record a completed payment and confirm the booking.

    Returns:
        Updated booking, or None if the booking is no longer payable.
    """
    cur.execute(
        f"""
        UPDATE bookings
        SET payment_status = 'completed',
            status = 'confirmed',
            payment_info = %s::jsonb,
            invoice_id = COALESCE(invoice_id, %s),
            updated_at = now()
        WHERE id = %s AND status = ANY(%s)
        RETURNING {_RETURNING}
        """,
        (json.dumps(payment_info), invoice_id, booking_id, list(PAYABLE_STATUSES)),
    )
    return _row_to_dict(cur.fetchone())


def mark_canceled(
    cur: PgCursor,
    booking_id: str,
    *,
    canceled_by: str,
    reason: str | None,
    refund_amount: Decimal,
    refund_status: str | None,
    payment_status: str,
    refund_date: datetime | None,
) -> dict[str, Any] | None:
    """Move a pending/confirmed booking to 'canceled'.

    Returns:
        Updated booking, or None if it was not in a cancellable status.
    """
    cur.execute(
        f"""
        UPDATE bookings
        SET status = 'canceled',
            canceled_by = %s,
            cancellation_reason = %s,
            refund_amount = %s,
            refund_status = %s,
            payment_status = %s,
            refund_date = %s,
            updated_at = now()
        WHERE id = %s AND status = ANY(%s)
        RETURNING {_RETURNING}
        """,
        (
            canceled_by,
            reason,
            refund_amount,
            refund_status,
            payment_status,
            refund_date,
            booking_id,
            list(CANCELLABLE_STATUSES),
        ),
    )
    return _row_to_dict(cur.fetchone())


def mark_completed(cur: PgCursor, booking_id: str) -> dict[str, Any] | None:
    """Move a confirmed booking to 'completed'; None if it was not confirmed."""
    cur.execute(
        f"""
        UPDATE bookings
        SET status = 'completed', updated_at = now()
        WHERE id = %s AND status = 'confirmed'
        RETURNING {_RETURNING}
        """,
        (booking_id,),
    )
    return _row_to_dict(cur.fetchone())

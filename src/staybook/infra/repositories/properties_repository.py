"""Properties repository - property lookup and the per-night availability ledger.

A booked night is a row in property_booked_nights keyed by
(property_id, night_date). Claiming nights is a single conditional insert,
so two overlapping bookings can never both own the same night.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from psycopg2.extensions import cursor as PgCursor


def get_property(cur: PgCursor, property_id: str) -> dict[str, Any] | None:
    cur.execute(
        """
        SELECT id, owner_id, title, nightly_rate, address, city, region,
               country, is_active, is_approved
        FROM properties
        WHERE id = %s
        """,
        (property_id,),
    )
    row = cur.fetchone()
    if row is None:
        return None

    return {
        "id": str(row[0]),
        "owner_id": str(row[1]),
        "title": row[2],
        "nightly_rate": row[3],
        "address": row[4],
        "city": row[5],
        "region": row[6],
        "country": row[7],
        "is_active": row[8],
        "is_approved": row[9],
    }


def mark_booked(
    cur: PgCursor,
    *,
    property_id: str,
    booking_id: str,
    nights: list[date],
) -> list[date]:
    """Claim *nights* for a booking.

    Nights already owned by another booking are skipped (ON CONFLICT DO
    NOTHING), so the caller compares the result with what it asked for.

    Returns:
        The nights actually claimed.
    """
    if not nights:
        return []

    cur.execute(
        """
        INSERT INTO property_booked_nights (property_id, night_date, booking_id)
        SELECT %s, night, %s
        FROM unnest(%s::date[]) AS night
        ON CONFLICT (property_id, night_date) DO NOTHING
        RETURNING night_date
        """,
        (property_id, booking_id, nights),
    )
    return [row[0] for row in cur.fetchall()]


def release_booked(cur: PgCursor, *, booking_id: str) -> list[date]:
    """Free every night owned by *booking_id*.

    Returns:
        The released nights (empty when nothing was held).
    """
    cur.execute(
        """
        DELETE FROM property_booked_nights
        WHERE booking_id = %s
        RETURNING night_date
        """,
        (booking_id,),
    )
    return sorted(row[0] for row in cur.fetchall())


def get_booked_nights(
    cur: PgCursor,
    *,
    property_id: str,
    start: date,
    end: date,
) -> list[date]:
    """Booked nights of a property in [start, end)."""
    cur.execute(
        """
        SELECT night_date
        FROM property_booked_nights
        WHERE property_id = %s AND night_date >= %s AND night_date < %s
        ORDER BY night_date
        """,
        (property_id, start, end),
    )
    return [row[0] for row in cur.fetchall()]

"""Discount codes repository - catalog persistence and usage counting.

Uses raw SQL with psycopg2 (no ORM).
"""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

DISCOUNT_COLUMNS = (
    "id",
    "code",
    "description",
    "type",
    "value",
    "max_uses",
    "current_uses",
    "min_booking_amount",
    "applicable_property_ids",
    "applicable_user_ids",
    "valid_from",
    "valid_until",
    "is_active",
    "created_by",
)

# Columns an administrator may change after creation.
UPDATABLE_COLUMNS = (
    "code",
    "description",
    "value",
    "max_uses",
    "min_booking_amount",
    "applicable_property_ids",
    "applicable_user_ids",
    "valid_from",
    "valid_until",
    "is_active",
)

_COLUMNS = ", ".join(DISCOUNT_COLUMNS)


def _row_to_dict(row: tuple | None) -> dict[str, Any] | None:
    if row is None:
        return None
    data = dict(zip(DISCOUNT_COLUMNS, row))
    data["id"] = str(data["id"])
    if data["created_by"] is not None:
        data["created_by"] = str(data["created_by"])
    data["applicable_property_ids"] = list(data["applicable_property_ids"] or [])
    data["applicable_user_ids"] = list(data["applicable_user_ids"] or [])
    return data


def get_discount_by_code(
    cur: PgCursor,
    code: str,
    *,
    active_only: bool = False,
) -> dict[str, Any] | None:
    """Fetch a discount by its normalized code."""
    query = f"SELECT {_COLUMNS} FROM discount_codes WHERE code = %s"
    if active_only:
        query += " AND is_active"
    cur.execute(query, (code,))
    return _row_to_dict(cur.fetchone())


def get_discount(cur: PgCursor, discount_id: str) -> dict[str, Any] | None:
    cur.execute(f"SELECT {_COLUMNS} FROM discount_codes WHERE id = %s", (discount_id,))
    return _row_to_dict(cur.fetchone())


def list_discounts(
    cur: PgCursor,
    *,
    is_active: bool | None = None,
    search: str | None = None,
) -> list[dict[str, Any]]:
    """List discount codes newest first, optionally filtered."""
    conditions: list[str] = []
    params: list[Any] = []
    if is_active is not None:
        conditions.append("is_active = %s")
        params.append(is_active)
    if search:
        conditions.append("code ILIKE %s")
        params.append(f"%{search}%")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    cur.execute(
        f"SELECT {_COLUMNS} FROM discount_codes {where} ORDER BY created_at DESC",
        tuple(params),
    )
    return [_row_to_dict(row) for row in cur.fetchall()]


def insert_discount(cur: PgCursor, fields: dict[str, Any]) -> dict[str, Any] | None:
    """Insert a discount code.

    Returns:
        The stored row, or None when the code already exists.
    """
    columns = [c for c in DISCOUNT_COLUMNS if c in fields and c != "id"]
    placeholders = ", ".join(["%s"] * len(columns))
    cur.execute(
        f"""
        INSERT INTO discount_codes ({", ".join(columns)})
        VALUES ({placeholders})
        ON CONFLICT (code) DO NOTHING
        RETURNING {_COLUMNS}
        """,
        tuple(fields[c] for c in columns),
    )
    return _row_to_dict(cur.fetchone())


def update_discount(
    cur: PgCursor,
    discount_id: str,
    changes: dict[str, Any],
) -> dict[str, Any] | None:
    """Apply a partial update; unknown keys are ignored."""
    columns = [c for c in UPDATABLE_COLUMNS if c in changes]
    if not columns:
        return get_discount(cur, discount_id)

    assignments = ", ".join(f"{c} = %s" for c in columns)
    cur.execute(
        f"""
        UPDATE discount_codes
        SET {assignments}, updated_at = now()
        WHERE id = %s
        RETURNING {_COLUMNS}
        """,
        (*[changes[c] for c in columns], discount_id),
    )
    return _row_to_dict(cur.fetchone())


def delete_discount(cur: PgCursor, discount_id: str) -> bool:
    cur.execute("DELETE FROM discount_codes WHERE id = %s RETURNING id", (discount_id,))
    return cur.fetchone() is not None


def increment_usage(cur: PgCursor, code: str) -> int | None:
    """Count one redemption of *code* if it is still under its cap.

    The cap check and the increment are one statement, so two concurrent
    redemptions of the last use cannot both succeed.

    Returns:
        The new usage count, or None when the cap was already reached.
    """
    cur.execute(
        """
        UPDATE discount_codes
        SET current_uses = current_uses + 1, updated_at = now()
        WHERE code = %s
          AND (max_uses IS NULL OR current_uses < max_uses)
        RETURNING current_uses
        """,
        (code,),
    )
    row = cur.fetchone()
    if row is None:
        return None
    return row[0]

"""Users repository - principal lookup."""

from __future__ import annotations

from typing import Any

from psycopg2.extensions import cursor as PgCursor

_COLUMNS = "id, external_subject, email, first_name, last_name, role"


def _row_to_dict(row: tuple | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {
        "id": str(row[0]),
        "external_subject": row[1],
        "email": row[2],
        "first_name": row[3],
        "last_name": row[4],
        "role": row[5],
    }


def get_user(cur: PgCursor, user_id: str) -> dict[str, Any] | None:
    cur.execute(f"SELECT {_COLUMNS} FROM users WHERE id = %s", (user_id,))
    return _row_to_dict(cur.fetchone())


def get_user_by_subject(cur: PgCursor, external_subject: str) -> dict[str, Any] | None:
    cur.execute(
        f"SELECT {_COLUMNS} FROM users WHERE external_subject = %s",
        (external_subject,),
    )
    return _row_to_dict(cur.fetchone())

"""Discount catalog: administrator CRUD and the public code lookup."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from staybook.domain.access import Principal
from staybook.domain.discounts import (
    DiscountCode,
    describe,
    ineligibility_reason,
    normalize_code,
    validate_discount_fields,
)
from staybook.domain.errors import (
    AuthorizationError,
    ConflictError,
    DomainRuleViolation,
    NotFoundError,
)
from staybook.infra.db import txn
from staybook.infra.repositories import discounts_repository
from staybook.infra.time import utc_now
from staybook.observability.logging import get_logger
from staybook.observability.redaction import safe_log_context

logger = get_logger(__name__)

# Columns an update may set back to NULL.
_NULLABLE_COLUMNS = ("description", "max_uses")


def _require_admin(principal: Principal, action: str) -> None:
    if not principal.is_admin:
        raise AuthorizationError(f"Only admins can {action} discount codes")


def create_discount(principal: Principal, fields: dict[str, Any]) -> DiscountCode:
    """Create a discount code owned by *principal*.

    ``fields`` uses the column names of the catalog; the code is normalized
    to upper case before validation.
    """
    _require_admin(principal, "create")

    data = dict(fields)
    data["code"] = normalize_code(data["code"])
    data.setdefault("type", "percentage")
    data.setdefault("min_booking_amount", Decimal("0"))
    data.setdefault("is_active", True)
    data.setdefault("applicable_property_ids", [])
    data.setdefault("applicable_user_ids", [])
    data["created_by"] = principal.id

    validate_discount_fields(
        code=data["code"],
        type=data["type"],
        value=data["value"],
        valid_from=data["valid_from"],
        valid_until=data["valid_until"],
        max_uses=data.get("max_uses"),
        min_booking_amount=data["min_booking_amount"],
    )

    with txn() as cur:
        row = discounts_repository.insert_discount(cur, data)
    if row is None:
        raise ConflictError("Discount code already exists")

    logger.info(
        "discount_created",
        extra={"extra_fields": safe_log_context(code=data["code"], type=data["type"])},
    )
    return DiscountCode.from_row(row)


def list_discounts(
    principal: Principal,
    *,
    is_active: bool | None = None,
    search: str | None = None,
) -> list[DiscountCode]:
    _require_admin(principal, "view")
    with txn() as cur:
        rows = discounts_repository.list_discounts(cur, is_active=is_active, search=search)
    return [DiscountCode.from_row(row) for row in rows]


def update_discount(
    principal: Principal,
    discount_id: str,
    changes: dict[str, Any],
) -> DiscountCode:
    """Apply a partial update. Renaming to an existing code is a conflict."""
    _require_admin(principal, "update")

    with txn() as cur:
        current_row = discounts_repository.get_discount(cur, discount_id)
        if current_row is None:
            raise NotFoundError("Discount code not found")

        changes = {
            k: v for k, v in changes.items() if v is not None or k in _NULLABLE_COLUMNS
        }
        if changes.get("code") is not None:
            changes["code"] = normalize_code(changes["code"])
            if changes["code"] != current_row["code"]:
                if discounts_repository.get_discount_by_code(cur, changes["code"]) is not None:
                    raise ConflictError("Discount code already exists")

        merged = {**current_row, **changes}
        validate_discount_fields(
            code=merged["code"],
            type=merged["type"],
            value=Decimal(str(merged["value"])),
            valid_from=merged["valid_from"],
            valid_until=merged["valid_until"],
            max_uses=merged.get("max_uses"),
            min_booking_amount=Decimal(str(merged["min_booking_amount"])),
        )

        row = discounts_repository.update_discount(cur, discount_id, changes)
        if row is None:
            raise NotFoundError("Discount code not found")

    return DiscountCode.from_row(row)


def delete_discount(principal: Principal, discount_id: str) -> None:
    _require_admin(principal, "delete")
    with txn() as cur:
        if not discounts_repository.delete_discount(cur, discount_id):
            raise NotFoundError("Discount code not found")


def lookup_discount(
    code: str,
    *,
    booking_amount: Decimal | None = None,
    user_id: str | None = None,
    property_id: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Check a code the way the checkout page does before booking.

    Without ``booking_amount`` the minimum-amount rule is not evaluated; it
    is enforced again when the booking is created.

    Returns:
        describe() payload of the code.

    Raises:
        NotFoundError: No active code with that name.
        DomainRuleViolation: Code exists but cannot be applied; ``reason``
            tells which check failed first.
    """
    normalized = normalize_code(code)
    with txn() as cur:
        row = discounts_repository.get_discount_by_code(cur, normalized, active_only=True)
    if row is None:
        raise NotFoundError("Discount code not found")

    discount = DiscountCode.from_row(row)
    reason = ineligibility_reason(
        discount, booking_amount, user_id, property_id, now=now or utc_now()
    )
    if reason is not None:
        raise DomainRuleViolation("This discount code cannot be applied", reason=reason)
    return describe(discount)

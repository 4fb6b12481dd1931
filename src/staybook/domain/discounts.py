"""Discount code evaluation.

A discount code is eligible only when all of these hold:

1. it is active;
2. now is within [valid_from, valid_until];
3. usage is below the cap (or there is no cap);
4. the booking amount reaches the minimum;
5. the user allow-list is empty or contains the user;
6. the property allow-list is empty or contains the property.

Evaluation never mutates the code. Usage is incremented separately by the
booking flow through ``discounts_repository.increment_usage``.
"""

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from staybook.domain.errors import ValidationError
from staybook.domain.pricing import AppliedDiscount, DiscountType
from staybook.infra.time import utc_now

DISCOUNT_TYPES = ("percentage", "fixed")

_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,20}$")

# Diagnostic reasons, in the order they are checked.
REASON_INACTIVE = "inactive"
REASON_EXPIRED = "expired"
REASON_MAXED_OUT = "maxed-out"
REASON_MINIMUM_AMOUNT = "minimum-amount"
REASON_NOT_APPLICABLE = "not-applicable"


@dataclass
class DiscountCode:
    code: str
    type: DiscountType
    value: Decimal
    valid_from: datetime
    valid_until: datetime
    id: str | None = None
    description: str | None = None
    max_uses: int | None = None
    current_uses: int = 0
    min_booking_amount: Decimal = Decimal("0")
    applicable_property_ids: list[str] = field(default_factory=list)
    applicable_user_ids: list[str] = field(default_factory=list)
    is_active: bool = True
    created_by: str | None = None

    @property
    def is_maxed_out(self) -> bool:
        return self.max_uses is not None and self.current_uses >= self.max_uses

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) > self.valid_until

    def is_within_window(self, now: datetime | None = None) -> bool:
        now = now or utc_now()
        return self.valid_from <= now <= self.valid_until

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DiscountCode":
        return cls(
            id=row.get("id"),
            code=row["code"],
            description=row.get("description"),
            type=row["type"],
            value=Decimal(str(row["value"])),
            max_uses=row.get("max_uses"),
            current_uses=row.get("current_uses") or 0,
            min_booking_amount=Decimal(str(row.get("min_booking_amount") or 0)),
            applicable_property_ids=[str(p) for p in row.get("applicable_property_ids") or []],
            applicable_user_ids=[str(u) for u in row.get("applicable_user_ids") or []],
            valid_from=row["valid_from"],
            valid_until=row["valid_until"],
            is_active=row.get("is_active", True),
            created_by=row.get("created_by"),
        )

    def as_applied(self) -> AppliedDiscount:
        return AppliedDiscount(code=self.code, type=self.type, value=self.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "type": self.type,
            "value": str(self.value),
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
            "min_booking_amount": str(self.min_booking_amount),
            "applicable_property_ids": list(self.applicable_property_ids),
            "applicable_user_ids": list(self.applicable_user_ids),
            "valid_from": self.valid_from.isoformat(),
            "valid_until": self.valid_until.isoformat(),
            "is_active": self.is_active,
            "created_by": self.created_by,
        }


def normalize_code(code: str) -> str:
    return code.strip().upper()


def is_valid_code_format(code: str) -> bool:
    """Codes are 3-20 uppercase letters or digits."""
    return bool(_CODE_PATTERN.match(code))


def generate_code(length: int = 10) -> str:
    alphabet = string.ascii_uppercase + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))


def validate_discount_fields(
    *,
    code: str,
    type: str,
    value: Decimal,
    valid_from: datetime,
    valid_until: datetime,
    max_uses: int | None = None,
    min_booking_amount: Decimal = Decimal("0"),
) -> None:
    """Raise ValidationError when a discount definition is inconsistent."""
    if not is_valid_code_format(code):
        raise ValidationError("Discount code must be 3-20 letters or digits")
    if type not in DISCOUNT_TYPES:
        raise ValidationError(f"Discount type must be one of {', '.join(DISCOUNT_TYPES)}")
    if value < 0:
        raise ValidationError("Discount value must not be negative")
    if type == "percentage" and value > 100:
        raise ValidationError("Percentage discount cannot exceed 100")
    if valid_from.tzinfo is None or valid_until.tzinfo is None:
        raise ValidationError("valid_from and valid_until must include a timezone")
    if valid_until <= valid_from:
        raise ValidationError("valid_until must be after valid_from")
    if max_uses is not None and max_uses < 0:
        raise ValidationError("max_uses must not be negative")
    if min_booking_amount < 0:
        raise ValidationError("min_booking_amount must not be negative")


def ineligibility_reason(
    discount: DiscountCode,
    booking_amount: Decimal | None,
    user_id: str | None = None,
    property_id: str | None = None,
    *,
    now: datetime | None = None,
) -> str | None:
    """Return why *discount* cannot be applied, or None when it can.

    A ``booking_amount`` of None skips the minimum-amount check.
    """
    if not discount.is_active:
        return REASON_INACTIVE
    if not discount.is_within_window(now):
        return REASON_EXPIRED
    if discount.is_maxed_out:
        return REASON_MAXED_OUT
    if booking_amount is not None and booking_amount < discount.min_booking_amount:
        return REASON_MINIMUM_AMOUNT
    if discount.applicable_user_ids and user_id not in discount.applicable_user_ids:
        return REASON_NOT_APPLICABLE
    if discount.applicable_property_ids and property_id not in discount.applicable_property_ids:
        return REASON_NOT_APPLICABLE
    return None


def can_apply(
    discount: DiscountCode,
    booking_amount: Decimal,
    user_id: str | None = None,
    property_id: str | None = None,
    *,
    now: datetime | None = None,
) -> bool:
    return ineligibility_reason(
        discount, booking_amount, user_id, property_id, now=now
    ) is None


def describe(discount: DiscountCode) -> dict[str, Any]:
    """Public view of a code: what it gives, not who may use it."""
    return {
        "code": discount.code,
        "type": discount.type,
        "value": str(discount.value),
        "description": discount.description,
    }

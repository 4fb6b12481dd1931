"""Discount code endpoints: public lookup and admin catalog management."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Path, Query
from pydantic import AwareDatetime, BaseModel, Field

from staybook.api.auth import get_current_user
from staybook.domain import discount_catalog
from staybook.domain.access import Principal
from staybook.domain.discounts import DiscountType


class DiscountCreateBody(BaseModel):
    code: str
    type: DiscountType = "percentage"
    value: Decimal
    valid_from: AwareDatetime
    valid_until: AwareDatetime
    description: str | None = Field(default=None, max_length=200)
    max_uses: int | None = None
    min_booking_amount: Decimal = Decimal("0")
    applicable_property_ids: list[str] = Field(default_factory=list)
    applicable_user_ids: list[str] = Field(default_factory=list)
    is_active: bool = True


class DiscountUpdateBody(BaseModel):
    code: str | None = None
    value: Decimal | None = None
    valid_from: AwareDatetime | None = None
    valid_until: AwareDatetime | None = None
    description: str | None = Field(default=None, max_length=200)
    max_uses: int | None = None
    min_booking_amount: Decimal | None = None
    applicable_property_ids: list[str] | None = None
    applicable_user_ids: list[str] | None = None
    is_active: bool | None = None


router = APIRouter(prefix="/discounts", tags=["discounts"])


@router.get("/code/{code}")
def lookup(
    code: str = Path(..., description="Discount code, any case"),
    booking_amount: Decimal | None = Query(None, ge=0),
    property_id: str | None = Query(None),
    user: Principal = Depends(get_current_user),
) -> dict:
    """Check whether a code applies before booking."""
    return discount_catalog.lookup_discount(
        code,
        booking_amount=booking_amount,
        user_id=user.id,
        property_id=property_id,
    )


@router.post("", status_code=201)
def create(
    body: DiscountCreateBody,
    user: Principal = Depends(get_current_user),
) -> dict:
    return discount_catalog.create_discount(user, body.model_dump()).to_dict()


@router.get("")
def list_all(
    is_active: bool | None = Query(None),
    search: str | None = Query(None, max_length=20),
    user: Principal = Depends(get_current_user),
) -> dict:
    discounts = discount_catalog.list_discounts(user, is_active=is_active, search=search)
    return {"count": len(discounts), "discounts": [d.to_dict() for d in discounts]}


@router.put("/{discount_id}")
def update(
    body: DiscountUpdateBody,
    discount_id: str = Path(..., description="Discount UUID"),
    user: Principal = Depends(get_current_user),
) -> dict:
    """Partial update; only fields present in the body change."""
    changes = body.model_dump(exclude_unset=True)
    return discount_catalog.update_discount(user, discount_id, changes).to_dict()


@router.delete("/{discount_id}", status_code=204)
def delete(
    discount_id: str = Path(..., description="Discount UUID"),
    user: Principal = Depends(get_current_user),
) -> None:
    discount_catalog.delete_discount(user, discount_id)

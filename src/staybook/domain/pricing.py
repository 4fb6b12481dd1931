"""Booking price calculator.

Builds the itemized breakdown for a stay:

    room subtotal  = nightly rate x nights
    service fee    = service fee rate x room subtotal (cleaning fee excluded)
    subtotal       = room subtotal + cleaning fee + service fee
    taxes          = subtotal x tax rate(region)
    after tax      = subtotal + taxes
    total          = after tax - discount (discount clamped to after tax)

Every component is rounded to cents as soon as it is computed, so the total
always equals the sum of the printed components.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal

from staybook.domain.errors import InvalidInputError

CENTS = Decimal("0.01")

TAX_RATES: dict[str, Decimal] = {
    "CA": Decimal("0.13"),
    "NY": Decimal("0.08625"),
    "TX": Decimal("0.0825"),
    "FL": Decimal("0.07"),
}
DEFAULT_TAX_RATE = Decimal("0.10")

SERVICE_FEE_RATE = Decimal("0.15")
CLEANING_FEE = Decimal("50.00")

DiscountType = Literal["percentage", "fixed"]


def to_money(value: Any) -> Decimal:
    """Round any numeric value to cents (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def get_tax_rate(region: str | None) -> Decimal:
    """Return the tax rate for a region code; unknown or missing -> default."""
    if not region:
        return DEFAULT_TAX_RATE
    return TAX_RATES.get(region.strip().upper(), DEFAULT_TAX_RATE)


@dataclass(frozen=True)
class AppliedDiscount:
    """The part of a discount code the calculator needs."""

    code: str
    type: DiscountType
    value: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    nightly_rate: Decimal
    number_of_nights: int
    room_subtotal: Decimal
    cleaning_fee: Decimal
    service_fee: Decimal
    subtotal_before_tax: Decimal
    taxes: Decimal
    subtotal_after_tax: Decimal
    discount_code: str | None
    discount_amount: Decimal
    total_price: Decimal
    service_fee_rate: Decimal = SERVICE_FEE_RATE

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly snapshot (amounts as 2-decimal strings)."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = f"{value:.2f}"
        data["service_fee_rate"] = str(self.service_fee_rate)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PriceBreakdown":
        return cls(
            nightly_rate=to_money(data["nightly_rate"]),
            number_of_nights=int(data["number_of_nights"]),
            room_subtotal=to_money(data["room_subtotal"]),
            cleaning_fee=to_money(data["cleaning_fee"]),
            service_fee=to_money(data["service_fee"]),
            subtotal_before_tax=to_money(data["subtotal_before_tax"]),
            taxes=to_money(data["taxes"]),
            subtotal_after_tax=to_money(data["subtotal_after_tax"]),
            discount_code=data.get("discount_code"),
            discount_amount=to_money(data.get("discount_amount", 0)),
            total_price=to_money(data["total_price"]),
            service_fee_rate=_snapshot_fee_rate(data),
        )

    def summary_lines(self) -> dict[str, str]:
        """Human-readable itemization, in display order."""
        percent = (self.service_fee_rate * 100).normalize()
        lines = {
            "Nightly Rate": f"${self.nightly_rate:.2f} x {self.number_of_nights} nights",
            "Room Subtotal": f"${self.room_subtotal:.2f}",
            "Cleaning Fee": f"${self.cleaning_fee:.2f}",
            f"Service Fee ({percent:f}%)": f"${self.service_fee:.2f}",
            "Subtotal": f"${self.subtotal_before_tax:.2f}",
            "Taxes": f"${self.taxes:.2f}",
        }
        if self.discount_amount > 0:
            lines["Discount"] = f"-${self.discount_amount:.2f}"
        lines["Total"] = f"${self.total_price:.2f}"
        return lines


def _snapshot_fee_rate(data: dict[str, Any]) -> Decimal:
    # Snapshots written before the rate was stored: recover it from the amounts.
    if data.get("service_fee_rate") is not None:
        return Decimal(str(data["service_fee_rate"]))
    room_subtotal = Decimal(str(data["room_subtotal"]))
    if room_subtotal <= 0:
        return SERVICE_FEE_RATE
    return (Decimal(str(data["service_fee"])) / room_subtotal).quantize(Decimal("0.0001"))


def calculate_discount_amount(amount: Decimal, discount: AppliedDiscount | None) -> Decimal:
    """Discount for *amount*, clamped to ``[0, amount]``."""
    if discount is None or not discount.value or discount.value <= 0:
        return Decimal("0.00")

    if discount.type == "percentage":
        discount_amount = to_money(amount * Decimal(discount.value) / 100)
    else:
        discount_amount = to_money(discount.value)

    return min(discount_amount, amount)


def calculate_price(
    nightly_rate: Decimal | int | float | str,
    number_of_nights: int,
    *,
    region: str | None = None,
    discount: AppliedDiscount | None = None,
    cleaning_fee: Decimal = CLEANING_FEE,
    service_fee_rate: Decimal = SERVICE_FEE_RATE,
) -> PriceBreakdown:
    """Compute a full price breakdown.

    Args:
        nightly_rate: Price per night, must be > 0.
        number_of_nights: Length of stay, must be > 0.
        region: Region/state code for the tax lookup (case-insensitive).
        discount: Optional discount to apply to the after-tax subtotal.
        cleaning_fee: Flat cleaning fee (0 to omit it).
        service_fee_rate: Fraction of the room subtotal charged as service fee.

    Returns:
        PriceBreakdown with every amount rounded to cents.

    Raises:
        InvalidInputError: If nightly_rate or number_of_nights is not positive.
    """
    rate = Decimal(str(nightly_rate))
    if rate <= 0 or number_of_nights <= 0:
        raise InvalidInputError("Invalid nightly rate or number of nights")

    rate = to_money(rate)
    room_subtotal = to_money(rate * number_of_nights)
    cleaning = to_money(cleaning_fee)
    service_fee = to_money(room_subtotal * service_fee_rate)
    subtotal_before_tax = to_money(room_subtotal + cleaning + service_fee)
    taxes = to_money(subtotal_before_tax * get_tax_rate(region))
    subtotal_after_tax = to_money(subtotal_before_tax + taxes)

    discount_amount = calculate_discount_amount(subtotal_after_tax, discount)
    discount_code = discount.code if discount_amount > 0 else None

    return PriceBreakdown(
        nightly_rate=rate,
        number_of_nights=number_of_nights,
        room_subtotal=room_subtotal,
        cleaning_fee=cleaning,
        service_fee=service_fee,
        subtotal_before_tax=subtotal_before_tax,
        taxes=taxes,
        subtotal_after_tax=subtotal_after_tax,
        discount_code=discount_code,
        discount_amount=discount_amount,
        total_price=to_money(subtotal_after_tax - discount_amount),
        service_fee_rate=Decimal(str(service_fee_rate)),
    )

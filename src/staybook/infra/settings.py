"""Process settings loaded from environment variables.

Loaded once and cached; call reset_settings() after changing the
environment (tests do this through a fixture).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from staybook.domain.pricing import CLEANING_FEE, SERVICE_FEE_RATE

_settings: "Settings | None" = None


@dataclass(frozen=True)
class Settings:
    cleaning_fee: Decimal = CLEANING_FEE
    service_fee_rate: Decimal = SERVICE_FEE_RATE
    jwt_secret: str | None = None
    jwt_issuer: str | None = None
    jwt_audience: str | None = None


def _decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        raise RuntimeError(f"{name} must be a decimal number, got {raw!r}")
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


def load_settings() -> Settings:
    return Settings(
        cleaning_fee=_decimal_env("STAYBOOK_CLEANING_FEE", CLEANING_FEE),
        service_fee_rate=_decimal_env("STAYBOOK_SERVICE_FEE_RATE", SERVICE_FEE_RATE),
        jwt_secret=os.environ.get("AUTH_JWT_SECRET") or None,
        jwt_issuer=os.environ.get("AUTH_JWT_ISSUER") or None,
        jwt_audience=os.environ.get("AUTH_JWT_AUDIENCE") or None,
    )


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None

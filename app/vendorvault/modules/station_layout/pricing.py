"""
Pricing block attached to a layout at save time.

Rates are quoted per 100x100-unit block, separately for single- and dual-track
platforms. Per-shop rent is derived downstream by billing; nothing here writes
`Shop.rent`.
"""
from __future__ import annotations

import math
from typing import Any

from app.vendorvault.modules.station_layout.constants import DEFAULT_UNIT_TO_METERS
from app.vendorvault.modules.station_layout.layout import Layout, Pricing


def area_m2(width: float, height: float, unit_to_meters: float) -> float:
    return float(width) * float(height) * unit_to_meters * unit_to_meters


def _number(value: Any, name: str, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        n = float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number.") from e
    if math.isnan(n) or math.isinf(n):
        raise ValueError(f"{name} must be a finite number.")
    return n


def build_pricing(
    unit_to_meters: Any = None,
    price_per_100x100_single: Any = 0,
    price_per_100x100_dual: Any = 0,
    security_deposit: Any = 0,
) -> Pricing:
    utm = _number(unit_to_meters, "unitToMeters", DEFAULT_UNIT_TO_METERS)
    if utm <= 0:
        raise ValueError("unitToMeters must be greater than 0.")
    single = _number(price_per_100x100_single, "pricePer100x100Single", 0)
    dual = _number(price_per_100x100_dual, "pricePer100x100Dual", 0)
    deposit = _number(security_deposit, "securityDeposit", 0)
    for name, v in (("pricePer100x100Single", single), ("pricePer100x100Dual", dual), ("securityDeposit", deposit)):
        if v < 0:
            raise ValueError(f"{name} cannot be negative.")
    return Pricing(
        unit_to_meters=utm,
        price_per_100x100_single=single,
        price_per_100x100_dual=dual,
        security_deposit=deposit,
    )


def pricing_from_payload(payload: dict | None, fallback: Pricing | None = None) -> Pricing:
    """Build pricing from a camelCase request payload, falling back field-by-field to an existing block."""
    payload = payload or {}
    base = fallback or default_pricing()
    return build_pricing(
        unit_to_meters=payload.get("unitToMeters", base.unit_to_meters),
        price_per_100x100_single=payload.get("pricePer100x100Single", base.price_per_100x100_single),
        price_per_100x100_dual=payload.get("pricePer100x100Dual", base.price_per_100x100_dual),
        security_deposit=payload.get("securityDeposit", base.security_deposit),
    )


def default_pricing() -> Pricing:
    return Pricing(unit_to_meters=DEFAULT_UNIT_TO_METERS)


def attach_pricing(layout: Layout, pricing: Pricing) -> Layout:
    out = layout.copy()
    out.pricing = Pricing(
        unit_to_meters=pricing.unit_to_meters,
        price_per_100x100_single=pricing.price_per_100x100_single,
        price_per_100x100_dual=pricing.price_per_100x100_dual,
        security_deposit=pricing.security_deposit,
    )
    return out


def unit_to_meters_for(layout: Layout, override: float | None = None) -> float:
    """Ratio used for area checks: explicit override, else the layout's pricing, else the default."""
    if override is not None:
        return override
    if layout.pricing is not None and layout.pricing.unit_to_meters > 0:
        return layout.pricing.unit_to_meters
    return DEFAULT_UNIT_TO_METERS

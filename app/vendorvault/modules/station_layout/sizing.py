"""
Shop size regulation: read-only inspection and deterministic auto-scaling.

Both passes share `effective_max_units` so the inspector and the scaler can
never disagree about the per-side cap.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from app.vendorvault.modules.station_layout.constants import (
    AREA_TOLERANCE,
    MAX_AREA_M2,
    MAX_UNITS,
    MIN_UNITS,
)
from app.vendorvault.modules.station_layout.layout import Layout
from app.vendorvault.modules.station_layout.pricing import area_m2


@dataclass(frozen=True)
class OversizedShopEntry:
    platform_id: str
    platform_number: str
    shop_id: str
    shop_index: int
    width: float
    height: float
    area_m2: float

    def describe(self) -> str:
        return (
            f"Platform {self.platform_number} shop {self.shop_index}: "
            f"{self.width:g}x{self.height:g} units ({self.area_m2:.2f} m²)"
        )

    def as_dict(self) -> dict:
        return {
            "platformId": self.platform_id,
            "platformNumber": self.platform_number,
            "shopId": self.shop_id,
            "shopIndex": self.shop_index,
            "width": self.width,
            "height": self.height,
            "areaM2": round(self.area_m2, 4),
        }


@dataclass(frozen=True)
class ShopResize:
    platform_id: str
    platform_number: str
    shop_id: str
    shop_index: int
    old_width: float
    old_height: float
    new_width: float
    new_height: float

    def as_dict(self) -> dict:
        return {
            "platformId": self.platform_id,
            "platformNumber": self.platform_number,
            "shopId": self.shop_id,
            "shopIndex": self.shop_index,
            "old": {"width": self.old_width, "height": self.old_height},
            "new": {"width": self.new_width, "height": self.new_height},
        }


def _check_ratio(unit_to_meters: float) -> None:
    if not unit_to_meters or unit_to_meters <= 0 or math.isnan(unit_to_meters):
        raise ValueError("unit_to_meters must be greater than 0.")


def effective_max_units(unit_to_meters: float) -> int:
    """Largest per-side shop size honouring both the area ceiling and the unit bounds."""
    _check_ratio(unit_to_meters)
    # Nudge before flooring so sqrt(10) / (sqrt(10) / 200) lands on 200, not 199.
    derived = math.floor(math.sqrt(MAX_AREA_M2) / unit_to_meters + 1e-9)
    return max(MIN_UNITS, min(MAX_UNITS, derived))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def exceeds_area(width: float, height: float, unit_to_meters: float) -> bool:
    return area_m2(width, height, unit_to_meters) > MAX_AREA_M2 * (1 + AREA_TOLERANCE)


def is_out_of_bounds(width: float, height: float, unit_to_meters: float, effective_max: int | None = None) -> bool:
    cap = effective_max if effective_max is not None else effective_max_units(unit_to_meters)
    if not (math.isfinite(width) and math.isfinite(height)):
        return True
    linear = width < MIN_UNITS or height < MIN_UNITS or width > cap or height > cap
    return linear or exceeds_area(width, height, unit_to_meters)


def compute_oversized_shops(layout: Layout, unit_to_meters: float) -> list[OversizedShopEntry]:
    cap = effective_max_units(unit_to_meters)
    offenders: list[OversizedShopEntry] = []
    for platform, idx, shop in layout.all_shops():
        width = shop.width
        height = shop.effective_height
        if is_out_of_bounds(width, height, unit_to_meters, cap):
            offenders.append(
                OversizedShopEntry(
                    platform_id=platform.id,
                    platform_number=platform.platform_number,
                    shop_id=shop.id,
                    shop_index=idx,
                    width=width,
                    height=height,
                    area_m2=area_m2(width, height, unit_to_meters),
                )
            )
    return offenders


def normalize_dimensions(width: float, height: float, unit_to_meters: float) -> tuple[int | float, int | float]:
    """Bring one shop footprint into compliance; compliant footprints come back unchanged."""
    cap = effective_max_units(unit_to_meters)
    if not is_out_of_bounds(width, height, unit_to_meters, cap):
        return width, height

    # Non-finite sides carry no usable size; pin them to the cap before any area math.
    new_w: float = width if math.isfinite(width) else cap
    new_h: float = height if math.isfinite(height) else cap
    current = area_m2(new_w, new_h, unit_to_meters)
    if current > MAX_AREA_M2 and current > 0:
        scale = math.sqrt(MAX_AREA_M2 / current)
        new_w = max(MIN_UNITS, round_half_up(new_w * scale))
        new_h = max(MIN_UNITS, round_half_up(new_h * scale))

    new_w = max(MIN_UNITS, min(cap, new_w))
    new_h = max(MIN_UNITS, min(cap, new_h))
    return new_w, new_h


def autoscale_shops(layout: Layout, unit_to_meters: float) -> tuple[Layout, list[ShopResize]]:
    """
    Return a normalized copy of `layout` plus one `ShopResize` per altered shop.

    The input is not modified. Running this on its own output yields no changes.
    """
    _check_ratio(unit_to_meters)
    out = layout.copy()
    changes: list[ShopResize] = []
    for platform, idx, shop in out.all_shops():
        old_w = shop.width
        old_h = shop.effective_height
        new_w, new_h = normalize_dimensions(old_w, old_h, unit_to_meters)
        if (new_w, new_h) == (old_w, old_h):
            continue
        shop.width = new_w
        shop.height = new_h
        changes.append(
            ShopResize(
                platform_id=platform.id,
                platform_number=platform.platform_number,
                shop_id=shop.id,
                shop_index=idx,
                old_width=old_w,
                old_height=old_h,
                new_width=new_w,
                new_height=new_h,
            )
        )
    return out, changes

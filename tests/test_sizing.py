"""Tests for shop size regulation (inspection + auto-scaling)."""
import math

import pytest

from app.vendorvault.modules.station_layout.constants import DEFAULT_UNIT_TO_METERS, MAX_AREA_M2, MAX_UNITS, MIN_UNITS
from app.vendorvault.modules.station_layout.layout import Layout, Platform, PlatformTrack, RestrictedZone, Shop
from app.vendorvault.modules.station_layout.pricing import area_m2
from app.vendorvault.modules.station_layout.sizing import (
    autoscale_shops,
    compute_oversized_shops,
    effective_max_units,
    is_out_of_bounds,
    normalize_dimensions,
    round_half_up,
)


def _layout(*shops, number="3"):
    platform = Platform(
        id="p1",
        platform_number=number,
        x=100,
        y=50,
        length=1500,
        width=100,
        track=PlatformTrack(track_number=1),
        restricted_zone=RestrictedZone(),
        shops=list(shops),
    )
    return Layout(station_id="1", station_name="Test", station_code="TST", platforms=[platform])


def test_default_ratio_makes_200_units_exactly_max_area():
    assert math.isclose(area_m2(200, 200, DEFAULT_UNIT_TO_METERS), MAX_AREA_M2, rel_tol=1e-9)
    assert effective_max_units(DEFAULT_UNIT_TO_METERS) == 200


def test_effective_max_clamped_to_unit_bounds():
    # Large ratio: area ceiling is hit before MIN_UNITS, but never goes below it.
    assert effective_max_units(1.0) == MIN_UNITS
    # Tiny ratio: area allows huge shops, linear cap still wins.
    assert effective_max_units(0.0001) == MAX_UNITS


def test_effective_max_rejects_bad_ratio():
    with pytest.raises(ValueError):
        effective_max_units(0)


def test_exact_200_square_is_compliant():
    assert is_out_of_bounds(200, 200, DEFAULT_UNIT_TO_METERS) is False
    assert is_out_of_bounds(50, 50, DEFAULT_UNIT_TO_METERS) is False


def test_too_small_is_out_of_bounds():
    assert is_out_of_bounds(40, 100, DEFAULT_UNIT_TO_METERS) is True


def test_compute_oversized_reports_one_offender():
    layout = _layout(Shop(id="s1", x=0, width=300, height=300), Shop(id="s2", x=300, width=100))
    offenders = compute_oversized_shops(layout, DEFAULT_UNIT_TO_METERS)
    assert len(offenders) == 1
    o = offenders[0]
    assert o.platform_number == "3"
    assert o.shop_index == 0
    assert o.width == 300 and o.height == 300
    assert o.area_m2 > MAX_AREA_M2
    assert o.as_dict()["platformNumber"] == "3"


def test_autoscale_brings_oversized_shop_to_effective_max():
    layout = _layout(Shop(id="s1", x=0, width=300, height=300))
    out, changes = autoscale_shops(layout, DEFAULT_UNIT_TO_METERS)

    assert len(changes) == 1
    shop = out.platforms[0].shops[0]
    assert shop.width == 200
    assert shop.height == 200
    assert area_m2(shop.width, shop.height, DEFAULT_UNIT_TO_METERS) <= MAX_AREA_M2 * (1 + 1e-9)
    assert changes[0].old_width == 300
    assert changes[0].new_width == 200

    # input untouched
    assert layout.platforms[0].shops[0].width == 300


def test_autoscale_is_idempotent():
    layout = _layout(
        Shop(id="s1", x=0, width=300, height=300),
        Shop(id="s2", x=300, width=20, height=500),
        Shop(id="s3", x=900, width=120),
    )
    once, _ = autoscale_shops(layout, DEFAULT_UNIT_TO_METERS)
    twice, changes = autoscale_shops(once, DEFAULT_UNIT_TO_METERS)
    assert changes == []
    assert [(s.width, s.height) for s in twice.platforms[0].shops] == [(s.width, s.height) for s in once.platforms[0].shops]


def test_autoscale_leaves_no_offenders():
    layout = _layout(Shop(id="s1", x=0, width=1000, height=30), Shop(id="s2", x=0, width=10, height=10))
    out, _ = autoscale_shops(layout, DEFAULT_UNIT_TO_METERS)
    assert compute_oversized_shops(out, DEFAULT_UNIT_TO_METERS) == []


def test_normalize_clamps_linear_without_area_breach():
    # 300 x 50 is only 3.75 m², but wider than the per-side cap.
    assert normalize_dimensions(300, 50, DEFAULT_UNIT_TO_METERS) == (200, 50)


def test_normalize_returns_compliant_unchanged():
    assert normalize_dimensions(120, 80, DEFAULT_UNIT_TO_METERS) == (120, 80)


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_sides_are_out_of_bounds(bad):
    assert is_out_of_bounds(bad, 100, DEFAULT_UNIT_TO_METERS)
    assert is_out_of_bounds(100, bad, DEFAULT_UNIT_TO_METERS)
    offenders = compute_oversized_shops(_layout(Shop(id="s", x=0, width=bad)), DEFAULT_UNIT_TO_METERS)
    assert [o.shop_id for o in offenders] == ["s"]


def test_autoscale_repairs_non_finite_shop():
    out, changes = autoscale_shops(_layout(Shop(id="s", x=0, width=float("nan"))), DEFAULT_UNIT_TO_METERS)
    shop = out.platforms[0].shops[0]
    assert (shop.width, shop.height) == (MAX_UNITS, MAX_UNITS)
    assert len(changes) == 1
    assert compute_oversized_shops(out, DEFAULT_UNIT_TO_METERS) == []


def test_normalize_pins_infinite_side_to_cap():
    assert normalize_dimensions(float("inf"), 100, DEFAULT_UNIT_TO_METERS) == (MAX_UNITS, 100)


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2

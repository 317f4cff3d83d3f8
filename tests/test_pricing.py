"""Tests for pricing blocks."""
import pytest

from app.vendorvault.modules.station_layout.constants import DEFAULT_UNIT_TO_METERS
from app.vendorvault.modules.station_layout.layout import Layout, Pricing
from app.vendorvault.modules.station_layout.pricing import (
    area_m2,
    attach_pricing,
    build_pricing,
    default_pricing,
    pricing_from_payload,
    unit_to_meters_for,
)


def test_area_conversion():
    assert area_m2(100, 100, 0.01) == pytest.approx(1.0)


def test_build_pricing_defaults_ratio():
    p = build_pricing(price_per_100x100_single="250", price_per_100x100_dual=300)
    assert p.unit_to_meters == DEFAULT_UNIT_TO_METERS
    assert p.price_per_100x100_single == 250.0
    assert p.price_per_100x100_dual == 300.0
    assert p.security_deposit == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"unit_to_meters": 0},
        {"unit_to_meters": -1},
        {"price_per_100x100_single": -5},
        {"security_deposit": "abc"},
        {"price_per_100x100_dual": float("nan")},
    ],
)
def test_build_pricing_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        build_pricing(**kwargs)


def test_pricing_from_payload_falls_back_per_field():
    base = Pricing(unit_to_meters=0.02, price_per_100x100_single=100, price_per_100x100_dual=150, security_deposit=999)
    p = pricing_from_payload({"pricePer100x100Dual": 175}, base)
    assert p.unit_to_meters == 0.02
    assert p.price_per_100x100_single == 100
    assert p.price_per_100x100_dual == 175
    assert p.security_deposit == 999


def test_attach_pricing_returns_copy():
    layout = Layout(station_id="1", station_name="S", station_code="S")
    priced = attach_pricing(layout, build_pricing(security_deposit=5000))
    assert layout.pricing is None
    assert priced.pricing.security_deposit == 5000


def test_unit_to_meters_resolution():
    layout = Layout(station_id="1", station_name="S", station_code="S")
    assert unit_to_meters_for(layout) == DEFAULT_UNIT_TO_METERS
    layout.pricing = Pricing(unit_to_meters=0.05)
    assert unit_to_meters_for(layout) == 0.05
    assert unit_to_meters_for(layout, 0.1) == 0.1
    assert default_pricing().unit_to_meters == DEFAULT_UNIT_TO_METERS

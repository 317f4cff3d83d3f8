"""Tests for the layout lookup tables."""
from app.vendorvault.modules.station_layout.constants import (
    CONNECTOR_TYPES,
    INFRASTRUCTURE_DEFAULTS,
    SHOP_CATEGORY_COLORS,
    SIDE_RAIL_CONNECTORS,
    InfrastructureType,
    ShopCategory,
)


def test_every_infrastructure_type_has_default_dimensions():
    assert set(INFRASTRUCTURE_DEFAULTS) == set(InfrastructureType)
    for width, height in INFRASTRUCTURE_DEFAULTS.values():
        assert width > 0 and height > 0


def test_every_shop_category_has_a_colour():
    assert set(SHOP_CATEGORY_COLORS) == set(ShopCategory)


def test_side_rail_connectors_are_connectors():
    assert SIDE_RAIL_CONNECTORS <= CONNECTOR_TYPES

"""
Regulatory limits, canvas defaults and the closed enumerations used by the layout editor.
"""
from __future__ import annotations

import math
from enum import Enum

# Shop size regulation (not configurable)
MIN_UNITS = 50
MAX_UNITS = 200
MAX_AREA_M2 = 10

# 200 x 200 units == 10 m^2  ->  (200 * utm)^2 = 10
DEFAULT_UNIT_TO_METERS = math.sqrt(MAX_AREA_M2) / MAX_UNITS

# Relative slack for float comparisons against MAX_AREA_M2.
AREA_TOLERANCE = 1e-9

DEFAULT_SHOP_SIZE = 100

# Element geometry defaults
TRACK_HEIGHT = 40
PLATFORM_TRACK_HEIGHT = 60
RESTRICTED_ZONE_HEIGHT = 50
SINGLE_PLATFORM_WIDTH = 100
DUAL_PLATFORM_WIDTH = 240
PLATFORM_LENGTH = 1500
PLATFORM_START_X = 100
PLATFORM_START_Y = 50
PLATFORM_SPACING = 100
INDEPENDENT_TRACK_LENGTH = 1000
INDEPENDENT_TRACK_SPACING = 100

# Canvas
CANVAS_WIDTH = 2000
CANVAS_HEIGHT = 2400
GRID_SIZE = 20
EDGE_SNAP_THRESHOLD = 15
TRACK_SNAP_DISTANCE = 30

# Where toolbar-added infrastructure lands, and how far each new block cascades.
INFRASTRUCTURE_DROP_X = 900
INFRASTRUCTURE_DROP_Y = 300
INFRASTRUCTURE_CASCADE = 20


class ShopCategory(str, Enum):
    FOOD = "food"
    RETAIL = "retail"
    KIOSK = "kiosk"
    BOOKSTORE = "bookstore"
    PHARMACY = "pharmacy"
    ELECTRONICS = "electronics"
    CLOTHING = "clothing"
    OTHER = "other"
    GENERAL = "general"  # generic allocation area

    @property
    def color(self) -> str:
        return SHOP_CATEGORY_COLORS[self]


SHOP_CATEGORY_COLORS: dict[ShopCategory, str] = {
    ShopCategory.FOOD: "#EF4444",
    ShopCategory.RETAIL: "#3B82F6",
    ShopCategory.KIOSK: "#F59E0B",
    ShopCategory.BOOKSTORE: "#8B5CF6",
    ShopCategory.PHARMACY: "#10B981",
    ShopCategory.ELECTRONICS: "#06B6D4",
    ShopCategory.CLOTHING: "#EC4899",
    ShopCategory.OTHER: "#6B7280",
    ShopCategory.GENERAL: "#3B82F6",
}


class InfrastructureType(str, Enum):
    ENTRANCE = "ENTRANCE"
    EXIT = "EXIT"
    FOOT_OVER_BRIDGE = "FOOT_OVER_BRIDGE"
    UNDERPASS = "UNDERPASS"
    STAIRCASE = "STAIRCASE"
    ELEVATOR = "ELEVATOR"
    ESCALATOR = "ESCALATOR"
    TICKET_COUNTER = "TICKET_COUNTER"
    WAITING_HALL = "WAITING_HALL"
    WASHROOM = "WASHROOM"
    DRINKING_WATER = "DRINKING_WATER"
    SECURITY_CHECK = "SECURITY_CHECK"
    INFORMATION_DESK = "INFORMATION_DESK"
    PARKING = "PARKING"
    TAXI_STAND = "TAXI_STAND"

    @property
    def default_dimensions(self) -> tuple[float, float]:
        return INFRASTRUCTURE_DEFAULTS[self]

    @property
    def is_connector_kind(self) -> bool:
        return self in CONNECTOR_TYPES

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


# (width, height) in units
INFRASTRUCTURE_DEFAULTS: dict[InfrastructureType, tuple[float, float]] = {
    InfrastructureType.ENTRANCE: (80, 60),
    InfrastructureType.EXIT: (80, 60),
    InfrastructureType.FOOT_OVER_BRIDGE: (120, 40),
    InfrastructureType.UNDERPASS: (120, 40),
    InfrastructureType.STAIRCASE: (60, 80),
    InfrastructureType.ELEVATOR: (50, 50),
    InfrastructureType.ESCALATOR: (70, 100),
    InfrastructureType.TICKET_COUNTER: (100, 60),
    InfrastructureType.WAITING_HALL: (150, 120),
    InfrastructureType.WASHROOM: (80, 80),
    InfrastructureType.DRINKING_WATER: (40, 40),
    InfrastructureType.SECURITY_CHECK: (90, 60),
    InfrastructureType.INFORMATION_DESK: (70, 50),
    InfrastructureType.PARKING: (200, 150),
    InfrastructureType.TAXI_STAND: (150, 80),
}

CONNECTOR_TYPES = frozenset(
    {
        InfrastructureType.FOOT_OVER_BRIDGE,
        InfrastructureType.UNDERPASS,
        InfrastructureType.STAIRCASE,
        InfrastructureType.ELEVATOR,
        InfrastructureType.ESCALATOR,
    }
)

# Side-rail connectors hug the left edge of the platforms; the rest sit mid-platform.
SIDE_RAIL_CONNECTORS = frozenset({InfrastructureType.FOOT_OVER_BRIDGE, InfrastructureType.UNDERPASS})

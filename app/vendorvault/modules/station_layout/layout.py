"""
In-memory model of one station's layout.

Coordinates and sizes are abstract layout units; `Pricing.unit_to_meters` converts them.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from app.vendorvault.modules.station_layout.constants import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    GRID_SIZE,
    PLATFORM_TRACK_HEIGHT,
    RESTRICTED_ZONE_HEIGHT,
    TRACK_HEIGHT,
    InfrastructureType,
    ShopCategory,
)


@dataclass
class Track:
    id: str
    track_number: int
    x: float = 0
    y: float = 0
    length: float = 1000
    height: float = TRACK_HEIGHT


@dataclass
class PlatformTrack:
    track_number: int
    height: float = PLATFORM_TRACK_HEIGHT


@dataclass
class RestrictedZone:
    height: float = RESTRICTED_ZONE_HEIGHT


@dataclass
class Shop:
    id: str
    x: float
    width: float
    height: float | None = None  # None means square
    category: ShopCategory = ShopCategory.GENERAL
    is_allocated: bool = False
    vendor_id: str | None = None
    rent: float | None = None
    lease_end_date: date | None = None
    notes: str | None = None

    def __post_init__(self) -> None:
        if self.height is None:
            self.height = self.width

    @property
    def effective_height(self) -> float:
        return self.width if self.height is None else self.height


@dataclass
class Platform:
    id: str
    platform_number: str
    x: float
    y: float
    length: float
    width: float
    is_dual_track: bool = False
    is_inverted: bool = False
    track: PlatformTrack | None = None
    restricted_zone: RestrictedZone | None = None
    top_track: PlatformTrack | None = None
    top_restricted_zone: RestrictedZone | None = None
    bottom_track: PlatformTrack | None = None
    bottom_restricted_zone: RestrictedZone | None = None
    shops: list[Shop] = field(default_factory=list)

    @property
    def number(self) -> int | None:
        try:
            return int(str(self.platform_number).strip())
        except ValueError:
            return None

    @property
    def slot_count(self) -> int:
        return 2 if self.is_dual_track else 1

    def slot_numbers(self) -> list[int]:
        """Platform-number slots this platform occupies (N, plus N+1 when dual-track)."""
        n = self.number
        if n is None:
            return []
        return [n, n + 1] if self.is_dual_track else [n]

    def track_numbers(self) -> list[int]:
        return [t.track_number for t in (self.track, self.top_track, self.bottom_track) if t is not None]


@dataclass
class InfrastructureBlock:
    id: str
    type: InfrastructureType
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0
    is_locked: bool = False
    is_connector: bool = False
    connected_platforms: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Pricing:
    unit_to_meters: float
    price_per_100x100_single: float = 0
    price_per_100x100_dual: float = 0
    security_deposit: float = 0


@dataclass
class CanvasSettings:
    width: float = CANVAS_WIDTH
    height: float = CANVAS_HEIGHT
    grid_size: float = GRID_SIZE
    snap_to_grid: bool = True
    scale: float = 1


@dataclass
class Layout:
    station_id: str
    station_name: str
    station_code: str
    manager_id: str | None = None
    tracks: list[Track] = field(default_factory=list)
    platforms: list[Platform] = field(default_factory=list)
    infrastructure_blocks: list[InfrastructureBlock] = field(default_factory=list)
    pricing: Pricing | None = None
    canvas_settings: CanvasSettings = field(default_factory=CanvasSettings)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "station_id" and "station_id" in self.__dict__:
            raise AttributeError("station_id is immutable once the layout exists")
        super().__setattr__(name, value)

    def copy(self) -> "Layout":
        return copy.deepcopy(self)

    def all_shops(self):
        """Yield (platform, shop_index, shop) in layout order."""
        for platform in self.platforms:
            for idx, shop in enumerate(platform.shops):
                yield platform, idx, shop

    def find_platform(self, platform_id: str) -> Platform | None:
        return next((p for p in self.platforms if p.id == platform_id), None)

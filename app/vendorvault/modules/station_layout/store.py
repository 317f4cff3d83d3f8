"""
Single-writer layout store for one editing session.

All mutation of a live layout goes through `LayoutStore`. Validation, scaling
and serialization work on snapshots (`snapshot()` / `export_layout()`), never on
the live object. No I/O happens here.
"""
from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from app.vendorvault.modules.station_layout.constants import (
    DEFAULT_SHOP_SIZE,
    DUAL_PLATFORM_WIDTH,
    EDGE_SNAP_THRESHOLD,
    INDEPENDENT_TRACK_LENGTH,
    INDEPENDENT_TRACK_SPACING,
    INFRASTRUCTURE_CASCADE,
    INFRASTRUCTURE_DROP_X,
    INFRASTRUCTURE_DROP_Y,
    MAX_UNITS,
    MIN_UNITS,
    PLATFORM_LENGTH,
    PLATFORM_SPACING,
    PLATFORM_START_X,
    PLATFORM_START_Y,
    PLATFORM_TRACK_HEIGHT,
    RESTRICTED_ZONE_HEIGHT,
    SIDE_RAIL_CONNECTORS,
    SINGLE_PLATFORM_WIDTH,
    TRACK_HEIGHT,
    TRACK_SNAP_DISTANCE,
    InfrastructureType,
    ShopCategory,
)
from app.vendorvault.modules.station_layout.errors import (
    AlreadyInitialized,
    ElementNotFound,
    LayoutError,
    NoLayoutLoaded,
)
from app.vendorvault.modules.station_layout.geometry import platform_extent
from app.vendorvault.modules.station_layout.layout import (
    InfrastructureBlock,
    Layout,
    Platform,
    PlatformTrack,
    Pricing,
    RestrictedZone,
    Shop,
    Track,
)
from app.vendorvault.modules.station_layout.serializer import layout_from_document, layout_to_document

SHOP_UPDATABLE_FIELDS = frozenset(
    {"x", "width", "height", "category", "is_allocated", "vendor_id", "rent", "lease_end_date", "notes"}
)


def new_id() -> str:
    return uuid.uuid4().hex


def _snap_edges(x: float, y: float, width: float, height: float, others: list[tuple[float, float, float, float]]):
    """Snap a box's edges onto nearby edges of `others` (x0, y0, x1, y1); later matches win."""
    sx, sy = x, y
    left, right, top, bottom = x, x + width, y, y + height
    for ox0, oy0, ox1, oy1 in others:
        if abs(left - ox1) < EDGE_SNAP_THRESHOLD:
            sx = ox1
        if abs(right - ox0) < EDGE_SNAP_THRESHOLD:
            sx = ox0 - width
        if abs(left - ox0) < EDGE_SNAP_THRESHOLD:
            sx = ox0
        if abs(right - ox1) < EDGE_SNAP_THRESHOLD:
            sx = ox1 - width

        if abs(top - oy1) < EDGE_SNAP_THRESHOLD:
            sy = oy1
        if abs(bottom - oy0) < EDGE_SNAP_THRESHOLD:
            sy = oy0 - height
        if abs(top - oy0) < EDGE_SNAP_THRESHOLD:
            sy = oy0
        if abs(bottom - oy1) < EDGE_SNAP_THRESHOLD:
            sy = oy1 - height
    return sx, sy


def _track_edges(platform: Platform, y: float) -> tuple[float | None, float | None]:
    """(top track outer edge, bottom track outer edge) if the platform body sat at `y`."""
    top = bottom = None
    if platform.is_dual_track:
        top_zone = platform.top_restricted_zone.height if platform.top_restricted_zone else 0
        top_track = platform.top_track.height if platform.top_track else 0
        bottom_zone = platform.bottom_restricted_zone.height if platform.bottom_restricted_zone else 0
        bottom_track = platform.bottom_track.height if platform.bottom_track else 0
        top = y - top_zone - top_track
        bottom = y + platform.width + bottom_zone + bottom_track
    elif platform.track is not None:
        zone = platform.restricted_zone.height if platform.restricted_zone else 0
        if platform.is_inverted:
            top = y - zone - platform.track.height
        else:
            bottom = y + platform.width + zone + platform.track.height
    return top, bottom


class LayoutStore:
    def __init__(self) -> None:
        self._layout: Layout | None = None

    # ---- lifecycle ----

    @property
    def is_loaded(self) -> bool:
        return self._layout is not None

    @property
    def layout(self) -> Layout:
        if self._layout is None:
            raise NoLayoutLoaded("No layout loaded.")
        return self._layout

    def initialize_layout(self, station_id: str, station_name: str, station_code: str, manager_id: str | None) -> Layout:
        if self._layout is not None:
            raise AlreadyInitialized(f"A layout for station {self._layout.station_id} is already loaded.")
        self._layout = Layout(
            station_id=str(station_id),
            station_name=station_name,
            station_code=station_code,
            manager_id=None if manager_id is None else str(manager_id),
        )
        return self._layout

    def load_layout(self, document: dict) -> Layout:
        # Parse fully before swapping so a bad document leaves the current layout alone.
        layout = layout_from_document(document)
        self._layout = layout
        return layout

    def clear_layout(self) -> None:
        self._layout = None

    def snapshot(self) -> Layout:
        return self.layout.copy()

    def export_layout(self) -> dict:
        return layout_to_document(self.layout.copy())

    def set_pricing(self, pricing: Pricing) -> None:
        self.layout.pricing = Pricing(
            unit_to_meters=pricing.unit_to_meters,
            price_per_100x100_single=pricing.price_per_100x100_single,
            price_per_100x100_dual=pricing.price_per_100x100_dual,
            security_deposit=pricing.security_deposit,
        )

    # ---- lookups ----

    def _track(self, track_id: str) -> Track:
        for t in self.layout.tracks:
            if t.id == track_id:
                return t
        raise ElementNotFound("track", track_id)

    def _platform(self, platform_id: str) -> Platform:
        p = self.layout.find_platform(platform_id)
        if p is None:
            raise ElementNotFound("platform", platform_id)
        return p

    def _shop(self, shop_id: str) -> tuple[Platform, int, Shop]:
        for platform, idx, shop in self.layout.all_shops():
            if shop.id == shop_id:
                return platform, idx, shop
        raise ElementNotFound("shop", shop_id)

    def _block(self, block_id: str) -> InfrastructureBlock:
        for b in self.layout.infrastructure_blocks:
            if b.id == block_id:
                return b
        raise ElementNotFound("infrastructure", block_id)

    def _used_slots(self) -> set[int]:
        slots: set[int] = set()
        for p in self.layout.platforms:
            slots.update(p.slot_numbers())
        return slots

    def _max_track_number(self) -> int:
        numbers = [t.track_number for t in self.layout.tracks]
        for p in self.layout.platforms:
            numbers.extend(p.track_numbers())
        return max(numbers, default=0)

    def _next_platform_y(self) -> float:
        """Top of the next platform group, stacked below every existing one."""
        base = PLATFORM_START_Y
        for p in self.layout.platforms:
            width = p.width or SINGLE_PLATFORM_WIDTH
            track = (p.track or p.top_track).height if (p.track or p.top_track) else PLATFORM_TRACK_HEIGHT
            zone = (
                (p.restricted_zone or p.top_restricted_zone).height
                if (p.restricted_zone or p.top_restricted_zone)
                else RESTRICTED_ZONE_HEIGHT
            )
            bottom_track = p.bottom_track.height if p.bottom_track else 0
            bottom_zone = p.bottom_restricted_zone.height if p.bottom_restricted_zone else 0
            base += width + zone + track + bottom_zone + bottom_track + PLATFORM_SPACING
        return base

    # ---- tracks ----

    def add_independent_track(self) -> Track:
        layout = self.layout
        track = Track(
            id=new_id(),
            track_number=self._max_track_number() + 1,
            x=0,
            y=len(layout.tracks) * INDEPENDENT_TRACK_SPACING,
            length=INDEPENDENT_TRACK_LENGTH,
            height=TRACK_HEIGHT,
        )
        layout.tracks.append(track)
        return track

    def remove_track(self, track_id: str) -> None:
        track = self._track(track_id)
        self.layout.tracks.remove(track)

    def move_track(self, track_id: str, x: float, y: float) -> Track:
        track = self._track(track_id)
        others = [(t.x, t.y, t.x + t.length, t.y + t.height) for t in self.layout.tracks if t.id != track_id]
        others += [(p.x, p.y, p.x + p.length, p.y + p.width) for p in self.layout.platforms]
        track.x, track.y = _snap_edges(x, y, track.length, track.height, others)
        return track

    def update_track_length(self, track_id: str, length: float) -> Track:
        if length <= 0:
            raise LayoutError("Track length must be positive.")
        track = self._track(track_id)
        track.length = length
        return track

    # ---- platforms ----

    def add_complete_platform(self) -> Platform:
        layout = self.layout
        used = self._used_slots()
        number = 1
        while number in used:
            number += 1
        platform = Platform(
            id=new_id(),
            platform_number=str(number),
            x=PLATFORM_START_X,
            y=self._next_platform_y(),
            length=PLATFORM_LENGTH,
            width=SINGLE_PLATFORM_WIDTH,
            track=PlatformTrack(track_number=self._max_track_number() + 1, height=PLATFORM_TRACK_HEIGHT),
            restricted_zone=RestrictedZone(height=RESTRICTED_ZONE_HEIGHT),
        )
        layout.platforms.append(platform)
        return platform

    def add_dual_track_platform(self) -> Platform:
        layout = self.layout
        used = self._used_slots()
        number = 1
        while number in used or number + 1 in used:
            number += 1
        top_number = self._max_track_number() + 1
        base_y = self._next_platform_y()
        platform = Platform(
            id=new_id(),
            platform_number=str(number),
            x=PLATFORM_START_X,
            # top track and top zone sit above the body
            y=base_y + PLATFORM_TRACK_HEIGHT + RESTRICTED_ZONE_HEIGHT,
            length=PLATFORM_LENGTH,
            width=DUAL_PLATFORM_WIDTH,
            is_dual_track=True,
            top_track=PlatformTrack(track_number=top_number, height=PLATFORM_TRACK_HEIGHT),
            top_restricted_zone=RestrictedZone(height=RESTRICTED_ZONE_HEIGHT),
            bottom_track=PlatformTrack(track_number=top_number + 1, height=PLATFORM_TRACK_HEIGHT),
            bottom_restricted_zone=RestrictedZone(height=RESTRICTED_ZONE_HEIGHT),
        )
        layout.platforms.append(platform)
        return platform

    def toggle_platform_invert(self, platform_id: str) -> Platform:
        platform = self._platform(platform_id)
        if platform.is_dual_track:
            raise LayoutError("Dual-track platforms cannot be inverted.")
        platform.is_inverted = not platform.is_inverted
        return platform

    def remove_platform(self, platform_id: str) -> None:
        platform = self._platform(platform_id)
        self.layout.platforms.remove(platform)
        for b in self.layout.infrastructure_blocks:
            if platform_id in b.connected_platforms:
                b.connected_platforms = [pid for pid in b.connected_platforms if pid != platform_id]

    def move_platform(self, platform_id: str, x: float, y: float) -> Platform:
        """Move a platform, magnetically joining its outer track to a neighbour's within snap distance."""
        platform = self._platform(platform_id)
        snapped_y = y
        cur_top, cur_bottom = _track_edges(platform, y)
        for other in self.layout.platforms:
            if other.id == platform_id:
                continue
            overlaps = not (x + platform.length < other.x or x > other.x + other.length)
            if not overlaps:
                continue
            other_top, other_bottom = _track_edges(other, other.y)
            if cur_bottom is not None and other_top is not None and abs(cur_bottom - other_top) < TRACK_SNAP_DISTANCE:
                snapped_y = y + (other_top - cur_bottom)
            if cur_top is not None and other_bottom is not None and abs(cur_top - other_bottom) < TRACK_SNAP_DISTANCE:
                snapped_y = y + (other_bottom - cur_top)
        platform.x = x
        platform.y = snapped_y
        return platform

    def update_platform_length(self, platform_id: str, length: float) -> Platform:
        if length <= 0:
            raise LayoutError("Platform length must be positive.")
        platform = self._platform(platform_id)
        platform.length = length
        return platform

    # ---- shops ----

    def _blocked_ranges(self, platform: Platform, start: float, width: float) -> list[tuple[float, float]]:
        """Platform-relative x ranges of infrastructure over the platform body that overlap [start, start+width)."""
        body_top = platform.y
        body_bottom = platform.y + platform.width
        abs_start = platform.x + start
        abs_end = abs_start + width
        ranges = []
        for b in self.layout.infrastructure_blocks:
            if not (b.y < body_bottom and b.y + b.height > body_top):
                continue
            if abs_start < b.x + b.width and abs_end > b.x:
                ranges.append((b.x - platform.x, b.x - platform.x + b.width))
        return sorted(ranges)

    def add_shop(
        self,
        platform_id: str,
        *,
        x: float = 0,
        width: float = DEFAULT_SHOP_SIZE,
        height: float | None = None,
        category: ShopCategory | str = ShopCategory.GENERAL,
        is_allocated: bool = False,
        vendor_id: str | None = None,
        rent: float | None = None,
        lease_end_date: date | None = None,
        notes: str | None = None,
    ) -> Shop:
        """
        Append a shop to a platform.

        If infrastructure on the platform overlaps the requested position, the
        shop is moved into the first gap wide enough to hold it.
        """
        platform = self._platform(platform_id)
        if width <= 0 or (height is not None and height <= 0):
            raise LayoutError("Shop dimensions must be positive.")

        blocked = self._blocked_ranges(platform, x, width)
        if blocked:
            if blocked[0][0] >= width:
                x = 0
            else:
                for i, (_, gap_start) in enumerate(blocked):
                    gap_end = blocked[i + 1][0] if i + 1 < len(blocked) else platform.length
                    if gap_end - gap_start >= width:
                        x = gap_start
                        break
                else:
                    raise LayoutError(
                        "No space available on this platform for a shop of this size; infrastructure is blocking the area."
                    )

        shop = Shop(
            id=new_id(),
            x=x,
            width=width,
            height=height,
            category=ShopCategory(category),
            is_allocated=is_allocated,
            vendor_id=vendor_id,
            rent=rent,
            lease_end_date=lease_end_date,
            notes=notes,
        )
        platform.shops.append(shop)
        return shop

    def remove_shop(self, shop_id: str) -> None:
        platform, idx, _ = self._shop(shop_id)
        del platform.shops[idx]

    def update_shop(self, shop_id: str, **changes: Any) -> Shop:
        unknown = set(changes) - SHOP_UPDATABLE_FIELDS
        if unknown:
            raise LayoutError(f"Unknown shop field(s): {', '.join(sorted(unknown))}")
        _, _, shop = self._shop(shop_id)
        if "category" in changes:
            changes["category"] = ShopCategory(changes["category"])
        for key, value in changes.items():
            setattr(shop, key, value)
        if shop.height is None:
            shop.height = shop.width
        return shop

    def move_shop(self, shop_id: str, x: float) -> Shop:
        return self.update_shop(shop_id, x=x)

    def resize_shop(self, shop_id: str, width: float, height: float | None = None) -> Shop:
        """Resize a shop; shops after it on the same platform shift by the width change."""
        if width <= 0 or (height is not None and height <= 0):
            raise LayoutError("Shop dimensions must be positive.")
        platform, idx, shop = self._shop(shop_id)
        delta = width - shop.width
        shop.width = width
        if height is not None:
            shop.height = height
        for later in platform.shops[idx + 1 :]:
            later.x += delta
        return shop

    def apply_uniform_shop_size(self, size: float) -> int:
        """Square every shop to `size`, clamped to the unit bounds; returns the number of shops touched."""
        size = max(MIN_UNITS, min(MAX_UNITS, size))
        count = 0
        for _, _, shop in self.layout.all_shops():
            shop.width = size
            shop.height = size
            count += 1
        return count

    # ---- infrastructure ----

    def add_infrastructure(
        self,
        type: InfrastructureType | str,
        *,
        x: float | None = None,
        y: float | None = None,
        rotation: float = 0,
        metadata: dict | None = None,
    ) -> InfrastructureBlock:
        kind = InfrastructureType(type)
        width, height = kind.default_dimensions
        offset = (len(self.layout.infrastructure_blocks) % 10) * INFRASTRUCTURE_CASCADE
        block = InfrastructureBlock(
            id=new_id(),
            type=kind,
            x=INFRASTRUCTURE_DROP_X + offset if x is None else x,
            y=INFRASTRUCTURE_DROP_Y + offset if y is None else y,
            width=width,
            height=height,
            rotation=rotation,
            metadata=dict(metadata or {"label": kind.label}),
        )
        self.layout.infrastructure_blocks.append(block)
        return block

    def add_connector_infrastructure(self, type: InfrastructureType | str, platform_ids: list[str]) -> InfrastructureBlock:
        """Add a connector spanning the centres of two or more platforms."""
        kind = InfrastructureType(type)
        if not kind.is_connector_kind:
            raise LayoutError(f"{kind.value} cannot connect platforms.")
        platforms = [p for p in self.layout.platforms if p.id in set(platform_ids)]
        if len(platforms) < 2:
            raise LayoutError("A connector needs at least two existing platforms.")

        centres = [sum(platform_extent(p)) / 2 for p in platforms]
        top = min(centres)
        height = max(centres) - top

        if kind in SIDE_RAIL_CONNECTORS:
            x = min(p.x for p in platforms) - 60
            width = 40
        else:
            x = sum(p.x + p.length / 2 for p in platforms) / len(platforms) - 25
            width = 50

        block = InfrastructureBlock(
            id=new_id(),
            type=kind,
            x=x,
            y=top,
            width=width,
            height=height,
            is_connector=True,
            connected_platforms=[p.id for p in platforms],
            metadata={"label": f"{kind.label} ({len(platforms)} platforms)"},
        )
        self.layout.infrastructure_blocks.append(block)
        return block

    def remove_infrastructure(self, block_id: str) -> None:
        self.layout.infrastructure_blocks.remove(self._block(block_id))

    def move_infrastructure(self, block_id: str, x: float, y: float) -> InfrastructureBlock:
        block = self._block(block_id)
        if block.is_locked:
            raise LayoutError(f"Infrastructure block {block_id} is locked.")
        block.x, block.y = x, y
        return block

    def rotate_infrastructure(self, block_id: str, rotation: float) -> InfrastructureBlock:
        block = self._block(block_id)
        if block.is_locked:
            raise LayoutError(f"Infrastructure block {block_id} is locked.")
        block.rotation = rotation % 360
        return block

    def toggle_infrastructure_lock(self, block_id: str) -> InfrastructureBlock:
        block = self._block(block_id)
        block.is_locked = not block.is_locked
        return block

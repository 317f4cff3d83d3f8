"""
Canvas geometry for platforms and the read-only vendor preview.

A platform's `y`/`width` describe only the boarding surface; its tracks and
restricted zones are stacked above and/or below it. `platform_strips` is the
one place that stacking is worked out.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.vendorvault.modules.station_layout.layout import InfrastructureBlock, Layout, Platform

LABEL_MARGIN_LEFT = 150
MARGIN = 100
PREVIEW_MAX_WIDTH = 800
PREVIEW_MAX_HEIGHT = 500


@dataclass(frozen=True)
class Strip:
    kind: str  # "track" | "restricted_zone"
    y: float
    height: float
    track_number: int | None = None


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


def platform_strips(platform: Platform) -> list[Strip]:
    """Track and restricted-zone strips around a platform body, top to bottom."""
    strips: list[Strip] = []
    body_top = platform.y
    body_bottom = platform.y + platform.width

    if platform.is_dual_track:
        zone_h = platform.top_restricted_zone.height if platform.top_restricted_zone else 0
        if platform.top_track:
            strips.append(
                Strip("track", body_top - zone_h - platform.top_track.height, platform.top_track.height, platform.top_track.track_number)
            )
        if platform.top_restricted_zone:
            strips.append(Strip("restricted_zone", body_top - zone_h, zone_h))
        bottom_zone_h = platform.bottom_restricted_zone.height if platform.bottom_restricted_zone else 0
        if platform.bottom_restricted_zone:
            strips.append(Strip("restricted_zone", body_bottom, bottom_zone_h))
        if platform.bottom_track:
            strips.append(
                Strip("track", body_bottom + bottom_zone_h, platform.bottom_track.height, platform.bottom_track.track_number)
            )
        return strips

    zone_h = platform.restricted_zone.height if platform.restricted_zone else 0
    if platform.is_inverted:
        if platform.track:
            strips.append(Strip("track", body_top - zone_h - platform.track.height, platform.track.height, platform.track.track_number))
        if platform.restricted_zone:
            strips.append(Strip("restricted_zone", body_top - zone_h, zone_h))
    else:
        if platform.restricted_zone:
            strips.append(Strip("restricted_zone", body_bottom, zone_h))
        if platform.track:
            strips.append(Strip("track", body_bottom + zone_h, platform.track.height, platform.track.track_number))
    return strips


def platform_extent(platform: Platform) -> tuple[float, float]:
    """(top, bottom) of the platform including its tracks and restricted zones."""
    top = platform.y
    bottom = platform.y + platform.width
    for s in platform_strips(platform):
        top = min(top, s.y)
        bottom = max(bottom, s.y + s.height)
    return top, bottom


def _block_box(b: InfrastructureBlock) -> tuple[float, float, float, float]:
    return b.x, b.y, b.x + b.width, b.y + b.height


def canvas_bounds(layout: Layout) -> Bounds:
    """Bounds of every drawable element, padded for labels; the origin is always inside."""
    xs_min = [0.0]
    ys_min = [0.0]
    xs_max: list[float] = []
    ys_max: list[float] = []
    for t in layout.tracks:
        xs_min.append(t.x)
        ys_min.append(t.y)
        xs_max.append(t.x + t.length)
        ys_max.append(t.y + t.height)
    for p in layout.platforms:
        top, bottom = platform_extent(p)
        xs_min.append(p.x)
        ys_min.append(top)
        xs_max.append(p.x + p.length)
        ys_max.append(bottom)
    for b in layout.infrastructure_blocks:
        x0, y0, x1, y1 = _block_box(b)
        xs_min.append(x0)
        ys_min.append(y0)
        xs_max.append(x1)
        ys_max.append(y1)

    return Bounds(
        min_x=min(xs_min) - LABEL_MARGIN_LEFT,
        min_y=min(ys_min) - MARGIN,
        max_x=(max(xs_max) if xs_max else 0) + MARGIN,
        max_y=(max(ys_max) if ys_max else 0) + MARGIN,
    )


def preview_scale(bounds: Bounds, max_width: float = PREVIEW_MAX_WIDTH, max_height: float = PREVIEW_MAX_HEIGHT) -> float:
    if bounds.width <= 0 or bounds.height <= 0:
        return 1.0
    return min(max_width / bounds.width, max_height / bounds.height, 1.0)


def _rect(x: float, y: float, w: float, h: float, bounds: Bounds, scale: float) -> dict:
    return {
        "x": round((x - bounds.min_x) * scale, 2),
        "y": round((y - bounds.min_y) * scale, 2),
        "width": round(w * scale, 2),
        "height": round(h * scale, 2),
    }


def build_preview(layout: Layout, max_width: float = PREVIEW_MAX_WIDTH, max_height: float = PREVIEW_MAX_HEIGHT) -> dict:
    """Scaled rectangles describing how vendors see the station, plus shop totals."""
    bounds = canvas_bounds(layout)
    scale = preview_scale(bounds, max_width, max_height)

    tracks = [
        {"id": t.id, "label": f"T{t.track_number}", **_rect(t.x, t.y, t.length, t.height, bounds, scale)}
        for t in layout.tracks
    ]

    platforms = []
    total = available = 0
    for p in layout.platforms:
        label = f"P{p.platform_number}"
        if p.is_dual_track and p.number is not None:
            label = f"{label}-{p.number + 1}"
        shops = []
        for s in p.shops:
            total += 1
            if not s.is_allocated:
                available += 1
            h = s.effective_height
            # shops are vertically centred on the platform body
            top = p.y + (p.width - h) / 2
            shops.append(
                {
                    "id": s.id,
                    "category": s.category.value,
                    "color": s.category.color,
                    "isAllocated": s.is_allocated,
                    **_rect(p.x + s.x, top, s.width, h, bounds, scale),
                }
            )
        platforms.append(
            {
                "id": p.id,
                "label": label,
                "isDualTrack": p.is_dual_track,
                **_rect(p.x, p.y, p.length, p.width, bounds, scale),
                "strips": [
                    {
                        "kind": st.kind,
                        "label": f"T{st.track_number}" if st.track_number is not None else None,
                        **_rect(p.x, st.y, p.length, st.height, bounds, scale),
                    }
                    for st in platform_strips(p)
                ],
                "shops": shops,
            }
        )

    infrastructure = [
        {
            "id": b.id,
            "type": b.type.value,
            "label": b.metadata.get("label") or b.type.label,
            "rotation": b.rotation,
            "isConnector": b.is_connector,
            **_rect(b.x, b.y, b.width, b.height, bounds, scale),
        }
        for b in layout.infrastructure_blocks
    ]

    return {
        "stationName": layout.station_name,
        "stationCode": layout.station_code,
        "scale": scale,
        "canvas": {"width": round(bounds.width * scale, 2), "height": round(bounds.height * scale, 2)},
        "tracks": tracks,
        "platforms": platforms,
        "infrastructure": infrastructure,
        "totals": {"shops": total, "available": available, "allocated": total - available},
    }

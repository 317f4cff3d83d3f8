"""
Layout <-> persistence document.

The document is the camelCase JSON shape stored per station and handed out as
a download; both paths share one schema.
"""
from __future__ import annotations

import copy
import json
import math
from datetime import date, datetime
from typing import Any

from app.vendorvault.modules.station_layout.constants import InfrastructureType, ShopCategory
from app.vendorvault.modules.station_layout.errors import MalformedDocument
from app.vendorvault.modules.station_layout.layout import (
    CanvasSettings,
    InfrastructureBlock,
    Layout,
    Platform,
    PlatformTrack,
    Pricing,
    RestrictedZone,
    Shop,
    Track,
)


# ---- export ----


def _platform_track(t: PlatformTrack | None) -> dict | None:
    return None if t is None else {"trackNumber": t.track_number, "height": t.height}


def _zone(z: RestrictedZone | None) -> dict | None:
    return None if z is None else {"height": z.height}


def _shop_to_dict(shop: Shop) -> dict:
    d: dict[str, Any] = {
        "id": shop.id,
        "x": shop.x,
        "width": shop.width,
        "height": shop.effective_height,
        "category": shop.category.value,
        "isAllocated": shop.is_allocated,
    }
    if shop.vendor_id is not None:
        d["vendorId"] = shop.vendor_id
    if shop.rent is not None:
        d["rent"] = shop.rent
    if shop.lease_end_date is not None:
        d["leaseEndDate"] = shop.lease_end_date.isoformat()
    if shop.notes is not None:
        d["notes"] = shop.notes
    return d


def _platform_to_dict(p: Platform) -> dict:
    d: dict[str, Any] = {
        "id": p.id,
        "platformNumber": p.platform_number,
        "x": p.x,
        "y": p.y,
        "length": p.length,
        "width": p.width,
        "isDualTrack": p.is_dual_track,
        "isInverted": p.is_inverted,
    }
    optional = {
        "track": _platform_track(p.track),
        "restrictedZone": _zone(p.restricted_zone),
        "topTrack": _platform_track(p.top_track),
        "topRestrictedZone": _zone(p.top_restricted_zone),
        "bottomTrack": _platform_track(p.bottom_track),
        "bottomRestrictedZone": _zone(p.bottom_restricted_zone),
    }
    d.update({k: v for k, v in optional.items() if v is not None})
    d["shops"] = [_shop_to_dict(s) for s in p.shops]
    return d


def _block_to_dict(b: InfrastructureBlock) -> dict:
    return {
        "id": b.id,
        "type": b.type.value,
        "position": {"x": b.x, "y": b.y},
        "dimensions": {"width": b.width, "height": b.height},
        "rotation": b.rotation,
        "isLocked": b.is_locked,
        "isConnector": b.is_connector,
        "connectedPlatforms": list(b.connected_platforms),
        "metadata": copy.deepcopy(b.metadata),
    }


def pricing_to_dict(p: Pricing) -> dict:
    return {
        "unitToMeters": p.unit_to_meters,
        "pricePer100x100Single": p.price_per_100x100_single,
        "pricePer100x100Dual": p.price_per_100x100_dual,
        "securityDeposit": p.security_deposit,
    }


def layout_to_document(layout: Layout) -> dict:
    doc: dict[str, Any] = {
        "stationId": layout.station_id,
        "stationName": layout.station_name,
        "stationCode": layout.station_code,
        "managerId": layout.manager_id,
        "tracks": [
            {"id": t.id, "trackNumber": t.track_number, "x": t.x, "y": t.y, "length": t.length, "height": t.height}
            for t in layout.tracks
        ],
        "platforms": [_platform_to_dict(p) for p in layout.platforms],
        "infrastructureBlocks": [_block_to_dict(b) for b in layout.infrastructure_blocks],
        "canvasSettings": {
            "width": layout.canvas_settings.width,
            "height": layout.canvas_settings.height,
            "gridSize": layout.canvas_settings.grid_size,
            "snapToGrid": layout.canvas_settings.snap_to_grid,
            "scale": layout.canvas_settings.scale,
        },
    }
    if layout.pricing is not None:
        doc["pricing"] = pricing_to_dict(layout.pricing)
    return doc


# ---- import ----


class _Reader:
    """Collects every shape problem before failing, so one error lists them all."""

    def __init__(self) -> None:
        self.problems: list[str] = []

    def num(self, d: dict, key: str, where: str, default: float | None = None) -> float:
        v = d.get(key, default)
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            self.problems.append(f"{where}.{key} must be a number")
            return 0 if default is None else default
        if not math.isfinite(v):
            self.problems.append(f"{where}.{key} must be a finite number")
            return 0 if default is None else default
        return v

    def opt_num(self, d: dict, key: str, where: str) -> float | None:
        if d.get(key) is None:
            return None
        return self.num(d, key, where)

    def text(self, d: dict, key: str, where: str, default: str | None = None) -> str:
        v = d.get(key, default)
        if v is None:
            self.problems.append(f"{where}.{key} is required")
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if not isinstance(v, str):
            self.problems.append(f"{where}.{key} must be a string")
            return ""
        return v

    def flag(self, d: dict, key: str) -> bool:
        return bool(d.get(key, False))

    def items(self, d: dict, key: str, where: str) -> list[dict]:
        v = d.get(key)
        if v is None:
            return []
        if not isinstance(v, list):
            self.problems.append(f"{where}.{key} must be a list")
            return []
        out = []
        for i, item in enumerate(v):
            if isinstance(item, dict):
                out.append(item)
            else:
                self.problems.append(f"{where}.{key}[{i}] must be an object")
        return out

    def obj(self, d: dict, key: str, where: str) -> dict | None:
        v = d.get(key)
        if v is None:
            return None
        if not isinstance(v, dict):
            self.problems.append(f"{where}.{key} must be an object")
            return None
        return v


def _read_platform_track(r: _Reader, d: dict, key: str, where: str) -> PlatformTrack | None:
    raw = r.obj(d, key, where)
    if raw is None:
        return None
    return PlatformTrack(
        track_number=int(r.num(raw, "trackNumber", f"{where}.{key}")),
        height=r.num(raw, "height", f"{where}.{key}", 60),
    )


def _read_zone(r: _Reader, d: dict, key: str, where: str) -> RestrictedZone | None:
    raw = r.obj(d, key, where)
    if raw is None:
        return None
    return RestrictedZone(height=r.num(raw, "height", f"{where}.{key}", 50))


def _read_date(r: _Reader, value: Any, where: str) -> date | None:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        r.problems.append(f"{where}.leaseEndDate must be an ISO date string")
        return None
    try:
        # Accepts both "2025-01-31" and full ISO timestamps.
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except ValueError:
        r.problems.append(f"{where}.leaseEndDate is not a valid date")
        return None


def _read_enum(r: _Reader, enum_cls, value: Any, where: str, default=None):
    if value is None and default is not None:
        return default
    try:
        return enum_cls(value)
    except ValueError:
        r.problems.append(f"{where} has unknown value {value!r}")
        return default if default is not None else next(iter(enum_cls))


def _read_shop(r: _Reader, d: dict, where: str) -> Shop:
    width = r.num(d, "width", where)
    height = r.opt_num(d, "height", where)
    return Shop(
        id=r.text(d, "id", where),
        x=r.num(d, "x", where, 0),
        width=width,
        height=width if height is None else height,
        category=_read_enum(r, ShopCategory, d.get("category"), f"{where}.category", ShopCategory.GENERAL),
        is_allocated=r.flag(d, "isAllocated"),
        vendor_id=d.get("vendorId"),
        rent=r.opt_num(d, "rent", where),
        lease_end_date=_read_date(r, d.get("leaseEndDate"), where),
        notes=d.get("notes"),
    )


def _read_platform(r: _Reader, d: dict, where: str) -> Platform:
    return Platform(
        id=r.text(d, "id", where),
        platform_number=r.text(d, "platformNumber", where),
        x=r.num(d, "x", where, 0),
        y=r.num(d, "y", where, 0),
        length=r.num(d, "length", where),
        width=r.num(d, "width", where),
        is_dual_track=r.flag(d, "isDualTrack"),
        is_inverted=r.flag(d, "isInverted"),
        track=_read_platform_track(r, d, "track", where),
        restricted_zone=_read_zone(r, d, "restrictedZone", where),
        top_track=_read_platform_track(r, d, "topTrack", where),
        top_restricted_zone=_read_zone(r, d, "topRestrictedZone", where),
        bottom_track=_read_platform_track(r, d, "bottomTrack", where),
        bottom_restricted_zone=_read_zone(r, d, "bottomRestrictedZone", where),
        shops=[_read_shop(r, s, f"{where}.shops[{i}]") for i, s in enumerate(r.items(d, "shops", where))],
    )


def _read_block(r: _Reader, d: dict, where: str) -> InfrastructureBlock:
    kind = _read_enum(r, InfrastructureType, d.get("type"), f"{where}.type")
    default_w, default_h = kind.default_dimensions
    pos = r.obj(d, "position", where) or {}
    dims = r.obj(d, "dimensions", where) or {}
    metadata = d.get("metadata") or {}
    if not isinstance(metadata, dict):
        r.problems.append(f"{where}.metadata must be an object")
        metadata = {}
    connected = d.get("connectedPlatforms") or []
    if not isinstance(connected, list):
        r.problems.append(f"{where}.connectedPlatforms must be a list")
        connected = []
    return InfrastructureBlock(
        id=r.text(d, "id", where),
        type=kind,
        x=r.num(pos, "x", f"{where}.position", 0),
        y=r.num(pos, "y", f"{where}.position", 0),
        width=r.num(dims, "width", f"{where}.dimensions", default_w),
        height=r.num(dims, "height", f"{where}.dimensions", default_h),
        rotation=r.num(d, "rotation", where, 0),
        is_locked=r.flag(d, "isLocked"),
        is_connector=r.flag(d, "isConnector"),
        connected_platforms=[str(c) for c in connected],
        metadata=dict(metadata),
    )


def _read_pricing(r: _Reader, d: dict | None) -> Pricing | None:
    if d is None:
        return None
    utm = r.num(d, "unitToMeters", "pricing")
    if utm <= 0:
        r.problems.append("pricing.unitToMeters must be greater than 0")
    return Pricing(
        unit_to_meters=utm,
        price_per_100x100_single=r.num(d, "pricePer100x100Single", "pricing", 0),
        price_per_100x100_dual=r.num(d, "pricePer100x100Dual", "pricing", 0),
        security_deposit=r.num(d, "securityDeposit", "pricing", 0),
    )


def layout_from_document(document: Any) -> Layout:
    """Build a `Layout` from a persistence document; raise `MalformedDocument` on any shape problem."""
    if not isinstance(document, dict):
        raise MalformedDocument(["document must be a JSON object"])

    station_id = document.get("stationId")
    if station_id in (None, ""):
        raise MalformedDocument(["stationId is required"])

    r = _Reader()
    canvas_raw = r.obj(document, "canvasSettings", "layout") or {}
    canvas = CanvasSettings()
    canvas = CanvasSettings(
        width=r.num(canvas_raw, "width", "canvasSettings", canvas.width),
        height=r.num(canvas_raw, "height", "canvasSettings", canvas.height),
        grid_size=r.num(canvas_raw, "gridSize", "canvasSettings", canvas.grid_size),
        snap_to_grid=bool(canvas_raw.get("snapToGrid", canvas.snap_to_grid)),
        scale=r.num(canvas_raw, "scale", "canvasSettings", canvas.scale),
    )

    layout = Layout(
        station_id=str(station_id),
        station_name=r.text(document, "stationName", "layout", ""),
        station_code=r.text(document, "stationCode", "layout", ""),
        manager_id=None if document.get("managerId") is None else str(document["managerId"]),
        tracks=[
            Track(
                id=r.text(t, "id", f"tracks[{i}]"),
                track_number=int(r.num(t, "trackNumber", f"tracks[{i}]")),
                x=r.num(t, "x", f"tracks[{i}]", 0),
                y=r.num(t, "y", f"tracks[{i}]", 0),
                length=r.num(t, "length", f"tracks[{i}]", 1000),
                height=r.num(t, "height", f"tracks[{i}]", 40),
            )
            for i, t in enumerate(r.items(document, "tracks", "layout"))
        ],
        platforms=[
            _read_platform(r, p, f"platforms[{i}]") for i, p in enumerate(r.items(document, "platforms", "layout"))
        ],
        infrastructure_blocks=[
            _read_block(r, b, f"infrastructureBlocks[{i}]")
            for i, b in enumerate(r.items(document, "infrastructureBlocks", "layout"))
        ],
        pricing=_read_pricing(r, r.obj(document, "pricing", "layout")),
        canvas_settings=canvas,
    )
    if r.problems:
        raise MalformedDocument(r.problems)
    return layout


# ---- download ----


def dumps_snapshot(layout: Layout) -> str:
    return json.dumps(layout_to_document(layout), indent=2, sort_keys=False)


def snapshot_filename(layout: Layout, now: datetime) -> str:
    code = (layout.station_code or layout.station_id or "station").strip().upper().replace(" ", "-")
    return f"station-layout-{code}-{now.strftime('%Y%m%dT%H%M%S')}.json"

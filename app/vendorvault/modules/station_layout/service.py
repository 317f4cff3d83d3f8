from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from flask import g, has_request_context
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.vendorvault.audit import record_event
from app.vendorvault.modules.station_layout.errors import (
    ExternalFetchFailure,
    LayoutAccessDenied,
    LayoutLocked,
    LayoutVersionConflict,
    OversizedShop,
    PlatformCountMismatch,
    StructuralInvalid,
)
from app.vendorvault.modules.station_layout.layout import Layout, Pricing
from app.vendorvault.modules.station_layout.models import StationLayoutRecord
from app.vendorvault.modules.station_layout.pricing import attach_pricing, default_pricing, unit_to_meters_for
from app.vendorvault.modules.station_layout.serializer import dumps_snapshot, layout_to_document, snapshot_filename
from app.vendorvault.modules.station_layout.sizing import (
    ShopResize,
    autoscale_shops,
    compute_oversized_shops,
    effective_max_units,
)
from app.vendorvault.modules.station_layout.store import LayoutStore
from app.vendorvault.modules.station_layout.validation import validate_layout, validate_with_station_data
from app.vendorvault.modules.stations.service import StationInfo, StationRegistry, mark_layout_completed
from app.vendorvault.rbac import user_has_permission
from app.vendorvault.storage import Storage, StorageError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.vendorvault.models import User

logger = logging.getLogger(__name__)


@dataclass
class SaveResult:
    document: dict
    changes: list[ShopResize] = field(default_factory=list)
    version: int = 1
    created: bool = False

    def as_dict(self) -> dict:
        return {
            "layout": self.document,
            "changes": [c.as_dict() for c in self.changes],
            "version": self.version,
            "created": self.created,
        }


def _rid() -> str | None:
    return getattr(g, "request_id", None) if has_request_context() else None


# ---- access ----


def can_edit_station(user: "User", station: StationInfo) -> bool:
    return station.manager_id is not None and station.manager_id == str(user.id)


def can_view_station(user: "User", station: StationInfo) -> bool:
    return can_edit_station(user, station) or user_has_permission(user, "stations.manage")


def ensure_can_edit(user: "User", station: StationInfo) -> None:
    if not can_edit_station(user, station):
        raise LayoutAccessDenied("You do not have permission to edit this station layout.")


def ensure_can_view(user: "User", station: StationInfo) -> None:
    if not can_view_station(user, station):
        raise LayoutAccessDenied("You do not have permission to view this station layout.")


# ---- persistence ----


def load_layout_record(s: "Session", station_id: str) -> StationLayoutRecord | None:
    try:
        sid = int(station_id)
    except (TypeError, ValueError):
        return None
    return s.query(StationLayoutRecord).filter(StationLayoutRecord.station_id == sid).one_or_none()


def record_document(record: StationLayoutRecord) -> dict:
    return json.loads(record.document_json)


def record_meta(record: StationLayoutRecord) -> dict:
    return {
        "version": record.version,
        "isLocked": record.is_locked,
        "createdAt": record.created_at.isoformat() if record.created_at else None,
        "updatedAt": record.updated_at.isoformat() if record.updated_at else None,
    }


def _persist(
    s: "Session",
    layout: Layout,
    document: dict,
    *,
    user: "User",
    expected_version: int | None,
) -> tuple[StationLayoutRecord, bool]:
    """Write the document keyed by station id; one row per station, overwritten on each save."""
    record = load_layout_record(s, layout.station_id)
    current = record.version if record is not None else 0
    if record is not None and record.is_locked:
        raise LayoutLocked("Layout is locked and cannot be modified.")
    if expected_version is not None and expected_version != current:
        raise LayoutVersionConflict(expected_version, current)

    now = datetime.utcnow()
    created = record is None
    if created:
        record = StationLayoutRecord(
            station_id=int(layout.station_id),
            version=1,
            created_at=now,
            created_by_user_id=user.id,
        )
        s.add(record)
    else:
        record.version = current + 1
    record.station_name = layout.station_name
    record.station_code = layout.station_code
    record.manager_id = layout.manager_id
    record.document_json = json.dumps(document, sort_keys=True)
    record.updated_at = now
    record.updated_by_user_id = user.id

    try:
        s.flush()
    except IntegrityError as e:
        # Another editor created the row between our read and this flush.
        logger.info("Layout create race station_id=%s request_id=%s", layout.station_id, _rid())
        raise LayoutVersionConflict(current if expected_version is None else expected_version, current + 1) from e
    except SQLAlchemyError as e:
        logger.warning("Layout persistence failed station_id=%s request_id=%s: %s", layout.station_id, _rid(), e)
        raise ExternalFetchFailure("layout_store", str(e)) from e
    return record, created


# ---- save pipeline ----


def save_layout(
    s: "Session",
    store: LayoutStore,
    *,
    pricing: Pricing | None,
    user: "User",
    registry: StationRegistry,
    expected_version: int | None = None,
) -> SaveResult:
    """
    Validate, normalize, price and persist the store's current layout.

    Runs on a snapshot; the live layout is only replaced (with the normalized,
    priced version) once the write has succeeded.
    """
    snapshot = store.snapshot()
    station_id = snapshot.station_id

    # Always a fresh read; the declared count can change between saves.
    station = registry.get_station(station_id)
    ensure_can_edit(user, station)

    # The registry owns station identity; whatever the document claims is replaced.
    snapshot.station_name = station.station_name
    snapshot.station_code = station.station_code
    snapshot.manager_id = station.manager_id

    structural = validate_layout(snapshot)
    if not structural.is_valid:
        logger.info("Layout save blocked: structural errors=%d station_id=%s request_id=%s", len(structural.errors), station_id, _rid())
        raise StructuralInvalid(structural.errors)

    cross = validate_with_station_data(snapshot, station.platforms_count)
    if not cross.is_valid:
        found = sum(p.slot_count for p in snapshot.platforms)
        logger.info(
            "Layout save blocked: platform count mismatch expected=%s found=%s station_id=%s request_id=%s",
            station.platforms_count,
            found,
            station_id,
            _rid(),
        )
        raise PlatformCountMismatch(station.platforms_count, found, cross.errors)

    pricing = pricing or snapshot.pricing or default_pricing()
    utm = pricing.unit_to_meters
    normalized, changes = autoscale_shops(snapshot, utm)
    if changes:
        logger.info("Autoscaled %d shop(s) to effective max %d station_id=%s", len(changes), effective_max_units(utm), station_id)

    leftover = compute_oversized_shops(normalized, utm)
    if leftover:
        # Autoscaling should make this unreachable; escalate with the diagnosis attached.
        cause = OversizedShop(leftover, effective_max_units(utm))
        raise StructuralInvalid([f"Shop still out of bounds after scaling: {o.describe()}" for o in leftover]) from cause

    priced = attach_pricing(normalized, pricing)

    final = validate_layout(priced)
    if not final.is_valid:
        raise StructuralInvalid(final.errors)

    document = layout_to_document(priced)
    record, created = _persist(s, priced, document, user=user, expected_version=expected_version)
    mark_layout_completed(s, station_id)

    record_event(
        s,
        actor=user,
        action="layout.save",
        entity_type="StationLayout",
        entity_id=str(station_id),
        metadata={
            "version": record.version,
            "created": created,
            "platforms": len(priced.platforms),
            "shops": sum(len(p.shops) for p in priced.platforms),
            "autoscaled": len(changes),
        },
    )

    store.load_layout(document)
    logger.info("Layout persisted station_id=%s version=%s request_id=%s", station_id, record.version, _rid())
    return SaveResult(document=document, changes=changes, version=record.version, created=created)


def save_layout_document(
    s: "Session",
    document: dict,
    *,
    pricing: Pricing | None,
    user: "User",
    registry: StationRegistry,
    expected_version: int | None = None,
) -> SaveResult:
    """Stateless save: run the same pipeline on a document posted by the client."""
    store = LayoutStore()
    store.load_layout(document)
    return save_layout(s, store, pricing=pricing, user=user, registry=registry, expected_version=expected_version)


def check_layout(layout: Layout, station: StationInfo, pricing: Pricing | None = None) -> dict:
    """Dry run of every save-time check without normalizing or writing anything."""
    utm = unit_to_meters_for(layout, pricing.unit_to_meters if pricing else None)
    structural = validate_layout(layout)
    cross = validate_with_station_data(layout, station.platforms_count)
    oversized = compute_oversized_shops(layout, utm)
    return {
        "isValid": structural.is_valid and cross.is_valid,
        "errors": structural.errors + cross.errors,
        "warnings": structural.warnings,
        "oversizedShops": [o.as_dict() for o in oversized],
        "effectiveMaxUnits": effective_max_units(utm),
        "stationPlatformCount": station.platforms_count,
    }


# ---- export ----


def export_key(layout: Layout, filename: str, now: datetime) -> str:
    code = (layout.station_code or layout.station_id).strip().upper()
    return f"layouts/{code}/{now.strftime('%Y-%m-%d')}/{filename}"


def write_export_snapshot(
    s: "Session",
    storage: Storage,
    layout: Layout,
    *,
    user: "User",
    now: datetime | None = None,
) -> tuple[str, str, bytes]:
    """Store a downloadable copy of the layout; returns (storage key, filename, bytes)."""
    now = now or datetime.utcnow()
    filename = snapshot_filename(layout, now)
    data = dumps_snapshot(layout).encode("utf-8")
    key = export_key(layout, filename, now)
    try:
        storage.put_bytes(key, data, content_type="application/json")
    except (StorageError, OSError) as e:
        logger.warning("Layout export write failed key=%s: %s", key, e)
        raise ExternalFetchFailure("storage", str(e)) from e

    record_event(
        s,
        actor=user,
        action="layout.export",
        entity_type="StationLayout",
        entity_id=str(layout.station_id),
        metadata={"storage_key": key, "filename": filename},
    )
    return key, filename, data

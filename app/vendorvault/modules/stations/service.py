from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from app.vendorvault.audit import record_event
from app.vendorvault.modules.station_layout.errors import ExternalFetchFailure
from app.vendorvault.modules.stations.models import Station

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.vendorvault.models import User

logger = logging.getLogger(__name__)

APPROVAL_STATUSES = ("PENDING", "APPROVED", "REJECTED")
OPERATIONAL_STATUSES = ("ACTIVE", "RENOVATION", "PENDING_APPROVAL")
STATION_CODE_RE = re.compile(r"^[A-Z0-9]{2,5}$")


class StationNotFound(RuntimeError):
    def __init__(self, station_id: str) -> None:
        super().__init__(f"Station not found: {station_id}")
        self.station_id = station_id


@dataclass(frozen=True)
class StationInfo:
    station_id: str
    station_name: str
    station_code: str
    platforms_count: int
    manager_id: str | None
    approval_status: str
    operational_status: str
    layout_completed: bool


def station_info(station: Station) -> StationInfo:
    return StationInfo(
        station_id=str(station.id),
        station_name=station.station_name,
        station_code=station.station_code,
        platforms_count=station.platforms_count,
        manager_id=None if station.manager_id is None else str(station.manager_id),
        approval_status=station.approval_status,
        operational_status=station.operational_status,
        layout_completed=station.layout_completed,
    )


class StationRegistry:
    """Source of a station's identity and authoritative platform count."""

    def get_station(self, station_id: str) -> StationInfo:
        raise NotImplementedError


class SqlStationRegistry(StationRegistry):
    """Reads the `stations` row on every call; nothing is cached between calls."""

    def __init__(self, s: "Session") -> None:
        self.s = s

    def get_station(self, station_id: str) -> StationInfo:
        try:
            sid = int(station_id)
        except (TypeError, ValueError):
            raise StationNotFound(str(station_id))
        try:
            station = self.s.get(Station, sid, populate_existing=True)
        except SQLAlchemyError as e:
            logger.warning("Station registry fetch failed station_id=%s: %s", station_id, e)
            raise ExternalFetchFailure("station_registry", str(e)) from e
        if station is None:
            raise StationNotFound(str(station_id))
        return station_info(station)


def station_to_dict(station: Station) -> dict:
    return {
        "id": str(station.id),
        "stationName": station.station_name,
        "stationCode": station.station_code,
        "railwayZone": station.railway_zone,
        "stationCategory": station.station_category,
        "platformsCount": station.platforms_count,
        "managerId": None if station.manager_id is None else str(station.manager_id),
        "approvalStatus": station.approval_status,
        "operationalStatus": station.operational_status,
        "layoutCompleted": station.layout_completed,
        "createdAt": station.created_at.isoformat() if station.created_at else None,
        "updatedAt": station.updated_at.isoformat() if station.updated_at else None,
    }


def _parse_int(value) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def validate_station_payload(s: "Session", payload: dict, *, station: Station | None = None) -> list[str]:
    """Validate a station create/update payload. Returns list of errors."""
    errors = []
    creating = station is None

    name = (payload.get("stationName") or "").strip()
    if creating and not name:
        errors.append("Station name is required.")

    code = (payload.get("stationCode") or "").strip().upper()
    if creating and not code:
        errors.append("Station code is required.")
    if code:
        if not STATION_CODE_RE.match(code):
            errors.append("Station code must be 2-5 letters or digits.")
        else:
            q = s.query(Station).filter(Station.station_code == code)
            if station is not None:
                q = q.filter(Station.id != station.id)
            if q.first() is not None:
                errors.append("Station with this code already exists.")

    zone = (payload.get("railwayZone") or "").strip()
    if creating and not zone:
        errors.append("Railway zone is required.")

    if creating or "platformsCount" in payload:
        count = _parse_int(payload.get("platformsCount"))
        if count is None or count < 1:
            errors.append("Platforms count must be a whole number of at least 1.")

    status = (payload.get("operationalStatus") or "").strip().upper()
    if status and status not in OPERATIONAL_STATUSES:
        errors.append(f"Invalid operational status. Must be one of: {', '.join(OPERATIONAL_STATUSES)}")
    approval = (payload.get("approvalStatus") or "").strip().upper()
    if approval and approval not in APPROVAL_STATUSES:
        errors.append(f"Invalid approval status. Must be one of: {', '.join(APPROVAL_STATUSES)}")

    manager_id = payload.get("managerId")
    if manager_id not in (None, "") and _parse_int(manager_id) is None:
        errors.append("Manager id must be a user id.")
    return errors


def create_station(s: "Session", payload: dict, user: "User") -> Station:
    """Create a station registered by a railway admin (approved on creation)."""
    now = datetime.utcnow()
    station = Station(
        station_name=(payload.get("stationName") or "").strip(),
        station_code=(payload.get("stationCode") or "").strip().upper(),
        railway_zone=(payload.get("railwayZone") or "").strip(),
        station_category=(payload.get("stationCategory") or "").strip() or None,
        platforms_count=int(payload["platformsCount"]),
        manager_id=_parse_int(payload.get("managerId")),
        approval_status=(payload.get("approvalStatus") or "APPROVED").strip().upper(),
        operational_status=(payload.get("operationalStatus") or "ACTIVE").strip().upper(),
        layout_completed=False,
        created_at=now,
        updated_at=now,
    )
    s.add(station)
    s.flush()

    record_event(
        s,
        actor=user,
        action="station.create",
        entity_type="Station",
        entity_id=str(station.id),
        metadata={"station_code": station.station_code, "platforms_count": station.platforms_count},
    )
    return station


def update_station(s: "Session", station: Station, payload: dict, user: "User") -> Station:
    changes = {}

    def _set(attr: str, new) -> None:
        old = getattr(station, attr)
        if new is not None and new != old:
            changes[attr] = {"old": old, "new": new}
            setattr(station, attr, new)

    _set("station_name", (payload.get("stationName") or "").strip() or None)
    _set("station_code", (payload.get("stationCode") or "").strip().upper() or None)
    _set("railway_zone", (payload.get("railwayZone") or "").strip() or None)
    _set("platforms_count", _parse_int(payload.get("platformsCount")))
    _set("operational_status", (payload.get("operationalStatus") or "").strip().upper() or None)
    _set("approval_status", (payload.get("approvalStatus") or "").strip().upper() or None)
    if "managerId" in payload:
        _set("manager_id", _parse_int(payload.get("managerId")))

    if changes:
        station.updated_at = datetime.utcnow()
        record_event(
            s,
            actor=user,
            action="station.update",
            entity_type="Station",
            entity_id=str(station.id),
            metadata={"changes": changes},
        )
    return station


def station_for_manager(s: "Session", user_id: int) -> Station | None:
    return s.query(Station).filter(Station.manager_id == user_id).order_by(Station.id.asc()).first()


def get_station_by_code(s: "Session", code: str) -> Station | None:
    return s.query(Station).filter(Station.station_code == (code or "").strip().upper()).one_or_none()


def mark_layout_completed(s: "Session", station_id: str) -> None:
    station = s.get(Station, int(station_id))
    if station is None:
        raise StationNotFound(str(station_id))
    if not station.layout_completed:
        station.layout_completed = True
        station.updated_at = datetime.utcnow()


def is_publicly_visible(station: Station) -> bool:
    return station.approval_status == "APPROVED" and station.operational_status == "ACTIVE" and station.layout_completed

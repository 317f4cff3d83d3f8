from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.vendorvault.db import db_session
from app.vendorvault.models import User
from app.vendorvault.modules.stations.models import Station
from app.vendorvault.modules.stations.service import (
    create_station,
    station_for_manager,
    station_to_dict,
    update_station,
    validate_station_payload,
)
from app.vendorvault.rbac import require_permission

bp = Blueprint("stations", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.get("/api/station-manager/station")
@require_permission("stations.view")
def manager_station():
    s = db_session()
    station = station_for_manager(s, _current_user().id)
    if station is None:
        return jsonify({"error": "No station found for this manager"}), 404
    return jsonify({"station": station_to_dict(station)})


@bp.get("/api/railway-admin/stations")
@require_permission("stations.manage")
def list_stations():
    s = db_session()
    stations = s.query(Station).order_by(Station.station_name.asc()).all()
    return jsonify({"stations": [station_to_dict(st) for st in stations]})


@bp.post("/api/railway-admin/stations")
@require_permission("stations.manage")
def create_station_post():
    s = db_session()
    payload = request.get_json(silent=True) or {}
    errors = validate_station_payload(s, payload)
    if errors:
        return jsonify({"error": "Invalid station.", "errors": errors}), 400
    station = create_station(s, payload, _current_user())
    s.commit()
    return jsonify({"station": station_to_dict(station)}), 201


@bp.put("/api/railway-admin/stations/<int:station_id>")
@require_permission("stations.manage")
def update_station_put(station_id: int):
    s = db_session()
    station = s.get(Station, station_id)
    if station is None:
        return jsonify({"error": "Station not found"}), 404
    payload = request.get_json(silent=True) or {}
    errors = validate_station_payload(s, payload, station=station)
    if errors:
        return jsonify({"error": "Invalid station.", "errors": errors}), 400
    update_station(s, station, payload, _current_user())
    s.commit()
    return jsonify({"station": station_to_dict(station)})

from __future__ import annotations

import io
from datetime import datetime

from flask import Blueprint, current_app, g, jsonify, request, send_file

from app.vendorvault.audit import record_event
from app.vendorvault.db import db_session
from app.vendorvault.models import User
from app.vendorvault.modules.station_layout.editor import EditorSession, EditorSessions, apply_operation
from app.vendorvault.modules.station_layout.errors import (
    AlreadyInitialized,
    ElementNotFound,
    ExternalFetchFailure,
    LayoutAccessDenied,
    LayoutError,
    LayoutLocked,
    LayoutValidationError,
    LayoutVersionConflict,
    MalformedDocument,
    NoLayoutLoaded,
    PlatformCountMismatch,
)
from app.vendorvault.modules.station_layout.geometry import build_preview
from app.vendorvault.modules.station_layout.layout import Pricing
from app.vendorvault.modules.station_layout.pricing import pricing_from_payload, unit_to_meters_for
from app.vendorvault.modules.station_layout.serializer import dumps_snapshot, layout_from_document, snapshot_filename
from app.vendorvault.modules.station_layout.service import (
    check_layout,
    ensure_can_edit,
    ensure_can_view,
    load_layout_record,
    record_document,
    record_meta,
    save_layout,
    save_layout_document,
    write_export_snapshot,
)
from app.vendorvault.modules.station_layout.sizing import compute_oversized_shops, effective_max_units
from app.vendorvault.modules.station_layout.store import LayoutStore
from app.vendorvault.modules.station_layout.validation import validate_layout
from app.vendorvault.modules.stations.service import (
    SqlStationRegistry,
    StationNotFound,
    get_station_by_code,
    is_publicly_visible,
)
from app.vendorvault.rbac import require_permission
from app.vendorvault.storage import storage_from_config

bp = Blueprint("station_layout", __name__)

_PREFIX = "/api/station-manager/layout"


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _sessions() -> EditorSessions:
    return current_app.extensions["layout_editor_sessions"]


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise LayoutError("Request body must be a JSON object.")
    return payload


def _pricing_arg(payload: dict, fallback: Pricing | None) -> Pricing | None:
    if payload.get("pricing") is None:
        return None
    if not isinstance(payload["pricing"], dict):
        raise LayoutError("pricing must be an object.")
    try:
        return pricing_from_payload(payload["pricing"], fallback)
    except ValueError as e:
        raise LayoutError(str(e)) from e


def _expected_version(payload: dict) -> int | None:
    raw = payload.get("expectedVersion")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise LayoutError("expectedVersion must be an integer.") from e


def _station_id_arg() -> str:
    station_id = (request.args.get("stationId") or "").strip()
    if not station_id:
        raise LayoutError("stationId is required.")
    return station_id


@bp.errorhandler(LayoutError)
def _layout_error(e: LayoutError):
    body: dict = {"error": str(e)}
    status = 400
    if isinstance(e, LayoutValidationError):
        body["errors"] = e.errors
        if isinstance(e, PlatformCountMismatch):
            body["expected"] = e.expected
            body["found"] = e.found
    elif isinstance(e, MalformedDocument):
        body["errors"] = e.problems
    elif isinstance(e, ElementNotFound):
        status = 404
    elif isinstance(e, LayoutAccessDenied):
        status = 403
    elif isinstance(e, LayoutLocked):
        status = 423
    elif isinstance(e, LayoutVersionConflict):
        body["currentVersion"] = e.actual
        status = 409
    elif isinstance(e, (NoLayoutLoaded, AlreadyInitialized)):
        status = 409
    elif isinstance(e, ExternalFetchFailure):
        current_app.logger.warning("Upstream failure (%s) request_id=%s: %s", e.collaborator, getattr(g, "request_id", None), e.detail)
        body = {"error": f"{e.collaborator} is unavailable. Please retry."}
        status = 502
    return jsonify(body), status


@bp.errorhandler(StationNotFound)
def _station_not_found(e: StationNotFound):
    return jsonify({"error": str(e)}), 404


def _editor_state(es: EditorSession) -> dict:
    layout = es.store.snapshot()
    utm = unit_to_meters_for(layout)
    return {
        "token": es.token,
        "stationId": es.station_id,
        "layout": es.store.export_layout(),
        "oversizedShops": [o.as_dict() for o in compute_oversized_shops(layout, utm)],
        "effectiveMaxUnits": effective_max_units(utm),
        "validation": validate_layout(layout).as_dict(),
    }


def _op_result(result) -> dict | None:
    if result is None:
        return None
    if isinstance(result, int):
        return {"count": result}
    rid = getattr(result, "id", None)
    return {"id": rid} if rid is not None else None


# ---- editor sessions ----


@bp.post(f"{_PREFIX}/editor")
@require_permission("layout.edit")
def editor_open():
    s = db_session()
    user = _current_user()
    payload = _payload()
    station_id = str(payload.get("stationId") or "").strip()
    if not station_id:
        raise LayoutError("stationId is required.")

    station = SqlStationRegistry(s).get_station(station_id)
    ensure_can_edit(user, station)

    store = LayoutStore()
    record = load_layout_record(s, station.station_id)
    if record is not None:
        store.load_layout(record_document(record))
    else:
        store.initialize_layout(station.station_id, station.station_name, station.station_code, station.manager_id)

    es = _sessions().open(user.id, station.station_id, store)
    record_event(
        s,
        actor=user,
        action="layout.editor_open",
        entity_type="StationLayout",
        entity_id=station.station_id,
        metadata={"existing": record is not None},
    )
    s.commit()

    body = _editor_state(es)
    body["meta"] = record_meta(record) if record is not None else None
    return jsonify(body), 201


@bp.get(f"{_PREFIX}/editor/<token>")
@require_permission("layout.edit")
def editor_state(token: str):
    es = _sessions().get(token, _current_user().id)
    return jsonify(_editor_state(es))


@bp.post(f"{_PREFIX}/editor/<token>/ops")
@require_permission("layout.edit")
def editor_op(token: str):
    es = _sessions().get(token, _current_user().id)
    payload = _payload()
    op = str(payload.get("op") or "").strip()
    if not op:
        raise LayoutError("op is required.")
    result = apply_operation(es.store, op, payload.get("args"))
    body = _editor_state(es)
    body["result"] = _op_result(result)
    return jsonify(body)


@bp.post(f"{_PREFIX}/editor/<token>/save")
@require_permission("layout.edit")
def editor_save(token: str):
    s = db_session()
    user = _current_user()
    es = _sessions().get(token, user.id)
    payload = request.get_json(silent=True) or {}
    result = save_layout(
        s,
        es.store,
        pricing=_pricing_arg(payload, es.store.layout.pricing),
        user=user,
        registry=SqlStationRegistry(s),
        expected_version=_expected_version(payload),
    )
    s.commit()
    return jsonify(result.as_dict())


@bp.get(f"{_PREFIX}/editor/<token>/download")
@require_permission("layout.edit")
def editor_download(token: str):
    es = _sessions().get(token, _current_user().id)
    layout = es.store.snapshot()
    data = dumps_snapshot(layout).encode("utf-8")
    return send_file(
        io.BytesIO(data),
        mimetype="application/json",
        as_attachment=True,
        download_name=snapshot_filename(layout, datetime.utcnow()),
    )


@bp.delete(f"{_PREFIX}/editor/<token>")
@require_permission("layout.edit")
def editor_close(token: str):
    _sessions().close(token, _current_user().id)
    return jsonify({"ok": True})


# ---- stateless ----


@bp.post(f"{_PREFIX}/save")
@require_permission("layout.edit")
def save_post():
    s = db_session()
    user = _current_user()
    payload = _payload()
    document = payload.get("layout")
    result = save_layout_document(
        s,
        document,
        pricing=_pricing_arg(payload, None),
        user=user,
        registry=SqlStationRegistry(s),
        expected_version=_expected_version(payload),
    )
    s.commit()
    return jsonify(result.as_dict())


@bp.post(f"{_PREFIX}/validate")
@require_permission("layout.view")
def validate_post():
    s = db_session()
    payload = _payload()
    layout = layout_from_document(payload.get("layout"))
    station = SqlStationRegistry(s).get_station(layout.station_id)
    ensure_can_view(_current_user(), station)
    return jsonify(check_layout(layout, station, _pricing_arg(payload, layout.pricing)))


@bp.get(f"{_PREFIX}/load")
@require_permission("layout.view")
def load_get():
    s = db_session()
    station = SqlStationRegistry(s).get_station(_station_id_arg())
    ensure_can_view(_current_user(), station)
    record = load_layout_record(s, station.station_id)
    if record is None:
        return jsonify({"error": "No layout saved for this station yet."}), 404
    return jsonify({"layout": record_document(record), "meta": record_meta(record)})


@bp.get(f"{_PREFIX}/export")
@require_permission("layout.export")
def export_get():
    s = db_session()
    user = _current_user()
    station = SqlStationRegistry(s).get_station(_station_id_arg())
    ensure_can_view(user, station)
    record = load_layout_record(s, station.station_id)
    if record is None:
        return jsonify({"error": "No layout saved for this station yet."}), 404

    layout = layout_from_document(record_document(record))
    storage = storage_from_config(current_app.config)
    key, filename, data = write_export_snapshot(s, storage, layout, user=user)
    s.commit()
    current_app.logger.info("Layout exported station_id=%s key=%s", station.station_id, key)
    return send_file(io.BytesIO(data), mimetype="application/json", as_attachment=True, download_name=filename)


# ---- public ----


def _public_layout(code: str):
    s = db_session()
    station = get_station_by_code(s, code)
    if station is None or not is_publicly_visible(station):
        return None
    record = load_layout_record(s, str(station.id))
    if record is None:
        return None
    return record_document(record)


@bp.get("/api/stations/<code>/layout")
def public_layout(code: str):
    document = _public_layout(code)
    if document is None:
        return jsonify({"error": "Layout not available"}), 404
    return jsonify({"layout": document})


@bp.get("/api/stations/<code>/layout/preview")
def public_layout_preview(code: str):
    document = _public_layout(code)
    if document is None:
        return jsonify({"error": "Layout not available"}), 404
    return jsonify({"preview": build_preview(layout_from_document(document))})

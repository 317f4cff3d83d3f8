from flask import Blueprint, jsonify

from app.vendorvault.modules.station_layout.constants import DEFAULT_UNIT_TO_METERS, MAX_AREA_M2, MAX_UNITS, MIN_UNITS

bp = Blueprint("routes", __name__)


@bp.get("/")
def index():
    return jsonify({"service": "vendorvault", "ok": True})


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for container probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/layout-rules")
def layout_rules():
    """Regulatory shop limits, so clients can block oversize shops before saving."""
    return jsonify(
        {
            "minUnits": MIN_UNITS,
            "maxUnits": MAX_UNITS,
            "maxAreaM2": MAX_AREA_M2,
            "defaultUnitToMeters": DEFAULT_UNIT_TO_METERS,
        }
    )

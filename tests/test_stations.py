"""Tests for the station registry endpoints."""
import pytest
from sqlalchemy.exc import OperationalError
from werkzeug.security import generate_password_hash

from app.vendorvault import create_app
from app.vendorvault.db import session_scope
from app.vendorvault.models import Base, Permission, Role, User
from app.vendorvault.modules.station_layout.errors import ExternalFetchFailure
from app.vendorvault.modules.stations.models import Station
from app.vendorvault.modules.stations.service import SqlStationRegistry, StationNotFound, is_publicly_visible


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        p_view = Permission(key="stations.view", name="Stations: view own station")
        p_manage = Permission(key="stations.manage", name="Stations: register and manage")
        admin_role = Role(key="railway_admin", name="Railway Administrator")
        admin_role.permissions.extend([p_view, p_manage])
        manager_role = Role(key="station_manager", name="Station Manager")
        manager_role.permissions.append(p_view)
        admin = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        admin.roles.append(admin_role)
        manager = User(email="manager@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        manager.roles.append(manager_role)
        s.add_all([p_view, p_manage, admin_role, manager_role, admin, manager])
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="admin@example.com"):
    r = client.post("/auth/login", json={"email": email, "password": "pw"})
    assert r.status_code == 200
    return {"X-CSRF-Token": r.json["csrfToken"]}


def _manager_id(app):
    with session_scope(app) as s:
        return s.query(User).filter(User.email == "manager@example.com").one().id


def test_admin_creates_station(client, app):
    headers = _login(client)
    r = client.post(
        "/api/railway-admin/stations",
        json={
            "stationName": "Lakeside",
            "stationCode": "lks",
            "railwayZone": "SR",
            "platformsCount": 4,
            "managerId": _manager_id(app),
        },
        headers=headers,
    )
    assert r.status_code == 201, r.json
    station = r.json["station"]
    assert station["stationCode"] == "LKS"
    assert station["approvalStatus"] == "APPROVED"
    assert station["operationalStatus"] == "ACTIVE"
    assert station["layoutCompleted"] is False

    r = client.get("/api/railway-admin/stations")
    assert [st["stationCode"] for st in r.json["stations"]] == ["LKS"]


def test_station_payload_validation(client):
    headers = _login(client)
    r = client.post(
        "/api/railway-admin/stations",
        json={"stationName": "", "stationCode": "TOO-LONG", "platformsCount": 0},
        headers=headers,
    )
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "Station name is required." in errors
    assert "Station code must be 2-5 letters or digits." in errors
    assert "Railway zone is required." in errors
    assert "Platforms count must be a whole number of at least 1." in errors


def test_duplicate_station_code(client):
    headers = _login(client)
    payload = {"stationName": "A", "stationCode": "AAA", "railwayZone": "NR", "platformsCount": 1}
    assert client.post("/api/railway-admin/stations", json=payload, headers=headers).status_code == 201
    r = client.post("/api/railway-admin/stations", json=payload, headers=headers)
    assert r.status_code == 400
    assert "Station with this code already exists." in r.json["errors"]


def test_update_station_platform_count(client):
    headers = _login(client)
    payload = {"stationName": "A", "stationCode": "AAA", "railwayZone": "NR", "platformsCount": 1}
    sid = client.post("/api/railway-admin/stations", json=payload, headers=headers).json["station"]["id"]
    r = client.put(f"/api/railway-admin/stations/{sid}", json={"platformsCount": 6}, headers=headers)
    assert r.status_code == 200
    assert r.json["station"]["platformsCount"] == 6
    r = client.put("/api/railway-admin/stations/999", json={"platformsCount": 6}, headers=headers)
    assert r.status_code == 404


def test_manager_sees_own_station(client, app):
    headers = _login(client)
    client.post(
        "/api/railway-admin/stations",
        json={"stationName": "Lakeside", "stationCode": "LKS", "railwayZone": "SR", "platformsCount": 2, "managerId": _manager_id(app)},
        headers=headers,
    )
    client.post("/auth/logout")

    _login(client, "manager@example.com")
    r = client.get("/api/station-manager/station")
    assert r.status_code == 200
    assert r.json["station"]["stationCode"] == "LKS"
    # managers cannot register stations
    r = client.get("/api/railway-admin/stations")
    assert r.status_code == 403


def test_registry_reads_fresh_and_raises(app):
    with session_scope(app) as s:
        s.add(Station(id=5, station_name="X", station_code="XX", railway_zone="NR", platforms_count=2))

    with session_scope(app) as s:
        registry = SqlStationRegistry(s)
        assert registry.get_station("5").platforms_count == 2
        s.execute(Station.__table__.update().where(Station.id == 5).values(platforms_count=3))
        assert registry.get_station("5").platforms_count == 3
        with pytest.raises(StationNotFound):
            registry.get_station("404")
        with pytest.raises(StationNotFound):
            registry.get_station("abc")


def test_registry_wraps_database_errors(app, monkeypatch):
    def _boom(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is down"))

    with session_scope(app) as s:
        monkeypatch.setattr(s, "get", _boom)
        with pytest.raises(ExternalFetchFailure) as exc:
            SqlStationRegistry(s).get_station("1")
        assert exc.value.collaborator == "station_registry"


def test_public_visibility_rules():
    st = Station(approval_status="APPROVED", operational_status="ACTIVE", layout_completed=True)
    assert is_publicly_visible(st)
    st.layout_completed = False
    assert not is_publicly_visible(st)

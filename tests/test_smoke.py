import pytest
from werkzeug.security import generate_password_hash

from app.vendorvault import create_app
from app.vendorvault.db import session_scope
from app.vendorvault.models import Base, Permission, Role, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
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
        p = Permission(key="layout.view", name="Station layout: view")
        r = Role(key="inspector", name="Inspector")
        r.permissions.append(p)
        u = User(email="inspector@example.com", full_name="Ina Spector", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([p, r, u])

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert client.get("/healthz").status_code == 200


def test_layout_rules(client):
    r = client.get("/api/layout-rules")
    assert r.json["maxUnits"] == 200
    assert r.json["minUnits"] == 50
    assert r.json["maxAreaM2"] == 10


def test_login_me_logout(client):
    r = client.get("/auth/me")
    assert r.status_code == 401

    r = client.post("/auth/login", json={"email": "inspector@example.com", "password": "wrong"})
    assert r.status_code == 401

    r = client.post("/auth/login", json={"email": "inspector@example.com", "password": "pw"})
    assert r.status_code == 200
    assert r.json["user"]["roles"] == ["inspector"]
    assert r.json["user"]["permissions"] == ["layout.view"]
    assert r.json["csrfToken"]

    r = client.get("/auth/me")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "inspector@example.com"

    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_missing_permission_is_403(client):
    client.post("/auth/login", json={"email": "inspector@example.com", "password": "pw"})
    r = client.get("/api/station-manager/station")
    assert r.status_code == 403
    assert r.json["missingPermission"] == "stations.view"


def test_unknown_route_is_json_404(client):
    r = client.get("/nope")
    assert r.status_code == 404
    assert r.json["error"] == "Not found"

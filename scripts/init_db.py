import sys
from pathlib import Path
import os

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.vendorvault.models import Base, Permission, Role, User  # noqa: E402
from scripts._db_utils import create_script_engine, script_session  # noqa: E402

PERMISSIONS = (
    ("layout.view", "Station layout: view"),
    ("layout.edit", "Station layout: edit and save"),
    ("layout.export", "Station layout: export"),
    ("stations.view", "Stations: view own station"),
    ("stations.manage", "Stations: register and manage"),
)

ROLES = {
    "railway_admin": ("Railway Administrator", ("layout.view", "layout.export", "stations.view", "stations.manage")),
    "station_manager": ("Station Manager", ("layout.view", "layout.edit", "layout.export", "stations.view")),
    "inspector": ("Inspector", ("layout.view", "stations.view")),
    "vendor": ("Vendor", ()),
}


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    admin_email = (os.environ.get("ADMIN_EMAIL") or "admin@vendorvault.local").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///vendorvault.db").strip()

    # Use direct engine/session so this can run in release without importing app.wsgi (avoids recursion).
    with script_session(db_url) as s:
        perms: dict[str, Permission] = {}
        for key, name in PERMISSIONS:
            p = s.query(Permission).filter(Permission.key == key).one_or_none()
            if not p:
                p = Permission(key=key, name=name)
                s.add(p)
            perms[key] = p

        roles: dict[str, Role] = {}
        for key, (name, perm_keys) in ROLES.items():
            role = s.query(Role).filter(Role.key == key).one_or_none()
            if not role:
                role = Role(key=key, name=name)
                s.add(role)
            for pk in perm_keys:
                if perms[pk] not in role.permissions:
                    role.permissions.append(perms[pk])
            roles[key] = role

        user = s.query(User).filter(User.email == admin_email).one_or_none()
        if not user:
            user = User(email=admin_email, full_name="Railway Admin", password_hash=generate_password_hash(admin_password), is_active=True)
            s.add(user)
        if roles["railway_admin"] not in user.roles:
            user.roles.append(roles["railway_admin"])

    print("Initialized database (seed_only).")
    print(f"Admin email: {admin_email}")
    print("Admin password: (from ADMIN_PASSWORD)")


def create_tables(database_url: str | None = None) -> None:
    """Local/dev only: create tables straight from the models (prod uses alembic)."""
    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///vendorvault.db").strip()
    engine = create_script_engine(db_url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()


def main() -> None:
    if "--create-tables" in sys.argv:
        create_tables()
    seed_only(database_url=None)


if __name__ == "__main__":
    main()

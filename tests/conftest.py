"""
Pytest configuration and fixtures for the API tests
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from itam.auth.security import create_access_token, get_password_hash
from itam.db import Base, get_db
from itam.main import app
from itam.models.models import Asset, User, UserDetails
from itam.routes.files import get_storage
from itam.services.lifecycle import apply_ownership, custodian_ownership
from itam.storage.local_provider import LocalStorageProvider


PASSWORD = "secret123"


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def storage(tmp_path):
    return LocalStorageProvider(str(tmp_path / "storage"))


@pytest.fixture
def client(db, storage):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _make_user(db, personal_number: str, name: str, role: str, is_active: bool = True) -> User:
    user = User(
        personal_number=personal_number,
        name=name,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        department="ICT",
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _make_user(db, "K00000001", "Alice Admin", "Admin")


@pytest.fixture
def officer(db):
    return _make_user(db, "K00000002", "Oscar Officer", "ICT Officer")


@pytest.fixture
def end_user(db):
    return _make_user(db, "T00000003", "Eve User", "End User")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), roles=[user.role])}"}


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
def officer_headers(officer):
    return auth_headers(officer)


@pytest.fixture
def user_headers(end_user):
    return auth_headers(end_user)


@pytest.fixture
def make_asset(db):
    """Insert an asset at the ICT store; keyword overrides are applied afterwards."""
    def _make(serial: str, asset_type: str, **overrides) -> Asset:
        asset = Asset(serial_number=serial, asset_type=asset_type, brand="Dell", model="Generic", status="In Store")
        apply_ownership(asset, custodian_ownership())
        for key, value in overrides.items():
            setattr(asset, key, value)
        db.add(asset)
        db.commit()
        db.refresh(asset)
        return asset

    return _make


@pytest.fixture
def holder(db):
    entry = UserDetails(
        full_name="Jane Wanjiru",
        domain_account="K12345678",
        location="HQ 3rd Floor",
        department="Finance",
        section="Payroll",
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def deployment_payload(**overrides) -> dict:
    payload = {
        "action_type": "New Deployment",
        "deployment_type": "Pair",
        "primary_asset_serial": "CPU-001",
        "secondary_asset_serial": "MON-001",
        "asset_pair_type": "PC",
        "to_holder": "Jane Wanjiru",
        "to_domain_account": "K12345678",
        "to_location": "HQ 3rd Floor",
        "to_department": "Finance",
        "to_section": "Payroll",
    }
    payload.update(overrides)
    return payload

import os
from datetime import datetime, timezone

import pytest

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["ADMIN_USERNAME"] = "owner"
os.environ["ADMIN_PASSWORD"] = "hunter2"
os.environ.pop("PUBLIC_BASE_URL", None)

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dynqr import models
from dynqr.database import Base, get_db
from dynqr.main import app


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def _client_for(engine):
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return session_local


@pytest.fixture
def session_local():
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    session_local = _client_for(engine)
    yield session_local
    app.dependency_overrides.pop(get_db, None)
    engine.dispose()


@pytest.fixture
def client(session_local):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def broken_scan_store():
    """A store whose scan table is missing, so every scan insert fails."""
    engine = _memory_engine()
    models.DynamicCode.__table__.create(bind=engine)
    session_local = _client_for(engine)
    with TestClient(app) as client:
        yield client, session_local
    app.dependency_overrides.pop(get_db, None)
    engine.dispose()


@pytest.fixture
def auth_headers(client):
    resp = client.post("/login", data={"username": "owner", "password": "hunter2"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def seed_code(session_local, short_code="Ab3dEf9h", target_url="https://example.com/x",
              active=True, user_id="owner", name="Flyer"):
    with session_local() as db:
        code = models.DynamicCode(
            short_code=short_code, target_url=target_url, active=active, user_id=user_id, name=name
        )
        db.add(code)
        db.commit()
        return code.id


def seed_scan(session_local, code_id, scanned_at, **fields):
    with session_local() as db:
        scan = models.ScanEvent(dynamic_code_id=code_id, scanned_at=scanned_at, **fields)
        db.add(scan)
        db.commit()
        return scan.id


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def scan_rows(session_local):
    with session_local() as db:
        return db.query(models.ScanEvent).all()

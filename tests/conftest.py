import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite:///:memory:")
os.environ.setdefault("SIMULATED_LATENCY_MIN_MS", "0")
os.environ.setdefault("SIMULATED_LATENCY_MAX_MS", "0")
os.environ.setdefault("LOCAL_STORAGE", "1")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medly.api.deps import get_store
from medly.core.security import create_access_token
from medly.db import models
from medly.db.init_db import seed_if_empty
from medly.store import USERS, SqlEntityStore


@pytest.fixture()
def store(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCAL_STORAGE", "1")
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path / "storage"))
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = SessionLocal()
    yield SqlEntityStore(db)
    db.close()
    engine.dispose()


@pytest.fixture()
def seeded(store):
    seed_if_empty(store)
    return store


def load_user(store, user_id):
    return store.get_by_id(USERS, user_id)


@pytest.fixture()
def admin(seeded):
    return load_user(seeded, "user-admin")


@pytest.fixture()
def gestor(seeded):
    return load_user(seeded, "user-gestor")


@pytest.fixture()
def escalista(seeded):
    return load_user(seeded, "user-escalista")


@pytest.fixture()
def doctor(seeded):
    return load_user(seeded, "user-medico-1")


@pytest.fixture()
def other_doctor(seeded):
    return load_user(seeded, "user-medico-2")


@pytest.fixture()
def client(seeded):
    from medly.main import app

    app.dependency_overrides[get_store] = lambda: seeded
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}

    return _headers

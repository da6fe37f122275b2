"""Shared fixtures: in-memory database, temporary blob store, fixed clinician."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTH_JWT_SECRET", "test-secret")

import uuid

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from psyrecord.main import app
from psyrecord.models.database import Base, SessionLocal, engine, get_db
from psyrecord.services.auth import CurrentUser, get_current_user
from psyrecord.services.encryption import EncryptionService
from psyrecord.services.repository import PsyRecordRepository
from psyrecord.services.storage import LocalBlobStore, get_blob_store


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user():
    return CurrentUser(id=uuid.uuid4(), email="ana.souza@example.com")


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "documents", EncryptionService(Fernet.generate_key()))


@pytest.fixture
def repo(db, user, blob_store):
    return PsyRecordRepository(db, user, blob_store)


@pytest.fixture
def client(db, user, blob_store):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

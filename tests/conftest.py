from pathlib import Path
import os
import sys
import tempfile

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Settings are read at import time: point everything at throwaway resources first
_TMP_DIR = Path(tempfile.mkdtemp(prefix="gallery-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"
os.environ["BLOB_BACKEND"] = "memory"
os.environ["PUBLIC_BASE_URL"] = "https://media.example.test"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["APP_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from gallery_api.core.blob_storage import MemoryBlobStore, get_blob_store
from gallery_api.db.models import Base
from gallery_api.db.session import SessionLocal, engine
from gallery_api.main import app as fastapi_app

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture()
def blob_store():
    return MemoryBlobStore()


@pytest.fixture()
def app(blob_store):
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    fastapi_app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def db(app):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture()
def upload(client):
    def _upload(name: str = "IMG_0001.jpg", data: bytes = b"\xff\xd8\xff fake jpeg", content_type: str = "image/jpeg"):
        return client.post("/api/photos", files={"file": (name, data, content_type)})

    return _upload

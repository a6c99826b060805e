# tests/api/conftest.py
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.api.api import api_router
from app.api.deps import get_db, get_settings
from app.api.exception_handlers import register_exception_handlers
from app.core.config import Settings
from app.db.models.base import Base
from app.db.session import build_engine

API_PREFIX = "/api/v1"


@pytest.fixture()
def test_settings(tmp_path, template_path):
    return Settings(
        SECRET_KEY="test-secret",
        API_KEY=None,
        STORAGE_BASE_PATH=str(tmp_path / "objects"),
        STORAGE_PUBLIC_URL=f"http://testserver{API_PREFIX}/storage",
        EXPORT_TEMPLATE_PATH=str(template_path),
    )


@pytest.fixture()
def client(test_settings):
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    # Override the database dependency
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(api_router, prefix=API_PREFIX)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def document_id(client):
    response = client.post(
        f"{API_PREFIX}/documents/", json={"site_name": "A현장", "month_key": "2025-12"}
    )
    assert response.status_code == 200
    return response.json()["id"]

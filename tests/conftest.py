import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import get_db
from main import app


@pytest.fixture
def settings():
    return Settings(database_url="mongodb://localhost:27017", stripe_secret_key="sk_test_123")


@pytest.fixture
def db():
    return mongomock.MongoClient()["estateEase"]


@pytest.fixture
def client(db, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def agreement_payload():
    return {
        "userName": "Alice",
        "userEmail": "a@x.com",
        "floorNo": 3,
        "blockName": "B",
        "apartmentNo": "302",
        "rent": 1000,
    }

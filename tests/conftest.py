"""
Shared test fixtures.

Settings are read from the environment when ``config`` is first imported,
so they are set here before any application module is loaded.
"""
import os
import tempfile

TEST_DIR = tempfile.mkdtemp(prefix="blog-api-tests-")

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["UPLOAD_DIR"] = os.path.join(TEST_DIR, "uploads")
os.environ["LOG_FILE"] = os.path.join(TEST_DIR, "app.log")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from main import app


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every connection of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def client(engine):
    """Test client whose requests use the per-test database"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, email="a@x.com", password="pw1", name="Alice"):
    return client.post("/register", json={"email": email, "password": password, "name": name})


def login(client, email="a@x.com", password="pw1"):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def auth_headers(client):
    """Register and log in Alice, returning her Authorization header"""
    register(client)
    token = login(client).json()["token"]
    return {"Authorization": f"Bearer {token}"}

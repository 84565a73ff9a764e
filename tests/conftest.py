import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("HOLD_SWEEP_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import agenda_api.models  # noqa: F401,E402
from agenda_api.database import Base, get_db
from agenda_api.main import app
from agenda_api.services import contact_cache

OWNER = "owner-1"
INSTANCE = "instance-1"


@pytest.fixture
def engine():
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
def db_session(engine):
    """Real session on a fresh in-memory database."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers():
    return {"X-User-Id": OWNER}


@pytest.fixture(autouse=True)
def clear_contact_cache():
    contact_cache.clear_contact_names()
    yield
    contact_cache.clear_contact_names()

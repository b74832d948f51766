# tests/conftest.py
import os

# Settings are read at import time; pin them before the app is imported.
os.environ["ENV"] = "local"
os.environ["DATABASE_URL_LOCAL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["INTERNAL_API_KEY"] = "test-internal-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ABSENCE_RELEASES_SEAT"] = "true"
os.environ["WAITLIST_CLOSE_LEAD_MINUTES"] = "60"
os.environ["DEFAULT_MAKEUP_WINDOW_DAYS"] = "30"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.testclient import TestClient

from swim_makeup.main import app
from swim_makeup.api import deps
from swim_makeup.db.base_class import Base
from swim_makeup import models  # noqa: F401

from tests.utils.notifier import RecordingNotifier


# --- Test Database Setup ---
# One shared in-memory connection so every session sees the same data
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def admin_headers():
    return {"X-Internal-Api-Key": "test-internal-key"}


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(db_session, notifier):
    """
    Provides a TestClient bound to the test database with a recording
    notifier instead of real emails.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_notifier] = lambda: notifier

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

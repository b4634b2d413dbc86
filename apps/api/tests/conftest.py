"""
Pytest configuration and fixtures

IMPORTANT: Tests run against a throwaway SQLite file and an in-memory broker.
The schema is dropped and recreated around every test, so nothing leaks
between tests and no external service is needed.
"""
import os
import sys
import tempfile

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Must be set before core.config is imported anywhere.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="fitness-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["LOG_FORMAT"] = "text"
os.environ.pop("USER_SERVICE_URL", None)
os.environ.pop("GEMINI_API_KEY", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import models  # noqa: E402,F401
from core.database import Base, SessionLocal, engine  # noqa: E402
from core.exceptions import GenerationError  # noqa: E402
from tests.pipeline_helpers import FakeGenerator, FakePublisher  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def unavailable_generator():
    return FakeGenerator(GenerationError("model unavailable"))


@pytest.fixture
def fake_publisher():
    return FakePublisher()


@pytest.fixture
def client(fake_publisher):
    from main import create_app

    app = create_app(publisher=fake_publisher)
    return TestClient(app)

"""
Fixtures shared by the unit and API suites.

Each test gets an empty in-memory SQLite schema; the API client routes
``get_db`` to that same session so tests can seed rows and then call
endpoints against them.
"""
import os

# Must be set before stockplan.core.settings is imported.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("MESSAGING_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import stockplan.models  # noqa: F401
from stockplan.db.base import Base
from stockplan.db.session import build_engine, get_db
from stockplan.main import app

from tests.factories import reset_sequences


test_engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
SessionForTests = sessionmaker(bind=test_engine, autoflush=False)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=test_engine)
    reset_sequences()
    session = SessionForTests()
    yield session
    session.close()
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    app.dependency_overrides[get_db] = lambda: db_session
    with TestClient(app) as api:
        yield api
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def actor_headers():
    return {"X-User-Id": "planner@test"}

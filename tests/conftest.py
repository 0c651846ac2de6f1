"""Pytest configuration and shared fixtures."""

from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from coursehub.core.config import Settings
from coursehub.db.base import Base
from coursehub.db.memory import InMemoryEnrollmentRepository
from coursehub.db.session import SessionLocal
import coursehub.db.models  # noqa: F401

from tests.factories import FakeDirectory, FakeIdentity


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        smtp_host="smtp.example.com",
        smtp_user=None,
        smtp_use_tls=False,
        default_excuse_window_hours=None,
        attendance_requires_active_course=True,
        public_base_url="https://courses.example.com",
    )


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def dispatcher():
    return MagicMock()


@pytest.fixture
def memory_repo():
    return InMemoryEnrollmentRepository()


@pytest.fixture
def organization_id():
    return uuid4()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """A session on a fresh in-memory SQLite database."""
    session = SessionLocal(bind=db_engine)
    try:
        yield session
    finally:
        session.close()

# ABOUTME: Pytest hooks and shared fixtures: in-memory SQLite engine and a get_session replacement.
# ABOUTME: Loads .env so integration tests (e.g. test_evals) have GOOGLE_API_KEY when run via pytest.

from contextlib import contextmanager

import pytest
from dotenv import load_dotenv
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

load_dotenv()


@pytest.fixture
def in_memory_engine():
    """Engine for in-memory SQLite; one DB per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def fake_get_session(in_memory_engine):
    """Context manager that yields a session on the in-memory engine; patch it over core.database.get_session users."""

    @contextmanager
    def _fake():
        with Session(in_memory_engine) as s:
            yield s

    return _fake

# ABOUTME: SQLModel tables for saved goals and AI call logs, plus the SQLite session factory.
# ABOUTME: get_session yields a session; create_all initializes the schema.

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import Field, Session, SQLModel, create_engine

_db_path = os.environ.get("GOALS_DB_PATH", "goals.db")


class Goal(SQLModel, table=True):
    """Persisted goal record (refined goal + metadata)."""

    __tablename__ = "goals"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    original_input: str
    refined_goal: str
    key_results: str  # JSON array of strings
    confidence_score: int
    status: str = "saved"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AICallLog(SQLModel, table=True):
    """One row per refinement call; written once by the telemetry sink and never updated."""

    __tablename__ = "ai_call_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    timestamp: datetime = Field(index=True)
    model: str
    success: bool
    latency_ms: float
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    input_cost: float = 0.0
    completion_cost: float = 0.0
    total_cost: float = 0.0
    input: str
    output: Optional[str] = None  # JSON object or null
    error_message: Optional[str] = None


_engine = create_engine(
    f"sqlite:///{_db_path}",
    connect_args={"check_same_thread": False},
)


def init_db() -> None:
    """Create all tables if they do not exist."""
    SQLModel.metadata.create_all(_engine)


@contextmanager
def get_session():
    """Yield an SQLite session for the default engine."""
    init_db()
    with Session(_engine) as session:
        yield session

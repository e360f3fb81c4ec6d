"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Iterator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.db.schema import Base
from src.rules.engine import ChessRulesEngine
from tests.mocks import FakeClock, MockRepository, RecordingSink

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def session_factory() -> Iterator[sessionmaker[Session]]:
    """Factory bound to a fresh test database. Tables are removed at teardown to keep tests independent of each other."""
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session_repo(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    """Connection to the test database."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_repository() -> Iterator[MockRepository]:
    """Ensures to clear the repository between tests"""
    repo = MockRepository()
    try:
        yield repo
    finally:
        repo.clear()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rules() -> ChessRulesEngine:
    return ChessRulesEngine()

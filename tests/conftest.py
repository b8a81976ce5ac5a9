"""
Test configuration and shared fixtures for the clinic scheduling test suite.

Tests run against a throwaway SQLite file by default, or against the
database named by TEST_DATABASE_URL (e.g. a PostgreSQL test database).
The schema is built once per session by running the Alembic migrations,
and every table is emptied after each test.

Tests commit for real (no savepoint wrapping): the concurrency tests need
several sessions on separate connections to see each other's commits.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Point the engine at the test database before the package creates it
TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite:///{Path(tempfile.gettempdir()) / f'clinic_scheduling_test_{os.getpid()}.db'}"
)
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from alembic import command
from alembic.config import Config

from clinic_scheduling.core.database import Base, SessionLocal, engine, drop_tables
from clinic_scheduling.services.booking_service import BookingEngine
from clinic_scheduling.services.event_port import RecordingEventPort
from clinic_scheduling.services.lifecycle_service import LifecycleManager

REPO_ROOT = Path(__file__).resolve().parent.parent


def _reset_schema() -> None:
    drop_tables()
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """
    Build the test schema from the Alembic migrations (base -> head).

    This runs once at the start of the test session, so the migrations
    themselves are exercised by every test run.
    """
    _reset_schema()

    alembic_cfg = Config(str(REPO_ROOT / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(REPO_ROOT / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)
    alembic_cfg.attributes["configure_logger"] = False
    alembic_cfg.attributes["url_is_explicit"] = True
    command.upgrade(alembic_cfg, "head")

    yield

    _reset_schema()
    engine.dispose()
    if TEST_DATABASE_URL.startswith("sqlite:///"):
        db_path = TEST_DATABASE_URL[len("sqlite:///"):]
        for suffix in ("", "-wal", "-shm"):
            Path(db_path + suffix).unlink(missing_ok=True)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Provide a database session for a test.

    All rows written during the test are deleted afterwards.
    """
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def session_factory(db_session) -> sessionmaker:
    """
    Session factory for tests that need one session per thread.

    Depends on db_session so that rows written through these sessions are
    cleaned up as well.
    """
    return SessionLocal


@pytest.fixture
def event_port() -> RecordingEventPort:
    return RecordingEventPort()


@pytest.fixture
def booking_engine(event_port) -> BookingEngine:
    return BookingEngine(event_port=event_port)


@pytest.fixture
def lifecycle(event_port) -> LifecycleManager:
    return LifecycleManager(event_port=event_port)

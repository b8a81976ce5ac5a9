# pyright: reportMissingTypeStubs=false
"""
Database configuration and session management.

This module sets up the SQLAlchemy engine, session management and the
declarative Base shared by all scheduling models.

Booking correctness depends on the store serialising competing
check-and-insert transactions. On PostgreSQL this comes from row locks
(``SELECT ... FOR UPDATE``) plus the partial unique index on active slots.
SQLite ignores ``FOR UPDATE``, so write paths start their transaction with
``BEGIN IMMEDIATE`` (see ``begin_write``), taking the database write lock up
front. Reads use a deferred ``BEGIN`` and SQLite databases run in WAL mode, so
an open read transaction never holds up a writer.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from clinic_scheduling.core.config import DATABASE_URL, SQLITE_BUSY_TIMEOUT_SECONDS
from clinic_scheduling.core.constants import DB_POOL_RECYCLE_SECONDS

logger = logging.getLogger(__name__)

# Execution option marking a connection whose transaction will write
WRITE_TRANSACTION_OPTION = "clinic_write_transaction"


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    """
    Create an engine configured for the scheduling engine's locking model.

    Args:
        database_url: SQLAlchemy database URL
        **kwargs: Extra keyword arguments passed to create_engine

    Returns:
        Configured SQLAlchemy Engine
    """
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", SQLITE_BUSY_TIMEOUT_SECONDS)
        sqlite_engine = create_engine(database_url, connect_args=connect_args, **kwargs)

        @event.listens_for(sqlite_engine, "connect")
        def _configure_sqlite_connection(dbapi_connection, connection_record):  # type: ignore
            # Let SQLAlchemy emit BEGIN itself instead of the driver
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(sqlite_engine, "begin")
        def _begin(conn):  # type: ignore
            if conn.get_execution_options().get(WRITE_TRANSACTION_OPTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

        return sqlite_engine

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=DB_POOL_RECYCLE_SECONDS,
        **kwargs,
    )


# Create SQLAlchemy engine with optimized settings
engine = build_engine(DATABASE_URL, echo=False)

# Create configured SessionLocal class
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Don't expire objects after commit
)


# Create Base class for declarative models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert."""
    # Import here to avoid circular import
    from clinic_scheduling.utils.datetime_utils import utc_now
    now = utc_now()
    for column_name in ("created_at", "updated_at"):
        if column_name in mapper.columns and getattr(target, column_name, None) is None:  # type: ignore
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def receive_before_update(mapper, connection, target):  # type: ignore
    """Set updated_at on update."""
    from clinic_scheduling.utils.datetime_utils import utc_now
    if "updated_at" in mapper.columns:  # type: ignore
        setattr(target, "updated_at", utc_now())


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception and always closes
    the session.

    Yields:
        Session: SQLAlchemy database session

    Example:
        ```python
        with get_db_context() as db:
            slots = SlotGenerator.generate_slots(db, doctor_id, date(2025, 6, 2))
        ```
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"Database transaction failed: {e}")
        raise
    except Exception:
        # Business errors are expected outcomes; roll back without logging them as failures
        db.rollback()
        raise
    finally:
        db.close()


def begin_write(db: Session) -> None:
    """
    Start the session's transaction as a write transaction.

    On SQLite this opens the transaction with ``BEGIN IMMEDIATE`` so competing
    writers queue on the database lock instead of failing a lock upgrade
    halfway through. A session already inside a transaction keeps it. On
    other backends this only checks out the connection.

    Args:
        db: Database session about to check and write
    """
    if not db.in_transaction():
        db.connection(execution_options={WRITE_TRANSACTION_OPTION: True})


def create_tables() -> None:
    """
    Create all database tables defined in SQLAlchemy models.

    Note:
        In production, prefer the Alembic migrations instead of this function.
    """
    # Import models so every table is registered on Base.metadata
    import clinic_scheduling.models  # noqa: F401
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to create database tables: {e}")
        raise


def drop_tables() -> None:
    """
    Drop all database tables defined in SQLAlchemy models.

    WARNING: This will permanently delete all data in the tables!
    """
    import clinic_scheduling.models  # noqa: F401
    try:
        Base.metadata.drop_all(bind=engine)
        logger.info("Database tables dropped successfully")
    except SQLAlchemyError as e:
        logger.exception(f"Failed to drop database tables: {e}")
        raise

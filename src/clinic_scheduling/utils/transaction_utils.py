"""
Retry helpers for transactions that lose a race against a concurrent writer.

Booking and rescheduling run their checks and writes inside a single
transaction. When the store aborts one of two competing transactions
(serialization failure, deadlock, lock not available, SQLite busy), the
losing call is retried from the start with exponential backoff. Retries are
bounded: once exhausted, the storage error propagates to the caller.
"""

import functools
import logging
import time
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# PostgreSQL SQLSTATE codes worth retrying
TRANSIENT_PGCODES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
}

TRANSIENT_SQLITE_MESSAGES = ("database is locked", "database table is locked")


def is_transient_failure(error: OperationalError) -> bool:
    """
    Check whether an OperationalError is a transient transaction conflict.

    Args:
        error: Error raised by SQLAlchemy

    Returns:
        True if retrying the whole transaction may succeed
    """
    orig = getattr(error, "orig", None)
    pgcode = getattr(orig, "pgcode", None)
    if pgcode in TRANSIENT_PGCODES:
        return True
    message = str(orig if orig is not None else error).lower()
    return any(fragment in message for fragment in TRANSIENT_SQLITE_MESSAGES)


def retry_on_transient_failure(max_retries: int = 3, base_delay: float = 0.05) -> Callable[[F], F]:
    """
    Decorator to retry an operation that failed on a transient transaction conflict.

    The decorated function must roll back its session before the error
    escapes, so that the retried attempt starts a fresh transaction.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (exponential backoff)
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    if attempt < max_retries and is_transient_failure(e):
                        delay = base_delay * (2 ** attempt)
                        logger.warning(
                            f"Transient conflict in {func.__name__} (attempt {attempt + 1}/{max_retries + 1}), "
                            f"retrying in {delay:.2f} seconds: {e}"
                        )
                        time.sleep(delay)
                        continue
                    raise
            # Loop always returns or raises
            raise AssertionError("unreachable")
        return wrapper  # type: ignore[return-value]
    return decorator

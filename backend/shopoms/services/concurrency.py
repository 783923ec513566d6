# Overview: Store access wrappers; bounded read retries and fail-fast writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, DBAPIError, TimeoutError as PoolTimeoutError

from ..extensions import db


# Driver-level failures that mean "the store is unreachable or too slow",
# as opposed to a bad query or a constraint violation.
STORE_FAILURES = (OperationalError, PoolTimeoutError)


class ServiceUnavailable(Exception):
    """Raised when the store cannot serve a request within its timeout."""


def _is_store_failure(exc: Exception) -> bool:
    if isinstance(exc, STORE_FAILURES):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def run_read(func, *, attempts: int | None = None, backoff_base: float = 0.05):
    """
    Execute an idempotent read with bounded retry on store failures.

    After `attempts` failures the last error is surfaced as ServiceUnavailable.
    """
    if attempts is None:
        attempts = current_app.config.get("STORE_READ_RETRIES", 3)

    for attempt in range(attempts):
        try:
            return func()
        except (DBAPIError, PoolTimeoutError) as exc:
            db.session.rollback()
            if not _is_store_failure(exc):
                raise
            current_app.logger.warning(
                "Store read failed (attempt %d/%d): %s", attempt + 1, attempts, exc.__class__.__name__
            )
            if attempt >= attempts - 1:
                raise ServiceUnavailable("Store unavailable") from exc
            time.sleep(backoff_base * (2 ** attempt))


def run_write(func):
    """
    Execute a write exactly once.

    Writes are never retried: a timed-out order submission may already be
    committed, and a retry would record it twice.
    """
    try:
        return func()
    except (DBAPIError, PoolTimeoutError) as exc:
        db.session.rollback()
        if not _is_store_failure(exc):
            raise
        current_app.logger.error("Store write failed: %s", exc.__class__.__name__)
        raise ServiceUnavailable("Store unavailable") from exc

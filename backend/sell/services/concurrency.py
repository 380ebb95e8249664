# Overview: Service-layer helpers for row locking, retries and atomic units of work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import PersistenceError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id columns catch concurrent writers there instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as one unit of work: commit on success, roll back on any error.

    Lock conflicts are retried; anything the database still rejects is
    surfaced as PersistenceError with nothing persisted.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("Storage failure", details={"reason": exc.__class__.__name__}) from exc
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except (OperationalError, StaleDataError) as exc:
        raise PersistenceError(
            "Concurrent update conflict",
            details={"reason": exc.__class__.__name__},
        ) from exc

# Overview: Transaction, retry, and row-locking helpers shared by every writer.

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


def lock_for_update(query):
    """
    Apply row-level locking for check-then-act sections.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (its writers are already
    serialized by the database lock), PostgreSQL and MySQL honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Run func() as one atomic unit of work and commit.

    Any exception rolls back everything func() flushed, so partial writes
    are never observable. Unique/check violations surface as ConflictError.
    """
    try:
        result = func()
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Record conflicts with existing data") from exc
    except Exception:
        db.session.rollback()
        raise
    return result


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to run again from
    scratch, i.e. it re-reads everything it depends on.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))

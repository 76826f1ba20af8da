# Overview: Locking, write-transaction and retry helpers shared by the services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError
from ..extensions import db


def is_sqlite() -> bool:
    return db.session.get_bind().dialect.name == "sqlite"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the current transaction as a writer.

    On SQLite the database lock is taken up front with BEGIN IMMEDIATE so a
    lock-then-check sequence is serialized against other writers the way
    SELECT ... FOR UPDATE serializes it on Postgres. No-op elsewhere, and
    no-op when the connection already holds an open transaction.
    """
    if not is_sqlite():
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if dbapi_conn.in_transaction:
        return
    db.session.execute(text("BEGIN IMMEDIATE"))


def supports_update_returning() -> bool:
    return bool(getattr(db.session.get_bind().dialect, "update_returning", False))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locked database) and
    StaleDataError (optimistic locking conflicts). Domain errors and
    IntegrityError propagate immediately after rollback.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Giving up after %d attempts: %s", attempts, exc)
                raise StorageError("Storage is busy, please retry") from exc
            current_app.logger.warning("Retrying after concurrency failure (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise


# Overview: Service-layer operations for concurrency; the exclusive write scope every ledger mutation runs in.

from __future__ import annotations

import threading
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError, StorageError
from ..extensions import db


# Serializes writers inside this process. SQLite's BEGIN IMMEDIATE covers
# writers in other processes.
_write_lock = threading.RLock()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    populate_existing() refreshes rows already in the identity map, so a
    locked read never validates against values loaded before the lock.
    """
    return query.with_for_update().populate_existing()


def _begin_immediate() -> None:
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    # Pending writes already opened a transaction; join it instead of failing.
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def exclusive_scope():
    """
    Run a read-validate-write sequence atomically.

    Commits on success. On any exception the whole session transaction is
    rolled back, so a failed multi-item operation leaves nothing behind.
    SQLAlchemy failures are re-raised as StorageError; nothing is retried here.
    """
    with _write_lock:
        try:
            _begin_immediate()
            # Rows loaded before the lock may be stale; reload them on next access
            db.session.expire_all()
            yield db.session
            db.session.commit()
        except LedgerError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(
                "Storage failure; no changes were applied",
                details={"cause": exc.__class__.__name__},
            ) from exc
        except Exception:
            db.session.rollback()
            raise

"""SQLite connection management for the ledger."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from ..utils.config_loader import config_loader

DEFAULT_DB_PATH = Path.home() / ".carbonledger" / "ledger.db"


def get_db_path() -> str:
    """Resolve the database file from CCL_DB_PATH (read on every call)."""
    raw = (os.getenv("CCL_DB_PATH") or "").strip()
    return os.path.expanduser(raw) if raw else str(DEFAULT_DB_PATH)


@contextmanager
def get_db_connection():
    """
    Yields a SQLite connection in autocommit mode.
    Transactions are opened explicitly, usually through ``transaction``.
    Usage:
        with get_db_connection() as conn:
            conn.execute("...")
    """
    path = get_db_path()
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    # The busy timeout is the only retry: waiting for another writer's lock.
    timeout = config_loader.get().storage.busy_timeout_seconds
    conn = sqlite3.connect(path, timeout=timeout, isolation_level=None, check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn, *, write: bool = True):
    """Run a block inside one transaction; commit on success, roll back on any error.

    ``write=True`` takes the database write lock up front (BEGIN IMMEDIATE),
    which serializes every mutation against all other writers. Read blocks use
    a deferred transaction so multi-statement reads see one snapshot.
    """
    conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()

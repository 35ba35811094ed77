"""Unit of Work: atomic multi-statement writes on a single transaction.

:class:`Database` helpers each acquire their own connection from the
pool, so a read followed by a write is not atomic.  This wrapper
provides explicit transaction control for operations that must check
one table and write another, such as the status-gated milestone upsert.

Usage::

    from atelier.db import UnitOfWork

    with UnitOfWork(db) as uow:
        row = uow.fetch_one("SELECT ... FOR SHARE", (...))
        uow.fetch_one("INSERT ... RETURNING *", (...))
        # COMMIT on clean exit; ROLLBACK on exception
"""

from __future__ import annotations

from typing import Any, Self

from psycopg.rows import dict_row
from pypgkit import Database


class UnitOfWork:
    """Transaction-scoped helper for multi-table atomic writes.

    Wraps :meth:`Database.transaction` and exposes low-level SQL helpers
    that all operate on the **same connection** within a single
    transaction.
    """

    def __init__(self, database: Database | None = None) -> None:
        self._db = database or Database.get_instance()
        self._conn = None

    # -- context manager -----------------------------------------------------

    def __enter__(self) -> Self:
        self._tx = self._db.transaction()
        self._conn = self._tx.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._tx.__exit__(exc_type, exc_val, exc_tb)
        self._conn = None

    # -- helpers -------------------------------------------------------------

    def execute(self, sql: str, params: tuple | list | None = None) -> int:
        """Execute arbitrary SQL and return the rowcount."""
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def fetch_one(
        self,
        sql: str,
        params: tuple | list | None = None,
    ) -> dict[str, Any] | None:
        """Execute a query and return the first row as a dict, or None."""
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        with self._conn.cursor(row_factory=dict_row) as cur:
            cur.execute(sql, params)
            return cur.fetchone()

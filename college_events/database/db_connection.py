"""
PostgreSQL connection pool.
Provides Database (a bounded pool) and get_db() for use by services.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from flask import current_app
from psycopg2.extras import DictCursor
from psycopg2.pool import PoolError, ThreadedConnectionPool

from college_events.config import Settings


class Database:
    """
    A bounded pool of reusable PostgreSQL connections.

    The underlying pool is opened lazily, so building an app (for example in
    tests) never touches the network. Callers that find every connection in
    use wait up to ``acquire_timeout`` seconds before failing.
    """

    def __init__(
        self,
        dsn: str,
        minconn: int = 1,
        maxconn: int = 10,
        connect_timeout: int = 5,
        statement_timeout_ms: int = 15000,
        acquire_timeout: float = 30,
    ):
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.connect_timeout = connect_timeout
        self.statement_timeout_ms = statement_timeout_ms
        self.acquire_timeout = acquire_timeout

        self._pool: Optional[ThreadedConnectionPool] = None
        self._pool_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(maxconn)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            minconn=settings.db_pool_min,
            maxconn=settings.db_pool_max,
            connect_timeout=settings.db_connect_timeout,
            statement_timeout_ms=settings.db_statement_timeout_ms,
            acquire_timeout=settings.db_acquire_timeout,
        )

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._pool_lock:
            if self._pool is None:
                logging.info(f"[DB] Opening connection pool (max {self.maxconn} connections)")
                # Rows come back as DictRow, e.g. row["user_id"] or dict(row).
                self._pool = ThreadedConnectionPool(
                    self.minconn,
                    self.maxconn,
                    self.dsn,
                    connect_timeout=self.connect_timeout,
                    options=f"-c statement_timeout={self.statement_timeout_ms}",
                    cursor_factory=DictCursor,
                )
            return self._pool

    @contextmanager
    def connection(self) -> Iterator[psycopg2.extensions.connection]:
        """
        Borrow a connection for one unit of work.

        Usage:
            with db.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(...)

        Commits when the block exits normally and rolls back if it raises.
        The connection always goes back to the pool.

        Raises:
            PoolError: No connection became free within acquire_timeout.
            psycopg2.Error: Connecting or committing failed.
        """
        if not self._slots.acquire(timeout=self.acquire_timeout):
            raise PoolError("timed out waiting for a database connection")

        try:
            pool = self._get_pool()
            conn = pool.getconn()
            try:
                yield conn
                conn.commit()
            except BaseException:
                if not conn.closed:
                    conn.rollback()
                raise
            finally:
                pool.putconn(conn, close=bool(conn.closed))
        finally:
            self._slots.release()

    def close(self) -> None:
        """Close every pooled connection."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
                logging.info("[DB] Connection pool closed")


def get_db():
    """
    Borrow a connection from the current app's pool.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)
    """
    database: Database = current_app.extensions["college_events.db"]
    return database.connection()

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PGConn
from psycopg2.pool import SimpleConnectionPool


class Database:
    """
    PostgreSQL connection pool with transactional checkout.

    Built once at startup (see app/container.py) and shared by reference.
    """

    def __init__(
        self,
        dsn: str,
        *,
        minconn: int = 1,
        maxconn: int = 10,
        statement_timeout_ms: int = 5000,
        application_name: str = "partner_payouts",
    ):
        self.dsn = dsn
        self.minconn = minconn
        self.maxconn = maxconn
        self.statement_timeout_ms = statement_timeout_ms
        self.application_name = application_name
        self._pool: Optional[SimpleConnectionPool] = None

    def open(self) -> None:
        """
        Initialize the connection pool. Safe to call more than once.
        """
        psycopg2.extras.register_uuid()
        if self._pool is None:
            self._pool = SimpleConnectionPool(
                minconn=self.minconn,
                maxconn=self.maxconn,
                dsn=self.dsn,
                connect_timeout=5,
            )

    def close(self) -> None:
        """
        Gracefully close all pooled connections.
        """
        if self._pool:
            self._pool.closeall()
            self._pool = None

    @contextmanager
    def connection(self) -> Iterator[PGConn]:
        """
        Provides a transactional DB connection.
        Commits on success, rolls back on error.
        """
        if self._pool is None:
            self.open()

        conn = self._pool.getconn()

        try:
            # never allow long-running queries or idle transactions
            with conn.cursor() as cur:
                cur.execute("SET statement_timeout = %s;", (f"{self.statement_timeout_ms}ms",))
                cur.execute("SET idle_in_transaction_session_timeout = %s;", (f"{self.statement_timeout_ms}ms",))
                cur.execute("SET application_name = %s;", (self.application_name,))

            yield conn
            conn.commit()

        except Exception:
            conn.rollback()
            raise

        finally:
            self._pool.putconn(conn)

    def ping(self) -> tuple[bool, str | None]:
        try:
            with self.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1;")
                    cur.fetchone()
            return True, None
        except psycopg2.Error as exc:
            return False, f"{type(exc).__name__}: {exc}"

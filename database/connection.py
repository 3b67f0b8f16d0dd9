#!/usr/bin/env python3
"""
Database connection manager for the script indexer.
Provides a reusable context manager for PostgreSQL (pgvector) connections
and parameterized statement execution.
"""

import logging
from typing import Any, List, Optional, Sequence

import psycopg2

from core.errors import StoreError
from core.sql_validator import validate_statement

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Context manager for PostgreSQL database connections.

    Usage:
        with DatabaseConnection(url, token) as db:
            rows = db.execute("SELECT path FROM scripts WHERE category = %s", ("audio",))
    """

    def __init__(self, url: str, auth_token: str, connect_timeout: int = 10,
                 statement_timeout_ms: int = 30000):
        """
        Initialize the connection manager. No network I/O happens here.

        Args:
            url: libpq connection string or postgresql:// URI.
            auth_token: Password / token for the database role.
            connect_timeout: Seconds to wait for the TCP/TLS handshake.
            statement_timeout_ms: Server-side limit for a single statement.
        """
        if not url or not url.strip():
            raise ValueError("Invalid URL: URL cannot be empty")
        if not auth_token or not auth_token.strip():
            raise ValueError("Invalid auth token: auth token cannot be empty")

        self.url = url
        self.auth_token = auth_token
        self.connect_timeout = connect_timeout
        self.statement_timeout_ms = statement_timeout_ms
        self.connection = None

    @classmethod
    def from_settings(cls, settings) -> "DatabaseConnection":
        """Create a connection manager from a Settings instance."""
        return cls(
            settings.database_url,
            settings.database_auth_token,
            connect_timeout=settings.db_connect_timeout,
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    @property
    def is_healthy(self) -> bool:
        """True while the session is open and usable."""
        return self.connection is not None and self.connection.closed == 0

    def connect(self):
        """
        Establish database connection.

        Raises:
            StoreError: If the connection cannot be established. Not retried.
        """
        if self.connection is not None:
            return self.connection
        try:
            self.connection = psycopg2.connect(
                self.url,
                password=self.auth_token,
                connect_timeout=self.connect_timeout,
                options=f"-c statement_timeout={self.statement_timeout_ms}",
            )
            logger.info("Database connection established")
            return self.connection
        except psycopg2.Error as e:
            logger.error(f"Error connecting to database: {e}")
            raise StoreError(f"Failed to connect to database: {e}", cause=e) from e

    def close(self):
        """Close database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.debug("Database connection closed")

    disconnect = close

    def execute(self, statement: str, params: Optional[Sequence[Any]] = None) -> List[tuple]:
        """
        Execute a single parameterized statement and commit.

        Args:
            statement: SQL with %s placeholders. Values must never be
                formatted into the statement text.
            params: Values bound to the placeholders.

        Returns:
            Result rows as tuples (empty list for statements without a result set).

        Raises:
            StoreError: If not connected, the statement is rejected by the
                validator, or the database reports an error.
        """
        if self.connection is None:
            raise StoreError("Not connected to database")

        is_valid, error = validate_statement(statement, params)
        if not is_valid:
            raise StoreError(f"Rejected SQL statement: {error}")

        cursor = self.connection.cursor()
        try:
            cursor.execute(statement, tuple(params) if params is not None else None)
            rows = cursor.fetchall() if cursor.description is not None else []
            self.connection.commit()
            return rows
        except psycopg2.Error as e:
            logger.error(f"Error executing statement: {e}")
            if self.connection.closed == 0:
                try:
                    self.connection.rollback()
                except psycopg2.Error as rollback_error:
                    logger.error(f"Rollback failed: {rollback_error}")
            raise StoreError(f"Statement failed: {e}", cause=e) from e
        finally:
            cursor.close()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.connection and self.connection.closed == 0:
            self.connection.rollback()
        self.close()
        return False

"""Unit tests for the PostgreSQL connection manager (psycopg2 mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from core.errors import StoreError
from database.connection import DatabaseConnection

DSN = "postgresql://indexer@db.example.com:5432/scripts"


def make_mock_connection(rows: list[tuple] | None = None, description: bool = True) -> MagicMock:
    cursor = MagicMock()
    cursor.description = [("col",)] if description else None
    cursor.fetchall.return_value = rows or []
    connection = MagicMock()
    connection.closed = 0
    connection.cursor.return_value = cursor
    return connection


class TestConstruction:
    def test_rejects_empty_url(self) -> None:
        with pytest.raises(ValueError, match="URL"):
            DatabaseConnection("", "token")

    def test_rejects_empty_token(self) -> None:
        with pytest.raises(ValueError, match="auth token"):
            DatabaseConnection(DSN, " ")

    def test_no_io_on_construction(self) -> None:
        with patch("database.connection.psycopg2.connect") as connect:
            db = DatabaseConnection(DSN, "token")
        connect.assert_not_called()
        assert not db.is_connected


class TestConnect:
    def test_passes_token_and_timeouts(self) -> None:
        with patch("database.connection.psycopg2.connect", return_value=make_mock_connection()) as connect:
            db = DatabaseConnection(DSN, "secret", connect_timeout=3, statement_timeout_ms=5000)
            db.connect()

        connect.assert_called_once_with(
            DSN,
            password="secret",
            connect_timeout=3,
            options="-c statement_timeout=5000",
        )
        assert db.is_connected
        assert db.is_healthy

    def test_failure_raises_store_error(self) -> None:
        with patch("database.connection.psycopg2.connect",
                   side_effect=psycopg2.OperationalError("could not connect")) as connect:
            db = DatabaseConnection(DSN, "secret")
            with pytest.raises(StoreError, match="Failed to connect"):
                db.connect()
        assert connect.call_count == 1
        assert not db.is_connected

    def test_close_is_idempotent(self) -> None:
        connection = make_mock_connection()
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()
        db.disconnect()
        db.close()
        connection.close.assert_called_once()
        assert not db.is_connected


class TestExecute:
    def test_requires_connection(self) -> None:
        with pytest.raises(StoreError, match="Not connected"):
            DatabaseConnection(DSN, "secret").execute("SELECT 1")

    def test_returns_rows_and_commits(self) -> None:
        connection = make_mock_connection(rows=[("audio", 3)])
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()

        rows = db.execute("SELECT category, COUNT(*) FROM scripts WHERE category = %s GROUP BY category", ["audio"])

        assert rows == [("audio", 3)]
        cursor = connection.cursor.return_value
        cursor.execute.assert_called_once()
        assert cursor.execute.call_args.args[1] == ("audio",)
        connection.commit.assert_called_once()
        cursor.close.assert_called_once()

    def test_statement_without_result_set(self) -> None:
        connection = make_mock_connection(description=False)
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()

        assert db.execute("CREATE EXTENSION IF NOT EXISTS vector") == []
        connection.cursor.return_value.fetchall.assert_not_called()

    def test_rejected_statement_never_reaches_server(self) -> None:
        connection = make_mock_connection()
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()

        with pytest.raises(StoreError, match="Rejected"):
            db.execute("DELETE FROM scripts WHERE path = %s")
        connection.cursor.assert_not_called()

    def test_database_error_rolls_back(self) -> None:
        connection = make_mock_connection()
        connection.cursor.return_value.execute.side_effect = psycopg2.errors.QueryCanceled("timeout")
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()

        with pytest.raises(StoreError, match="Statement failed") as exc_info:
            db.execute("SELECT pg_sleep(%s)", (60,))

        assert isinstance(exc_info.value.cause, psycopg2.Error)
        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()
        assert db.is_healthy


class TestContextManager:
    def test_closes_on_exit(self) -> None:
        connection = make_mock_connection()
        with patch("database.connection.psycopg2.connect", return_value=connection):
            with DatabaseConnection(DSN, "secret") as db:
                assert db.is_connected
        connection.close.assert_called_once()

    def test_rolls_back_on_error(self) -> None:
        connection = make_mock_connection()
        with patch("database.connection.psycopg2.connect", return_value=connection):
            with pytest.raises(RuntimeError):
                with DatabaseConnection(DSN, "secret"):
                    raise RuntimeError("boom")
        connection.rollback.assert_called_once()
        connection.close.assert_called_once()


class TestRollbackFailure:
    def test_failed_rollback_still_raises_store_error(self) -> None:
        connection = make_mock_connection()
        connection.cursor.return_value.execute.side_effect = psycopg2.OperationalError("server closed")
        connection.rollback.side_effect = psycopg2.InterfaceError("connection already closed")
        with patch("database.connection.psycopg2.connect", return_value=connection):
            db = DatabaseConnection(DSN, "secret")
            db.connect()

        with pytest.raises(StoreError, match="Statement failed") as exc_info:
            db.execute("SELECT 1")

        assert isinstance(exc_info.value.cause, psycopg2.OperationalError)
        connection.rollback.assert_called_once()

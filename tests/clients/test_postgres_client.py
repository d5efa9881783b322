"""Tests for PostgresClient - pooled psycopg2 access, with the pool mocked out."""

from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from clients.postgres_client import PostgresClient

DB_URL = "postgresql://billing@localhost/billing_test"


@pytest.fixture
def connection():
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.description = [("num",)]
    cursor.fetchall.return_value = [{"num": 1}]
    return conn


@pytest.fixture
def pool(connection):
    pool = MagicMock()
    pool.getconn.return_value = connection
    return pool


@pytest.fixture
def db(pool):
    PostgresClient.close_all_pools()
    with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool", return_value=pool), \
            patch("clients.postgres_client.psycopg2.extras.register_default_jsonb"), \
            patch("clients.postgres_client.psycopg2.extras.register_uuid"):
        client = PostgresClient(DB_URL)
    yield client
    PostgresClient._connection_pools.clear()


class TestPostgresClientInit:
    """Connection pool initialization."""

    def test_pool_shared_per_url(self, db, pool):
        assert PostgresClient._connection_pools[DB_URL] is pool
        # A second instance for the same URL reuses the pool without creating one
        with patch("clients.postgres_client.psycopg2.pool.ThreadedConnectionPool") as factory:
            PostgresClient(DB_URL)
        factory.assert_not_called()


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_list_of_dicts(self, db, connection):
        assert db.execute("SELECT 1 AS num") == [{"num": 1}]
        connection.commit.assert_called_once()

    def test_execute_without_result_set_returns_empty_list(self, db, connection):
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.description = None

        assert db.execute("UPDATE invoices SET notes = NULL") == []

    def test_execute_single_returns_first_row(self, db):
        assert db.execute_single("SELECT 1 AS num") == {"num": 1}

    def test_execute_single_no_rows_returns_none(self, db, connection):
        connection.cursor.return_value.__enter__.return_value.fetchall.return_value = []
        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_returning(self, db, connection):
        assert db.execute_returning("INSERT ... RETURNING *") == [{"num": 1}]
        connection.commit.assert_called_once()

    def test_params_passed_to_driver_unchanged(self, db, connection):
        invoice_id = uuid4()

        db.execute("SELECT * FROM invoices WHERE id = %s", (invoice_id,))

        cursor = connection.cursor.return_value.__enter__.return_value
        assert cursor.execute.call_args.args == ("SELECT * FROM invoices WHERE id = %s", (invoice_id,))


class TestConnectionHandling:

    def test_connection_returned_to_pool(self, db, pool, connection):
        db.execute("SELECT 1")
        pool.putconn.assert_called_once_with(connection)

    def test_failed_statement_rolls_back_and_returns_connection(self, db, pool, connection):
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.execute.side_effect = RuntimeError("syntax error")

        with pytest.raises(RuntimeError, match="syntax error"):
            db.execute("SELEC 1")

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()
        pool.putconn.assert_called_once_with(connection)

    def test_exhausted_pool_raises(self, db, pool):
        pool.getconn.return_value = None

        with pytest.raises(RuntimeError, match="connection"):
            db.execute("SELECT 1")


class TestClose:

    def test_close_removes_pool(self, db, pool):
        db.close()

        pool.closeall.assert_called_once()
        assert DB_URL not in PostgresClient._connection_pools

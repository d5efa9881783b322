"""
Pooled PostgreSQL access for the billing repositories.

One psycopg2 ThreadedConnectionPool per database URL, shared by every
PostgresClient built for that URL. Rows come back as plain dicts; JSONB
columns arrive decoded and UUID columns as uuid.UUID. A failed statement
rolls its connection back before the connection returns to the pool.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Tuple

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None

_adapters_registered = False


def _register_adapters() -> None:
    """JSONB decoding and UUID adaptation, once per process."""
    global _adapters_registered
    if not _adapters_registered:
        psycopg2.extras.register_default_jsonb(globally=True)
        psycopg2.extras.register_uuid()
        _adapters_registered = True


class PostgresClient:
    """
    Query helper over a shared connection pool.

    Usage:
        db = PostgresClient(database_url)

        overdue = db.execute("SELECT * FROM invoices WHERE status = %s", ("overdue",))
        invoice = db.execute_single("SELECT * FROM invoices WHERE id = %s", (invoice_id,))
        created = db.execute_returning("INSERT INTO payments ... RETURNING *", params)[0]
    """

    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._pools_lock:
            pool = self._connection_pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=30,
                )
                _register_adapters()
                self._connection_pools[self._database_url] = pool
                logger.info(
                    f"Connection pool created ({self._min_connections}-{self._max_connections} connections)"
                )
            return pool

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection; roll back if the block raises."""
        pool = self._pool()
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")

        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def _run(self, query: str, params: Params) -> List[Dict[str, Any]]:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
            conn.commit()
        return rows

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Run one statement and commit. Rows as dicts; [] when there is no result set."""
        return self._run(query, params)

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        rows = self._run(query, params)
        return rows[0] if rows else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """INSERT/UPDATE ... RETURNING. An empty list means nothing matched."""
        return self._run(query, params)

    def close(self) -> None:
        """Close this URL's pool."""
        with self._pools_lock:
            pool = self._connection_pools.pop(self._database_url, None)
            if pool is not None:
                pool.closeall()

    @classmethod
    def close_all_pools(cls) -> None:
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()

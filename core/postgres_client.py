"""
PostgreSQL Client Wrapper

Thin wrapper around an asyncpg pool exposing the query / query_row / execute
surface the repositories are written against, plus transaction() for units of
work that must commit or roll back together.

Usage:
    from core.postgres_client import create_postgres_client

    db = create_postgres_client("checkout_service")
    await db.connect()

    rows = await db.query("SELECT * FROM market.orders WHERE user_id = $1", [user_id])

    async with db.transaction() as tx:
        await tx.execute("UPDATE ...", [...])
"""

import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import asyncpg

from core.config import InfraConfig

logger = logging.getLogger(__name__)

_ROWCOUNT_RE = re.compile(r"(\d+)$")


def affected_rows(status: Optional[str]) -> int:
    """Parse the row count out of an asyncpg command status ("UPDATE 3")."""
    if not status:
        return 0
    match = _ROWCOUNT_RE.search(status.strip())
    return int(match.group(1)) if match else 0


class PostgresConnection:
    """Query surface bound to a single connection (inside a transaction)."""

    def __init__(self, connection: asyncpg.Connection):
        self._conn = connection

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        rows = await self._conn.fetch(sql, *(params or []))
        return [dict(r) for r in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        row = await self._conn.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute a statement and return the number of affected rows"""
        status = await self._conn.execute(sql, *(params or []))
        return affected_rows(status)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["PostgresConnection"]:
        # Nested transactions become savepoints
        async with self._conn.transaction():
            yield self


class PostgresClient:
    """
    PostgreSQL client backed by an asyncpg connection pool.

    Statements outside transaction() run on a pooled connection in autocommit
    mode, so every single conditional UPDATE is atomic on its own.
    """

    def __init__(
        self,
        service_name: str,
        host: str = "localhost",
        port: int = 5432,
        database: str = "postgres",
        username: str = "postgres",
        password: str = "",
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: Optional[float] = None,
        connect_timeout: float = 60.0,
    ):
        self.service_name = service_name
        self.host = host
        self.port = port
        self.database = database
        self.username = username
        self.password = password
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.connect_timeout = connect_timeout
        self._pool: Optional[asyncpg.Pool] = None

        logger.info(f"PostgreSQL client initialized for {service_name}: {host}:{port}/{database}")

    async def connect(self):
        """Create the connection pool"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            timeout=self.connect_timeout,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name}")

    async def close(self):
        """Close the connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgresClient is not connected; call connect() first")
        return self._pool

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        rows = await self.pool.fetch(sql, *(params or []))
        return [dict(r) for r in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        row = await self.pool.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute SQL statement and return the number of affected rows"""
        status = await self.pool.execute(sql, *(params or []))
        return affected_rows(status)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresConnection]:
        """Run a block on one connection inside BEGIN/COMMIT (ROLLBACK on error)"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield PostgresConnection(conn)

    async def health_check(self) -> Dict[str, Any]:
        """Check database health"""
        try:
            value = await self.pool.fetchval("SELECT 1")
            return {"healthy": value == 1}
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return {"healthy": False, "error": str(e)}

    async def run_migrations(self, paths: Iterable[Path]):
        """Apply SQL migration files in order"""
        async with self.pool.acquire() as conn:
            for path in paths:
                logger.info(f"Applying migration {path.name}")
                await conn.execute(path.read_text(encoding="utf-8"))


def create_postgres_client(
    service_name: str,
    config: Optional[InfraConfig] = None,
) -> PostgresClient:
    """
    Build a PostgresClient from infrastructure config.

    Args:
        service_name: Service name (used for logging)
        config: InfraConfig, loaded from environment when omitted

    Returns:
        Unconnected PostgresClient; call connect() before use
    """
    config = config or InfraConfig.from_env()
    return PostgresClient(
        service_name=service_name,
        host=config.postgres_host,
        port=config.postgres_port,
        database=config.postgres_db,
        username=config.postgres_user,
        password=config.postgres_password,
        min_size=config.postgres_min_pool,
        max_size=config.postgres_max_pool,
        command_timeout=config.postgres_command_timeout,
        connect_timeout=config.postgres_connect_timeout,
    )


__all__ = ["PostgresClient", "PostgresConnection", "create_postgres_client", "affected_rows"]

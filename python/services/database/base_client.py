"""Base client with connection pool management."""

from contextlib import asynccontextmanager
from typing import List, Dict, Optional, Any, AsyncIterator

import asyncpg

from core.config import settings
from core.exceptions import DatabaseError
from core.logging import get_logger
from services.database.schema import SCHEMA_SQL

logger = get_logger(__name__)


class BaseClient:
    """
    Base database client with connection pooling.

    Every query helper takes an optional ``conn``. Passing the connection
    yielded by ``transaction()`` makes the query part of that transaction;
    leaving it out runs the query on its own pooled connection.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.pool: Optional[asyncpg.Pool] = None
        self.database_url = database_url or settings.database_url

        if not self.database_url:
            raise ValueError("DATABASE_URL is required")

    async def connect(self):
        """Initialize connection pool"""
        if not self.pool:
            self.pool = await asyncpg.create_pool(
                self.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
            logger.info("[PostgresClient] Connection pool initialized")

    async def disconnect(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("[PostgresClient] Connection pool closed")

    async def ensure_schema(self):
        """Create tables and indexes if they do not exist."""
        await self.execute(SCHEMA_SQL)
        logger.info("[PostgresClient] Schema ensured")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Open a transaction and yield its connection.

        Usage:
            async with db.transaction() as conn:
                await db.create_person("Ann", conn=conn)
        """
        await self.connect()
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    @asynccontextmanager
    async def _acquire(self, conn: Optional[asyncpg.Connection]):
        if conn is not None:
            yield conn
            return
        await self.connect()
        async with self.pool.acquire() as pooled:
            yield pooled

    async def execute(self, query: str, *args, conn=None) -> str:
        """Execute INSERT/UPDATE/DELETE query, returning the status tag"""
        try:
            async with self._acquire(conn) as c:
                return await c.execute(query, *args)
        except asyncpg.PostgresError as e:
            raise DatabaseError(str(e), operation="execute") from e

    async def fetch(self, query: str, *args, conn=None) -> List[Dict[str, Any]]:
        """Fetch multiple rows"""
        try:
            async with self._acquire(conn) as c:
                rows = await c.fetch(query, *args)
                return [dict(row) for row in rows]
        except asyncpg.PostgresError as e:
            raise DatabaseError(str(e), operation="fetch") from e

    async def fetchone(self, query: str, *args, conn=None) -> Optional[Dict[str, Any]]:
        """Fetch single row"""
        try:
            async with self._acquire(conn) as c:
                row = await c.fetchrow(query, *args)
                return dict(row) if row else None
        except asyncpg.PostgresError as e:
            raise DatabaseError(str(e), operation="fetchone") from e

    async def fetchval(self, query: str, *args, conn=None) -> Any:
        """Fetch single value"""
        try:
            async with self._acquire(conn) as c:
                return await c.fetchval(query, *args)
        except asyncpg.PostgresError as e:
            raise DatabaseError(str(e), operation="fetchval") from e

    @staticmethod
    def affected_rows(status: str) -> int:
        """Row count from a command tag such as 'UPDATE 3' or 'DELETE 0'."""
        try:
            return int(status.split()[-1])
        except (AttributeError, IndexError, ValueError):
            return 0

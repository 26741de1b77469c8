"""
  PostgreSQL access (asyncpg)

  One connection pool per process, created at startup and shared by every
  repository. Repositories accept an optional `conn` so several writes can
  run inside one transaction:

      async with db.transaction() as conn:
          await products.update_sizes(product, conn=conn)
          await orders.save(order, conn=conn)
"""
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import asyncpg

from nicecommerce.config import Settings
from nicecommerce.domain.events import EventEncoder

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).with_name("schema.sql")


async def create_pool(settings: Settings) -> asyncpg.Pool:
    pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    logger.info("Database pool created - min: %s, max: %s",
                settings.db_pool_min_size, settings.db_pool_max_size)
    return pool


async def init_schema(pool: asyncpg.Pool) -> None:
    """Apply schema.sql. Every statement is idempotent."""
    sql = SCHEMA_PATH.read_text(encoding="utf-8")
    async with pool.acquire() as conn:
        await conn.execute(sql)
    logger.info("Database schema applied")


class Database:
    """Thin wrapper over the pool handing out connections and transactions."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    @asynccontextmanager
    async def connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """Reuse `conn` when the caller already holds one, otherwise borrow from the pool."""
        if conn is not None:
            yield conn
            return
        async with self.pool.acquire() as acquired:
            yield acquired

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def ping(self) -> bool:
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1


def to_json(value: Any) -> str:
    return json.dumps(value, cls=EventEncoder)


def from_json(value: Any, default: Any) -> Any:
    """JSONB columns come back from asyncpg as text."""
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)

"""
Async database access wiring (raw SQL) using asyncpg.

The pool is created once by the app lifespan (see `peduncle/main.py`), kept
on `app.state.pool` and shared by every request. Requests never replace it;
they only borrow one connection each through the `connection` dependency.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

import asyncpg
from fastapi import Depends, Request

from .config import PgSettings
from .errors import PoolError

logger = logging.getLogger(__name__)

# Everything asyncpg may raise while handing out a connection: wait timeout,
# refused/broken sockets, server-side auth errors, a closing pool.
_ACQUIRE_ERRORS = (
    asyncio.TimeoutError,
    OSError,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
)


async def init_pool(pg: PgSettings) -> asyncpg.Pool:
    pool = await asyncpg.create_pool(
        dsn=pg.dsn(),
        min_size=pg.min_size,
        max_size=pg.max_size,
    )
    logger.info(
        "db_pool_ready host=%s dbname=%s min_size=%s max_size=%s",
        pg.host,
        pg.dbname,
        pg.min_size,
        pg.max_size,
    )
    return pool


async def close_pool(pool: asyncpg.Pool | None) -> None:
    if pool is None:
        return None
    await pool.close()
    logger.info("db_pool_closed")


def get_pool(request: Request) -> asyncpg.Pool:
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise PoolError("DB pool is not initialized.")
    return pool


async def connection(
    request: Request,
    pool: asyncpg.Pool = Depends(get_pool),
) -> AsyncIterator[asyncpg.Connection]:
    """
    Borrow one pooled connection for the lifetime of a request.
    """
    timeout = request.app.state.settings.pg.acquire_timeout

    try:
        conn = await pool.acquire(timeout=timeout)
    except _ACQUIRE_ERRORS as exc:
        raise PoolError.from_exc(exc) from exc

    try:
        yield conn
    finally:
        await pool.release(conn)

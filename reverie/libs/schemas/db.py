"""Shared asyncpg pool for the entries API and the migration script."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from .settings import get_settings

_POOL: asyncpg.Pool | None = None
_POOL_LOCK = asyncio.Lock()


async def _init_connection(connection: asyncpg.Connection) -> None:
    # Transcripts and sentiment live in jsonb columns; exchange them as Python objects.
    for type_name in ("json", "jsonb"):
        await connection.set_type_codec(
            type_name,
            encoder=lambda value: json.dumps(value, ensure_ascii=False),
            decoder=json.loads,
            schema="pg_catalog",
        )


async def get_async_pool() -> asyncpg.Pool:
    """Return the process-wide pool, creating it on first use."""

    global _POOL
    if _POOL is None:
        async with _POOL_LOCK:
            if _POOL is None:
                _POOL = await asyncpg.create_pool(
                    dsn=get_settings().database_url,
                    min_size=1,
                    max_size=10,
                    command_timeout=60,
                    statement_cache_size=0,
                    max_inactive_connection_lifetime=300,
                    init=_init_connection,
                )
    return _POOL


async def close_async_pool() -> None:
    global _POOL
    if _POOL is not None:
        await _POOL.close()
        _POOL = None


@asynccontextmanager
async def transaction(pool: asyncpg.Pool) -> AsyncIterator[asyncpg.Connection]:
    """Acquire a connection from ``pool`` and hold one transaction open on it."""

    async with pool.acquire() as connection:
        async with connection.transaction():
            yield connection


__all__ = ["close_async_pool", "get_async_pool", "transaction"]

"""Apply SQL migrations sequentially using the shared asyncpg pool."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path

from reverie.libs.logging_utils import configure_logging
from reverie.libs.schemas.db import close_async_pool, get_async_pool

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"
_COMMENT_RE = re.compile(r"--.*?$|/\*.*?\*/", re.MULTILINE | re.DOTALL)


def split_sql(sql: str) -> list[str]:
    """Return individual statements stripped of comments and whitespace."""

    cleaned = _COMMENT_RE.sub("", sql)
    statements: list[str] = []
    for chunk in cleaned.split(";"):
        statement = chunk.strip()
        if statement:
            statements.append(statement)
    return statements


def sorted_migration_paths(directory: Path = MIGRATIONS_DIR) -> list[Path]:
    """Return migration files ordered lexicographically by filename."""

    if not directory.exists():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == ".sql")


async def apply_migrations(directory: Path = MIGRATIONS_DIR) -> int:
    """Execute every migration in order; returns the number of files applied."""

    migration_files = sorted_migration_paths(directory)
    if not migration_files:
        return 0

    pool = await get_async_pool()
    async with pool.acquire() as connection:
        for path in migration_files:
            statements = split_sql(path.read_text(encoding="utf-8"))
            if not statements:
                continue
            async with connection.transaction():
                for statement in statements:
                    await connection.execute(statement)
            logger.info("Applied migration %s (%d statements)", path.name, len(statements))
    return len(migration_files)


async def _run() -> None:
    try:
        await apply_migrations()
    finally:
        await close_async_pool()


def main() -> None:  # pragma: no cover - CLI entrypoint
    configure_logging()
    asyncio.run(_run())


if __name__ == "__main__":  # pragma: no cover
    main()

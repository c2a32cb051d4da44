from __future__ import annotations

from pathlib import Path
from typing import Any, List

import pytest

from reverie.infra.scripts import migrate


def test_split_sql_strips_comments_and_blanks() -> None:
    sql = """
    -- journal tables
    CREATE TABLE a (id int);
    /* multi
       line */
    CREATE INDEX a_idx ON a (id);
    ;
    """
    assert migrate.split_sql(sql) == ["CREATE TABLE a (id int)", "CREATE INDEX a_idx ON a (id)"]


def test_bundled_migrations_are_discovered() -> None:
    names = [path.name for path in migrate.sorted_migration_paths()]
    assert names and names[0] == "0001_journal.sql"
    statements = migrate.split_sql(migrate.sorted_migration_paths()[0].read_text(encoding="utf-8"))
    assert any("journal_entries" in statement for statement in statements)
    assert any("user_stats" in statement for statement in statements)


class _Transaction:
    async def __aenter__(self) -> None:
        return None

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeConnection:
    def __init__(self) -> None:
        self.executed: List[str] = []

    def transaction(self) -> _Transaction:
        return _Transaction()

    async def execute(self, statement: str, *args: Any) -> str:
        self.executed.append(statement)
        return "OK"


class FakePool:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection

    def acquire(self):
        connection = self.connection

        class _Acquire:
            async def __aenter__(self) -> FakeConnection:
                return connection

            async def __aexit__(self, exc_type, exc, tb) -> bool:
                return False

        return _Acquire()


@pytest.mark.asyncio
async def test_apply_migrations_runs_files_in_order(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "0002_second.sql").write_text("CREATE TABLE b (id int);", encoding="utf-8")
    (tmp_path / "0001_first.sql").write_text("CREATE TABLE a (id int); -- trailing", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")
    connection = FakeConnection()

    async def fake_get_async_pool() -> FakePool:
        return FakePool(connection)

    monkeypatch.setattr(migrate, "get_async_pool", fake_get_async_pool)

    applied = await migrate.apply_migrations(tmp_path)
    assert applied == 2
    assert connection.executed == ["CREATE TABLE a (id int)", "CREATE TABLE b (id int)"]


@pytest.mark.asyncio
async def test_apply_migrations_missing_directory(tmp_path: Path) -> None:
    assert await migrate.apply_migrations(tmp_path / "absent") == 0

"""
SQLite 어댑터 테스트

연결 PRAGMA, 단일 writer 트랜잭션, 읽기 전용 모드, 스키마 버전.
"""

import asyncio
from pathlib import Path

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.ledger.schema import init_ledger_schema


class TestConnection:
    """연결 생성 / 종료"""

    @pytest.mark.asyncio
    async def test_wal_mode_and_foreign_keys(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            journal_mode = await db.fetchone("PRAGMA journal_mode")
            foreign_keys = await db.fetchone("PRAGMA foreign_keys")

        assert journal_mode[0].lower() == "wal"
        assert foreign_keys[0] == 1

    @pytest.mark.asyncio
    async def test_busy_timeout_applied(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db", busy_timeout_ms=1234) as db:
            row = await db.fetchone("PRAGMA busy_timeout")

        assert row[0] == 1234

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "dir" / "ledger.db"

        async with SQLiteAdapter(db_path):
            pass

        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            assert db.is_connected

        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_connect_twice_is_noop(self, tmp_path: Path) -> None:
        db = SQLiteAdapter(tmp_path / "test.db")
        await db.connect()
        await db.connect()

        assert db.is_connected
        await db.close()
        await db.close()
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_not_connected(self, tmp_path: Path) -> None:
        db = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(RuntimeError, match="연결되지 않음"):
            await db.execute("SELECT 1")


class TestTransaction:
    """단일 writer 트랜잭션"""

    @pytest.mark.asyncio
    async def test_commit(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            async with db.transaction():
                await db.execute("CREATE TABLE t (v INTEGER)")
                await db.executemany("INSERT INTO t (v) VALUES (?)", [(1,), (2,)])

            row = await db.fetchone("SELECT COUNT(*) FROM t")
            assert row[0] == 2
            assert await db.table_exists("t")
            assert not await db.table_exists("missing")

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, tmp_path: Path) -> None:
        """예외 시 블록 안의 쓰기 전부 취소"""
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            async with db.transaction():
                await db.execute("CREATE TABLE t (v INTEGER)")

            with pytest.raises(ValueError):
                async with db.transaction():
                    await db.execute("INSERT INTO t (v) VALUES (1)")
                    await db.execute("INSERT INTO t (v) VALUES (2)")
                    raise ValueError("boom")

            rows = await db.fetchall("SELECT v FROM t")
            assert rows == []

    @pytest.mark.asyncio
    async def test_in_transaction_flag(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            assert not db.in_transaction
            async with db.transaction():
                assert db.in_transaction
            assert not db.in_transaction

    @pytest.mark.asyncio
    async def test_in_transaction_only_for_owner_task(self, tmp_path: Path) -> None:
        """잠금을 보유한 태스크에서만 True"""
        entered = asyncio.Event()
        release = asyncio.Event()

        async with SQLiteAdapter(tmp_path / "test.db") as db:

            async def holder() -> None:
                async with db.transaction():
                    entered.set()
                    await release.wait()

            task = asyncio.create_task(holder())
            await entered.wait()
            assert not db.in_transaction
            release.set()
            await task

    @pytest.mark.asyncio
    async def test_writers_serialized(self, tmp_path: Path) -> None:
        """동시 트랜잭션은 순차 실행"""
        order: list[str] = []

        async with SQLiteAdapter(tmp_path / "test.db") as db:

            async def writer(name: str) -> None:
                async with db.transaction():
                    order.append(f"{name}:start")
                    await asyncio.sleep(0.01)
                    order.append(f"{name}:end")

            await asyncio.gather(writer("a"), writer("b"))

        assert order == ["a:start", "a:end", "b:start", "b:end"]


class TestReadonly:
    """읽기 전용 연결 (점검 스크립트)"""

    @pytest.mark.asyncio
    async def test_reads_existing_db(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        async with SQLiteAdapter(db_path) as db:
            async with db.transaction():
                await db.execute("CREATE TABLE t (v INTEGER)")
                await db.execute("INSERT INTO t (v) VALUES (7)")

            async with SQLiteAdapter(db_path, readonly=True) as ro:
                row = await ro.fetchone("SELECT v FROM t")

        assert row == (7,)

    @pytest.mark.asyncio
    async def test_transaction_rejected(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        async with SQLiteAdapter(db_path):
            async with SQLiteAdapter(db_path, readonly=True) as ro:
                with pytest.raises(RuntimeError, match="읽기 전용"):
                    async with ro.transaction():
                        pass


class TestSchemaVersion:
    """PRAGMA user_version 관리"""

    @pytest.mark.asyncio
    async def test_fresh_db_is_zero(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            assert await db.get_schema_version() == 0

    @pytest.mark.asyncio
    async def test_init_schema_records_version(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            await init_ledger_schema(db)
            await init_ledger_schema(db)

            assert await db.get_schema_version() == Defaults.LEDGER_SCHEMA_VERSION
            assert await db.table_exists("journals")

    @pytest.mark.asyncio
    async def test_newer_schema_rejected(self, tmp_path: Path) -> None:
        """더 새로운 엔진이 만든 DB는 초기화 거부"""
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            async with db.transaction():
                await db.set_schema_version(Defaults.LEDGER_SCHEMA_VERSION + 1)

            with pytest.raises(RuntimeError, match="스키마 버전"):
                await init_ledger_schema(db)

"""
SQLite 어댑터

원장 DB 파일 하나에 대한 공유 연결.

- 연결 시 WAL, busy_timeout, foreign_keys PRAGMA 적용
- 읽기(fetchone/fetchall)는 언제든 가능
- 쓰기는 transaction() 안에서만 수행 (asyncio.Lock으로 writer 1개 보장)
- 스키마 버전은 PRAGMA user_version에 기록

주의: transaction()은 재진입 불가. 같은 코루틴에서 중첩하면 교착 상태.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from core.constants import Defaults

logger = logging.getLogger(__name__)

Row = tuple[Any, ...]


class SQLiteAdapter:
    """원장 DB 연결

    Args:
        db_path: DB 파일 경로 (상위 디렉토리는 자동 생성)
        readonly: True면 mode=ro URI로 연결 (점검 스크립트용)
        busy_timeout_ms: 다른 프로세스가 잠금을 잡고 있을 때 대기 시간

    사용 예시:
    ```python
    async with SQLiteAdapter(path) as db:
        async with db.transaction():
            await db.execute("UPDATE transactions SET running_balance = ? WHERE id = ?", (...))
        rows = await db.fetchall("SELECT id FROM accounts")
    ```
    """

    def __init__(
        self,
        db_path: Path | str,
        readonly: bool = False,
        busy_timeout_ms: int = Defaults.DB_BUSY_TIMEOUT_MS,
    ):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._writer = asyncio.Lock()
        self._writer_task: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """호출한 태스크가 쓰기 트랜잭션을 잡고 있는지

        다른 태스크가 잠금을 보유 중이면 False.
        """
        return self._writer_task is not None and self._writer_task is asyncio.current_task()

    def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError(f"원장 DB에 연결되지 않음: {self.db_path}")
        return self._conn

    async def connect(self) -> None:
        """연결 열기 (이미 열려 있으면 무시)"""
        if self._conn is not None:
            return

        if self.readonly:
            conn = await aiosqlite.connect(f"file:{self.db_path}?mode=ro", uri=True)
        else:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(str(self.db_path))
            await conn.execute("PRAGMA journal_mode=WAL")

        await conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        await conn.execute("PRAGMA foreign_keys=ON")
        self._conn = conn

        logger.info(
            "원장 DB 연결",
            extra={"db_path": str(self.db_path), "readonly": self.readonly},
        )

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("원장 DB 연결 종료", extra={"db_path": str(self.db_path)})

    # -------------------------------------------------------------------------
    # 실행 / 조회
    # -------------------------------------------------------------------------

    async def execute(self, sql: str, parameters: Row | None = None) -> aiosqlite.Cursor:
        return await self._connection().execute(sql, parameters or ())

    async def executemany(self, sql: str, parameters: list[Row]) -> aiosqlite.Cursor:
        """같은 문장을 여러 파라미터로 실행 (라인 일괄 INSERT/UPDATE)"""
        return await self._connection().executemany(sql, parameters)

    async def fetchone(self, sql: str, parameters: Row | None = None) -> Row | None:
        async with self._connection().execute(sql, parameters or ()) as cursor:
            return await cursor.fetchone()

    async def fetchall(self, sql: str, parameters: Row | None = None) -> list[Row]:
        async with self._connection().execute(sql, parameters or ()) as cursor:
            return list(await cursor.fetchall())

    # -------------------------------------------------------------------------
    # 쓰기 트랜잭션
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """단일 writer 트랜잭션

        블록이 정상 종료되면 커밋, 예외(취소 포함)면 롤백 후 재전파.
        """
        conn = self._connection()
        if self.readonly:
            raise RuntimeError(f"읽기 전용 연결에서는 쓰기 불가: {self.db_path}")

        async with self._writer:
            self._writer_task = asyncio.current_task()
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()
            finally:
                self._writer_task = None

    # -------------------------------------------------------------------------
    # 스키마 메타데이터
    # -------------------------------------------------------------------------

    async def table_exists(self, table_name: str) -> bool:
        row = await self.fetchone(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return row is not None

    async def get_schema_version(self) -> int:
        """PRAGMA user_version (스키마를 만든 적이 없으면 0)"""
        row = await self.fetchone("PRAGMA user_version")
        return int(row[0]) if row else 0

    async def set_schema_version(self, version: int) -> None:
        """PRAGMA user_version 기록 (transaction() 안에서 호출)"""
        await self.execute(f"PRAGMA user_version = {int(version)}")

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

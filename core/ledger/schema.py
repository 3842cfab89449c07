"""
원장 스키마 초기화

엔진 시작 시 자동으로 원장 테이블, 인덱스, View 생성.
CREATE IF NOT EXISTS / DROP VIEW IF EXISTS 패턴으로 안전하게 동작.

저장 규칙:
- 금액, 환율: TEXT (Decimal 문자열)
- 날짜: INTEGER (UTC epoch 밀리초)
- soft-delete: deleted_at (NULL이면 활성)
"""

import logging
from typing import TYPE_CHECKING

from core.constants import Defaults

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """원장 스키마 초기화 (테이블 + View)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).
    PRAGMA user_version에 현재 스키마 버전을 기록한다.

    Args:
        db: 연결된 SQLiteAdapter 인스턴스

    Raises:
        RuntimeError: DB가 더 새로운 엔진으로 만들어진 경우
    """
    previous = await db.get_schema_version()
    if previous > Defaults.LEDGER_SCHEMA_VERSION:
        raise RuntimeError(
            f"DB 스키마 버전({previous})이 엔진 버전({Defaults.LEDGER_SCHEMA_VERSION})보다 높습니다"
        )

    async with db.transaction():
        await _create_ledger_tables(db)
        await _create_ledger_views(db)
        await db.set_schema_version(Defaults.LEDGER_SCHEMA_VERSION)
    logger.info(
        "원장 스키마 초기화 완료",
        extra={"previous_version": previous, "version": Defaults.LEDGER_SCHEMA_VERSION},
    )


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """원장 테이블 생성"""

    # accounts 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS accounts (
            id                TEXT PRIMARY KEY,
            name              TEXT NOT NULL,
            account_type      TEXT NOT NULL,
            currency_code     TEXT NOT NULL,
            parent_account_id TEXT,
            description       TEXT,
            created_at        INTEGER NOT NULL,
            updated_at        INTEGER NOT NULL,
            deleted_at        INTEGER,
            FOREIGN KEY (parent_account_id) REFERENCES accounts(id)
        )
    """)

    # journals 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS journals (
            id                   TEXT PRIMARY KEY,
            journal_date         INTEGER NOT NULL,
            description          TEXT,
            currency_code        TEXT NOT NULL,
            status               TEXT NOT NULL DEFAULT 'POSTED',
            total_amount         TEXT NOT NULL DEFAULT '0',
            transaction_count    INTEGER NOT NULL DEFAULT 0,
            original_journal_id  TEXT,
            reversing_journal_id TEXT,
            created_at           INTEGER NOT NULL,
            updated_at           INTEGER NOT NULL,
            deleted_at           INTEGER,
            FOREIGN KEY (original_journal_id) REFERENCES journals(id),
            FOREIGN KEY (reversing_journal_id) REFERENCES journals(id)
        )
    """)

    # transactions 테이블 (분개 라인)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id               TEXT PRIMARY KEY,
            journal_id       TEXT NOT NULL,
            account_id       TEXT NOT NULL,
            amount           TEXT NOT NULL,
            side             TEXT NOT NULL,
            currency_code    TEXT NOT NULL,
            transaction_date INTEGER NOT NULL,
            exchange_rate    TEXT,
            running_balance  TEXT,
            notes            TEXT,
            line_order       INTEGER NOT NULL DEFAULT 0,
            created_at       INTEGER NOT NULL,
            updated_at       INTEGER NOT NULL,
            deleted_at       INTEGER,
            FOREIGN KEY (journal_id) REFERENCES journals(id),
            FOREIGN KEY (account_id) REFERENCES accounts(id)
        )
    """)

    # currencies 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS currencies (
            code       TEXT PRIMARY KEY,
            name       TEXT,
            symbol     TEXT,
            precision  INTEGER NOT NULL DEFAULT 2
        )
    """)

    # exchange_rates 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS exchange_rates (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            from_currency  TEXT NOT NULL,
            to_currency    TEXT NOT NULL,
            rate           TEXT NOT NULL,
            effective_date INTEGER NOT NULL,
            source         TEXT,
            created_at     INTEGER NOT NULL
        )
    """)

    # audit_logs 테이블 (쓰기 전용)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS audit_logs (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            entity_type TEXT NOT NULL,
            entity_id   TEXT NOT NULL,
            action      TEXT NOT NULL,
            changes     TEXT,
            created_at  INTEGER NOT NULL
        )
    """)

    # 인덱스 생성
    await db.execute("CREATE INDEX IF NOT EXISTS idx_transactions_account ON transactions(account_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_transactions_journal ON transactions(journal_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(transaction_date)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_journals_date ON journals(journal_date)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_accounts_parent ON accounts(parent_account_id)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_exchange_rates_pair ON exchange_rates(from_currency, to_currency, effective_date)")
    await db.execute("CREATE INDEX IF NOT EXISTS idx_audit_logs_entity ON audit_logs(entity_type, entity_id)")

    logger.debug("원장 테이블 생성 완료")


async def _create_ledger_views(db: "SQLiteAdapter") -> None:
    """조회용 View 생성

    View는 항상 DROP 후 CREATE하여 스키마 변경 시에도 안전.
    """

    # 1. 잔액 계산 대상 라인 (활성 라인 + 활성 분개)
    # REVERSED 분개는 역분개(POSTED)와 합쳐 0이 되므로 함께 포함
    await db.execute("DROP VIEW IF EXISTS v_active_postings")
    await db.execute("""
        CREATE VIEW v_active_postings AS
        SELECT
            t.rowid AS line_rowid,
            t.id,
            t.journal_id,
            t.account_id,
            t.amount,
            t.side,
            t.currency_code,
            t.transaction_date,
            t.exchange_rate,
            t.running_balance,
            t.line_order,
            t.created_at,
            j.journal_date
        FROM transactions t
        JOIN journals j ON j.id = t.journal_id
        WHERE t.deleted_at IS NULL
          AND j.deleted_at IS NULL
          AND j.status IN ('POSTED', 'REVERSED')
    """)

    # 2. 계정별 활성 라인 수 (점검 스크립트용)
    await db.execute("DROP VIEW IF EXISTS v_account_activity")
    await db.execute("""
        CREATE VIEW v_account_activity AS
        SELECT
            a.id AS account_id,
            a.name,
            a.account_type,
            a.currency_code,
            COUNT(p.id) AS line_total,
            MAX(p.journal_date) AS last_journal_date
        FROM accounts a
        LEFT JOIN v_active_postings p ON p.account_id = a.id
        WHERE a.deleted_at IS NULL
        GROUP BY a.id
    """)

    logger.debug("원장 View 생성 완료")

"""
원장 저장소

계정/분개/분개 라인(transactions) 저장 및 조회.

- 모든 쓰기는 atomic() 블록 안에서 수행 (단일 writer, 전부 아니면 전무)
- 조회 헬퍼는 기본적으로 soft-delete된 행을 제외 (include_deleted=True로 포함)
- 잔액 계산 대상은 활성 라인 + 활성 분개 (POSTED, REVERSED)
- 원장 순서: journal_date → created_at → line_order → rowid
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Sequence

import aiosqlite

from core.ledger.errors import JournalStateError, StoreWriteError
from core.ledger.models import Account, Journal, Transaction
from core.types import AccountType, JournalSide, JournalStatus

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

# 잔액에 반영되는 분개 상태 (원 분개와 역분개가 서로 상쇄)
BALANCE_STATUSES: tuple[JournalStatus, ...] = (JournalStatus.POSTED, JournalStatus.REVERSED)

# 수정/삭제 가능한 분개 (파라미터: POSTED 상태값)
_MUTABLE_JOURNAL = "status = ? AND deleted_at IS NULL AND original_journal_id IS NULL"

_ACCOUNT_COLUMNS = """
    id, name, account_type, currency_code, parent_account_id, description,
    created_at, updated_at, deleted_at
"""

_JOURNAL_COLUMNS = """
    id, journal_date, description, currency_code, status, total_amount,
    transaction_count, original_journal_id, reversing_journal_id,
    created_at, updated_at, deleted_at
"""

_TX_COLUMNS = """
    t.id, t.journal_id, t.account_id, t.amount, t.side, t.currency_code,
    t.transaction_date, t.exchange_rate, t.running_balance, t.notes,
    t.line_order, t.created_at, t.updated_at, t.deleted_at
"""

_LEDGER_ORDER = "j.journal_date ASC, t.created_at ASC, t.line_order ASC, t.rowid ASC"
_LEDGER_ORDER_DESC = "j.journal_date DESC, t.created_at DESC, t.line_order DESC, t.rowid DESC"


def _dec(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _status_placeholders(statuses: Sequence[JournalStatus]) -> tuple[str, tuple[str, ...]]:
    return ", ".join("?" for _ in statuses), tuple(s.value for s in statuses)


class LedgerStore:
    """원장 저장소

    Args:
        db: 연결된 SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    # -------------------------------------------------------------------------
    # 원자적 쓰기
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """원자적 쓰기 블록

        블록 안의 모든 쓰기는 함께 커밋되거나 함께 롤백된다.
        aiosqlite 오류는 StoreWriteError로 변환.

        Raises:
            StoreWriteError: 저장소 쓰기 실패 (롤백됨)
        """
        try:
            async with self.db.transaction():
                yield
        except aiosqlite.Error as e:
            logger.error(
                f"원자적 쓰기 실패 (롤백): {e}",
                extra={"db_path": str(self.db.db_path)},
                exc_info=True,
            )
            raise StoreWriteError(f"Atomic write failed: {e}") from e

    def _require_transaction(self) -> None:
        if not self.db.in_transaction:
            raise RuntimeError("Ledger writes must run inside LedgerStore.atomic()")

    # -------------------------------------------------------------------------
    # 행 변환
    # -------------------------------------------------------------------------

    @staticmethod
    def _row_to_account(row: tuple[Any, ...]) -> Account:
        return Account(
            id=row[0],
            name=row[1],
            account_type=AccountType(row[2]),
            currency_code=row[3],
            parent_account_id=row[4],
            description=row[5],
            created_at=row[6],
            updated_at=row[7],
            deleted_at=row[8],
        )

    @staticmethod
    def _row_to_journal(row: tuple[Any, ...]) -> Journal:
        return Journal(
            id=row[0],
            journal_date=row[1],
            description=row[2],
            currency_code=row[3],
            status=JournalStatus(row[4]),
            total_amount=Decimal(row[5]),
            transaction_count=row[6],
            original_journal_id=row[7],
            reversing_journal_id=row[8],
            created_at=row[9],
            updated_at=row[10],
            deleted_at=row[11],
        )

    @staticmethod
    def _row_to_transaction(row: tuple[Any, ...]) -> Transaction:
        return Transaction(
            id=row[0],
            journal_id=row[1],
            account_id=row[2],
            amount=Decimal(row[3]),
            side=JournalSide(row[4]),
            currency_code=row[5],
            transaction_date=row[6],
            exchange_rate=_dec(row[7]),
            running_balance=_dec(row[8]),
            notes=row[9],
            line_order=row[10],
            created_at=row[11],
            updated_at=row[12],
            deleted_at=row[13],
        )

    # -------------------------------------------------------------------------
    # 계정
    # -------------------------------------------------------------------------

    async def get_account(
        self,
        account_id: str,
        include_deleted: bool = False,
    ) -> Account | None:
        """계정 조회"""
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        row = await self.db.fetchone(sql, (account_id,))
        return self._row_to_account(row) if row else None

    async def list_accounts(
        self,
        include_deleted: bool = False,
        account_type: AccountType | None = None,
    ) -> list[Account]:
        """계정 목록 (생성 순)"""
        sql = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE 1=1"
        params: list[Any] = []
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        if account_type is not None:
            sql += " AND account_type = ?"
            params.append(account_type.value)
        sql += " ORDER BY created_at ASC, rowid ASC"
        rows = await self.db.fetchall(sql, tuple(params))
        return [self._row_to_account(row) for row in rows]

    async def find_account_by_name(
        self,
        name: str,
        account_type: AccountType,
        currency_code: str,
    ) -> Account | None:
        """이름/유형/통화로 활성 계정 조회"""
        row = await self.db.fetchone(
            f"""
            SELECT {_ACCOUNT_COLUMNS} FROM accounts
            WHERE name = ? AND account_type = ? AND currency_code = ?
              AND deleted_at IS NULL
            ORDER BY created_at ASC
            LIMIT 1
            """,
            (name, account_type.value, currency_code),
        )
        return self._row_to_account(row) if row else None

    async def get_child_accounts(self, parent_account_id: str) -> list[Account]:
        """활성 하위 계정 목록"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_ACCOUNT_COLUMNS} FROM accounts
            WHERE parent_account_id = ? AND deleted_at IS NULL
            ORDER BY created_at ASC
            """,
            (parent_account_id,),
        )
        return [self._row_to_account(row) for row in rows]

    async def insert_account(self, account: Account) -> None:
        """계정 저장 (atomic() 블록 안에서 호출)"""
        self._require_transaction()
        await self.db.execute(
            f"INSERT INTO accounts ({_ACCOUNT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                account.id,
                account.name,
                account.account_type.value,
                account.currency_code,
                account.parent_account_id,
                account.description,
                account.created_at,
                account.updated_at,
                account.deleted_at,
            ),
        )

    async def update_account(self, account: Account) -> None:
        """변경 가능 필드 저장 (atomic() 블록 안에서 호출)

        account_type, currency_code는 변경하지 않음.
        """
        self._require_transaction()
        await self.db.execute(
            """
            UPDATE accounts
            SET name = ?, description = ?, parent_account_id = ?,
                updated_at = ?, deleted_at = ?
            WHERE id = ?
            """,
            (
                account.name,
                account.description,
                account.parent_account_id,
                account.updated_at,
                account.deleted_at,
                account.id,
            ),
        )

    # -------------------------------------------------------------------------
    # 분개
    # -------------------------------------------------------------------------

    async def get_journal(
        self,
        journal_id: str,
        include_deleted: bool = False,
    ) -> Journal | None:
        """분개 조회"""
        sql = f"SELECT {_JOURNAL_COLUMNS} FROM journals WHERE id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        row = await self.db.fetchone(sql, (journal_id,))
        return self._row_to_journal(row) if row else None

    async def list_journals(
        self,
        include_deleted: bool = False,
        statuses: Sequence[JournalStatus] | None = None,
        start_date: int | None = None,
        end_date: int | None = None,
    ) -> list[Journal]:
        """분개 목록 (분개일 순)

        Args:
            include_deleted: soft-delete된 분개 포함 여부
            statuses: 상태 필터 (None이면 전체)
            start_date: 시작 분개일 (포함, epoch ms)
            end_date: 종료 분개일 (포함, epoch ms)
        """
        sql = f"SELECT {_JOURNAL_COLUMNS} FROM journals WHERE 1=1"
        params: list[Any] = []
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        if statuses:
            placeholders, values = _status_placeholders(statuses)
            sql += f" AND status IN ({placeholders})"
            params.extend(values)
        if start_date is not None:
            sql += " AND journal_date >= ?"
            params.append(start_date)
        if end_date is not None:
            sql += " AND journal_date <= ?"
            params.append(end_date)
        sql += " ORDER BY journal_date ASC, created_at ASC, rowid ASC"
        rows = await self.db.fetchall(sql, tuple(params))
        return [self._row_to_journal(row) for row in rows]

    async def insert_journal(
        self,
        journal: Journal,
        lines: Sequence[Transaction],
    ) -> None:
        """분개 헤더 + 라인 저장 (atomic() 블록 안에서 호출)"""
        self._require_transaction()
        await self.db.execute(
            f"""
            INSERT INTO journals ({_JOURNAL_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                journal.id,
                journal.journal_date,
                journal.description,
                journal.currency_code,
                journal.status.value,
                str(journal.total_amount),
                journal.transaction_count,
                journal.original_journal_id,
                journal.reversing_journal_id,
                journal.created_at,
                journal.updated_at,
                journal.deleted_at,
            ),
        )
        await self._insert_lines(lines)

    async def _insert_lines(self, lines: Iterable[Transaction]) -> None:
        for line in lines:
            await self.db.execute(
                """
                INSERT INTO transactions (
                    id, journal_id, account_id, amount, side, currency_code,
                    transaction_date, exchange_rate, running_balance, notes,
                    line_order, created_at, updated_at, deleted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    line.id,
                    line.journal_id,
                    line.account_id,
                    str(line.amount),
                    line.side.value,
                    line.currency_code,
                    line.transaction_date,
                    str(line.exchange_rate) if line.exchange_rate is not None else None,
                    str(line.running_balance) if line.running_balance is not None else None,
                    line.notes,
                    line.line_order,
                    line.created_at,
                    line.updated_at,
                    line.deleted_at,
                ),
            )

    async def replace_journal_lines(
        self,
        journal: Journal,
        lines: Sequence[Transaction],
    ) -> int:
        """분개 라인 전체 교체 + 헤더 요약 갱신 (atomic() 블록 안에서 호출)

        기존 활성 라인은 tombstone 처리 (감사 이력 보존).

        Returns:
            tombstone 처리된 기존 라인 수

        Raises:
            JournalStateError: POSTED 활성 일반 분개가 아님
        """
        self._require_transaction()
        cursor = await self.db.execute(
            f"""
            UPDATE journals
            SET journal_date = ?, description = ?, currency_code = ?,
                total_amount = ?, transaction_count = ?, updated_at = ?
            WHERE id = ? AND {_MUTABLE_JOURNAL}
            """,
            (
                journal.journal_date,
                journal.description,
                journal.currency_code,
                str(journal.total_amount),
                journal.transaction_count,
                journal.updated_at,
                journal.id,
                JournalStatus.POSTED.value,
            ),
        )
        if cursor.rowcount != 1:
            raise JournalStateError(f"Journal {journal.id} is not a mutable POSTED journal")

        cursor = await self.db.execute(
            """
            UPDATE transactions SET deleted_at = ?, updated_at = ?
            WHERE journal_id = ? AND deleted_at IS NULL
            """,
            (journal.updated_at, journal.updated_at, journal.id),
        )
        removed = cursor.rowcount
        await self._insert_lines(lines)
        return removed

    async def soft_delete_journal(self, journal_id: str, deleted_at: int) -> int:
        """분개 + 라인 tombstone 처리 (atomic() 블록 안에서 호출)

        Returns:
            tombstone 처리된 라인 수

        Raises:
            JournalStateError: POSTED 활성 일반 분개가 아님
        """
        self._require_transaction()
        cursor = await self.db.execute(
            f"UPDATE journals SET deleted_at = ?, updated_at = ? WHERE id = ? AND {_MUTABLE_JOURNAL}",
            (deleted_at, deleted_at, journal_id, JournalStatus.POSTED.value),
        )
        if cursor.rowcount != 1:
            raise JournalStateError(f"Journal {journal_id} is not a mutable POSTED journal")

        cursor = await self.db.execute(
            """
            UPDATE transactions SET deleted_at = ?, updated_at = ?
            WHERE journal_id = ? AND deleted_at IS NULL
            """,
            (deleted_at, deleted_at, journal_id),
        )
        return cursor.rowcount

    async def mark_journal_reversed(
        self,
        journal_id: str,
        reversing_journal_id: str,
        updated_at: int,
    ) -> None:
        """POSTED → REVERSED 전이 기록 (atomic() 블록 안에서 호출)

        Raises:
            JournalStateError: 이미 REVERSED이거나 삭제된 분개
        """
        self._require_transaction()
        cursor = await self.db.execute(
            """
            UPDATE journals
            SET status = ?, reversing_journal_id = ?, updated_at = ?
            WHERE id = ? AND status = ? AND deleted_at IS NULL
            """,
            (
                JournalStatus.REVERSED.value,
                reversing_journal_id,
                updated_at,
                journal_id,
                JournalStatus.POSTED.value,
            ),
        )
        if cursor.rowcount != 1:
            raise JournalStateError(f"Journal {journal_id} is not in POSTED state")

    # -------------------------------------------------------------------------
    # 분개 라인 조회 (관찰 레이어용 조회 형태)
    # -------------------------------------------------------------------------

    def _tx_filters(
        self,
        include_deleted: bool,
        statuses: Sequence[JournalStatus] | None,
    ) -> tuple[str, list[Any]]:
        clauses = ""
        params: list[Any] = []
        if not include_deleted:
            clauses += " AND t.deleted_at IS NULL AND j.deleted_at IS NULL"
        if statuses:
            placeholders, values = _status_placeholders(statuses)
            clauses += f" AND j.status IN ({placeholders})"
            params.extend(values)
        return clauses, params

    async def get_transactions_by_journal(
        self,
        journal_id: str,
        include_deleted: bool = False,
    ) -> list[Transaction]:
        """분개의 라인 목록 (라인 순서)"""
        sql = f"SELECT {_TX_COLUMNS} FROM transactions t WHERE t.journal_id = ?"
        if not include_deleted:
            sql += " AND t.deleted_at IS NULL"
        sql += " ORDER BY t.line_order ASC, t.rowid ASC"
        rows = await self.db.fetchall(sql, (journal_id,))
        return [self._row_to_transaction(row) for row in rows]

    async def get_transactions_by_account(
        self,
        account_id: str,
        include_deleted: bool = False,
        statuses: Sequence[JournalStatus] | None = None,
    ) -> list[Transaction]:
        """계정의 라인 목록 (원장 순서)"""
        filters, params = self._tx_filters(include_deleted, statuses)
        rows = await self.db.fetchall(
            f"""
            SELECT {_TX_COLUMNS} FROM transactions t
            JOIN journals j ON j.id = t.journal_id
            WHERE t.account_id = ?{filters}
            ORDER BY {_LEDGER_ORDER}
            """,
            (account_id, *params),
        )
        return [self._row_to_transaction(row) for row in rows]

    async def get_transactions_by_date_range(
        self,
        start_date: int,
        end_date: int,
        account_id: str | None = None,
        include_deleted: bool = False,
        statuses: Sequence[JournalStatus] | None = None,
    ) -> list[Transaction]:
        """기간 내 라인 목록 (분개일 기준, 양끝 포함)"""
        filters, params = self._tx_filters(include_deleted, statuses)
        sql = f"""
            SELECT {_TX_COLUMNS} FROM transactions t
            JOIN journals j ON j.id = t.journal_id
            WHERE j.journal_date >= ? AND j.journal_date <= ?{filters}
        """
        all_params: list[Any] = [start_date, end_date, *params]
        if account_id is not None:
            sql += " AND t.account_id = ?"
            all_params.append(account_id)
        sql += f" ORDER BY {_LEDGER_ORDER}"
        rows = await self.db.fetchall(sql, tuple(all_params))
        return [self._row_to_transaction(row) for row in rows]

    # -------------------------------------------------------------------------
    # 잔액 계산용 조회
    # -------------------------------------------------------------------------

    async def get_ordered_postings(
        self,
        account_id: str,
        from_date: int | None = None,
    ) -> list[Transaction]:
        """잔액 계산 대상 라인 (원장 순서)

        Args:
            account_id: 계정 ID
            from_date: 이 분개일 이상만 (None이면 전체)
        """
        filters, params = self._tx_filters(False, BALANCE_STATUSES)
        sql = f"""
            SELECT {_TX_COLUMNS} FROM transactions t
            JOIN journals j ON j.id = t.journal_id
            WHERE t.account_id = ?{filters}
        """
        all_params: list[Any] = [account_id, *params]
        if from_date is not None:
            sql += " AND j.journal_date >= ?"
            all_params.append(from_date)
        sql += f" ORDER BY {_LEDGER_ORDER}"
        rows = await self.db.fetchall(sql, tuple(all_params))
        return [self._row_to_transaction(row) for row in rows]

    async def get_last_posting_before(
        self,
        account_id: str,
        date: int,
        inclusive: bool = False,
        exclude_journal_id: str | None = None,
    ) -> Transaction | None:
        """지정 분개일 이전의 마지막 잔액 계산 대상 라인

        Args:
            account_id: 계정 ID
            date: 기준 분개일 (epoch ms)
            inclusive: True면 같은 분개일 포함
            exclude_journal_id: 제외할 분개 (수정 중인 분개 자신)
        """
        filters, params = self._tx_filters(False, BALANCE_STATUSES)
        op = "<=" if inclusive else "<"
        sql = f"""
            SELECT {_TX_COLUMNS} FROM transactions t
            JOIN journals j ON j.id = t.journal_id
            WHERE t.account_id = ? AND j.journal_date {op} ?{filters}
        """
        all_params: list[Any] = [account_id, date, *params]
        if exclude_journal_id is not None:
            sql += " AND t.journal_id != ?"
            all_params.append(exclude_journal_id)
        sql += f" ORDER BY {_LEDGER_ORDER_DESC} LIMIT 1"
        row = await self.db.fetchone(sql, tuple(all_params))
        return self._row_to_transaction(row) if row else None

    async def get_cached_balance(self, account_id: str) -> Decimal:
        """계정의 캐시 잔액 (원장 순서상 마지막 라인의 running_balance)

        활성 라인이 없으면 0. 마지막 라인의 캐시가 비어 있으면 0으로 간주.
        """
        filters, params = self._tx_filters(False, BALANCE_STATUSES)
        row = await self.db.fetchone(
            f"""
            SELECT t.running_balance FROM transactions t
            JOIN journals j ON j.id = t.journal_id
            WHERE t.account_id = ?{filters}
            ORDER BY {_LEDGER_ORDER_DESC}
            LIMIT 1
            """,
            (account_id, *params),
        )
        if row is None or row[0] is None:
            return Decimal("0")
        return Decimal(row[0])

    async def update_running_balances(
        self,
        updates: Sequence[tuple[str, Decimal]],
        updated_at: int,
    ) -> None:
        """running_balance 캐시 갱신 (atomic() 블록 안에서 호출)

        Args:
            updates: (transaction_id, running_balance) 목록
            updated_at: 갱신 시각 (epoch ms)
        """
        self._require_transaction()
        if not updates:
            return
        await self.db.executemany(
            "UPDATE transactions SET running_balance = ?, updated_at = ? WHERE id = ?",
            [(str(balance), updated_at, tx_id) for tx_id, balance in updates],
        )

    async def count_active_postings(self, account_id: str) -> int:
        """계정의 잔액 계산 대상 라인 수"""
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM v_active_postings WHERE account_id = ?",
            (account_id,),
        )
        return row[0] if row else 0

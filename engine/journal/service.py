"""
JournalService

분개 + 분개 라인의 원자적 생성/수정/삭제/역분개 오케스트레이션.

흐름:
1. 경계 검증 (Pydantic 입력 모델)
2. 계정 조회, 금액을 계정 통화 정밀도로 반올림, 환율 결정
3. 복식부기 규칙 검증 (쓰기 전, 실패 시 부작용 없음)
4. 잠정 running_balance 계산 후 원자적 저장
5. 영향받은 계정을 재구축 큐에 등록 (정확한 캐시는 큐가 복원)
6. 감사 로그 / 변경 알림 (커밋 이후, 실패해도 롤백하지 않음)
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Sequence
from uuid import uuid4

from adapters.interfaces import IAuditSink, ICurrencyService
from core.domain.events import ChangeNotifier, LedgerChange
from core.domain.state_machines import JournalAction, JournalLifecycle
from core.ledger.accounting import signed_amount
from core.ledger.calculator import BalanceLine, JournalCalculator
from core.ledger.errors import JournalStateError, NotFoundError, ValidationError
from core.ledger.inputs import (
    CreateJournalData,
    JournalLineInput,
    JournalUpdate,
    parse_input,
)
from core.ledger.models import Account, Journal, Transaction
from core.ledger.store import LedgerStore
from core.ledger.validator import JournalValidator
from core.types import AuditAction, EntityKind, JournalSide, JournalStatus
from core.utils.money import round_to_precision, safe_add
from core.utils.timezone import now_ms, now_utc, to_timestamp_ms, utc_from_timestamp_ms
from engine.rebuild.queue import BalanceRebuildQueue

logger = logging.getLogger(__name__)


@dataclass
class PreparedLine:
    """검증 완료된 분개 라인 (계정 정밀도로 반올림, 환율 확정)"""

    account: Account
    amount: Decimal
    side: JournalSide
    exchange_rate: Decimal | None
    notes: str | None
    precision: int


def _journal_snapshot(journal: Journal, lines: Sequence[Transaction]) -> dict[str, Any]:
    """감사 로그용 분개 요약"""
    return {
        "journal_date": journal.journal_date,
        "description": journal.description,
        "currency_code": journal.currency_code,
        "status": journal.status.value,
        "total_amount": str(journal.total_amount),
        "lines": [
            {
                "account_id": line.account_id,
                "amount": str(line.amount),
                "side": line.side.value,
                "exchange_rate": str(line.exchange_rate) if line.exchange_rate is not None else None,
            }
            for line in lines
        ],
    }


class JournalService:
    """분개 서비스

    Args:
        store: 원장 저장소
        rebuild_queue: 잔액 재구축 큐
        currency: 통화 서비스 (정밀도, 환율)
        audit: 감사 로그 (None이면 기록 안 함)
        notifier: 변경 알림 훅 (None이면 알림 안 함)
    """

    def __init__(
        self,
        store: LedgerStore,
        rebuild_queue: BalanceRebuildQueue,
        currency: ICurrencyService,
        audit: IAuditSink | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.store = store
        self.rebuild_queue = rebuild_queue
        self.currency = currency
        self.audit = audit
        self.notifier = notifier

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_journal(self, journal_id: str, include_deleted: bool = False) -> Journal:
        """분개 조회

        Raises:
            NotFoundError: 없거나 soft-delete된 분개
        """
        journal = await self.store.get_journal(journal_id, include_deleted=include_deleted)
        if journal is None:
            raise NotFoundError("journal", journal_id)
        return journal

    async def get_journal_transactions(
        self,
        journal_id: str,
        include_deleted: bool = False,
    ) -> list[Transaction]:
        """분개 라인 목록 (라인 순서)"""
        await self.get_journal(journal_id, include_deleted=include_deleted)
        return await self.store.get_transactions_by_journal(
            journal_id, include_deleted=include_deleted
        )

    # -------------------------------------------------------------------------
    # 생성
    # -------------------------------------------------------------------------

    async def create_journal_with_transactions(
        self,
        data: CreateJournalData | dict[str, Any],
    ) -> Journal:
        """분개 + 라인 생성

        Raises:
            ValidationError: 규칙 위반 (저장 전 거부)
            NotFoundError: 계정 없음
            StoreWriteError: 저장 실패 (롤백됨)
        """
        request = parse_input(CreateJournalData, data)
        journal_date = to_timestamp_ms(request.journal_date)

        prepared, journal_precision = await self._prepare_lines(
            request.transactions, request.currency_code, journal_date
        )

        now = now_ms()
        journal = Journal(
            id=str(uuid4()),
            journal_date=journal_date,
            description=request.description,
            currency_code=request.currency_code,
            status=JournalStatus.POSTED,
            total_amount=self._journal_total(prepared, journal_precision),
            transaction_count=len(prepared),
            created_at=now,
            updated_at=now,
        )

        async with self.store.atomic():
            rows = await self._build_rows(journal, prepared, now)
            await self.store.insert_journal(journal, rows)

        account_ids = self._account_ids(rows)
        self.rebuild_queue.enqueue_many(account_ids, journal_date)

        logger.info(
            f"분개 생성: {journal.description or journal.id}",
            extra={
                "journal_id": journal.id,
                "lines": len(rows),
                "total_amount": str(journal.total_amount),
            },
        )

        await self._record(
            EntityKind.JOURNAL,
            journal.id,
            AuditAction.CREATE,
            {"after": _journal_snapshot(journal, rows)},
            account_ids,
        )
        return journal

    # -------------------------------------------------------------------------
    # 수정
    # -------------------------------------------------------------------------

    async def update_journal_with_transactions(
        self,
        journal_id: str,
        data: JournalUpdate | dict[str, Any],
    ) -> Journal:
        """분개 라인 전체 교체 + 헤더 갱신

        기존 라인과 새 라인의 계정 합집합을 min(기존 분개일, 새 분개일)부터 재구축.

        Raises:
            ValidationError: 규칙 위반
            JournalStateError: REVERSED 분개, 역분개 또는 동시 수정
            NotFoundError: 분개/계정 없음
            StoreWriteError: 저장 실패 (롤백됨)
        """
        existing = await self.get_journal(journal_id)
        self._lifecycle(existing).require(JournalAction.UPDATE)

        patch = parse_input(JournalUpdate, data)
        fields = patch.model_fields_set

        new_date = existing.journal_date
        if "journal_date" in fields and patch.journal_date is not None:
            new_date = to_timestamp_ms(patch.journal_date)
        currency_code = existing.currency_code
        if "currency_code" in fields and patch.currency_code is not None:
            currency_code = patch.currency_code
        description = patch.description if "description" in fields else existing.description

        prepared, journal_precision = await self._prepare_lines(
            patch.transactions, currency_code, new_date
        )
        old_lines = await self.store.get_transactions_by_journal(journal_id)

        now = now_ms()
        updated = dataclasses.replace(
            existing,
            journal_date=new_date,
            currency_code=currency_code,
            description=description,
            total_amount=self._journal_total(prepared, journal_precision),
            transaction_count=len(prepared),
            updated_at=now,
        )

        async with self.store.atomic():
            await self._recheck_locked(existing, old_lines, JournalAction.UPDATE)
            rows = await self._build_rows(updated, prepared, now, exclude_journal_id=journal_id)
            await self.store.replace_journal_lines(updated, rows)

        account_ids = self._account_ids([*old_lines, *rows])
        self.rebuild_queue.enqueue_many(account_ids, min(existing.journal_date, new_date))

        logger.info(
            f"분개 수정: {updated.description or updated.id}",
            extra={"journal_id": journal_id, "accounts": len(account_ids)},
        )

        await self._record(
            EntityKind.JOURNAL,
            journal_id,
            AuditAction.UPDATE,
            {
                "before": _journal_snapshot(existing, old_lines),
                "after": _journal_snapshot(updated, rows),
            },
            account_ids,
        )
        return updated

    # -------------------------------------------------------------------------
    # 삭제
    # -------------------------------------------------------------------------

    async def delete_journal(self, journal_id: str) -> None:
        """분개 + 라인 soft-delete (tombstone)

        Raises:
            JournalStateError: REVERSED 분개, 역분개 또는 동시 수정
            NotFoundError: 분개 없음
            StoreWriteError: 저장 실패 (롤백됨)
        """
        journal = await self.get_journal(journal_id)
        self._lifecycle(journal).require(JournalAction.DELETE)

        lines = await self.store.get_transactions_by_journal(journal_id)

        async with self.store.atomic():
            await self._recheck_locked(journal, lines, JournalAction.DELETE)
            await self.store.soft_delete_journal(journal_id, now_ms())

        account_ids = self._account_ids(lines)
        self.rebuild_queue.enqueue_many(account_ids, journal.journal_date)

        logger.info(
            f"분개 삭제: {journal.description or journal.id}",
            extra={"journal_id": journal_id, "lines": len(lines)},
        )

        await self._record(
            EntityKind.JOURNAL,
            journal_id,
            AuditAction.DELETE,
            {"before": _journal_snapshot(journal, lines)},
            account_ids,
        )

    # -------------------------------------------------------------------------
    # 역분개
    # -------------------------------------------------------------------------

    async def create_reversal_journal(
        self,
        journal_id: str,
        description: str | None = None,
        reversal_date: datetime | date | None = None,
    ) -> Journal:
        """역분개 생성

        원 분개의 라인을 차변/대변만 바꿔 새 분개로 기록하고,
        원 분개를 REVERSED로 전이. 원 분개의 라인은 삭제하지 않음.

        Args:
            journal_id: 원 분개 ID
            description: 역분개 설명 (None이면 "Reversal of ...")
            reversal_date: 역분개 분개일 (None이면 현재)

        Raises:
            JournalStateError: 이미 REVERSED, 역분개 자체 또는 동시 수정
            NotFoundError: 분개 없음
            StoreWriteError: 저장 실패 (롤백됨)
        """
        original = await self.get_journal(journal_id)
        self._lifecycle(original).reverse()

        original_lines = await self.store.get_transactions_by_journal(journal_id)
        accounts = await self._load_accounts(
            [line.account_id for line in original_lines], include_deleted=True
        )
        precisions: dict[str, int] = {}
        prepared = [
            PreparedLine(
                account=accounts[line.account_id],
                amount=line.amount,
                side=line.side.opposite,
                exchange_rate=line.exchange_rate,
                notes=line.notes,
                precision=await self._precision(line.currency_code, precisions),
            )
            for line in original_lines
        ]

        when = reversal_date if reversal_date is not None else now_utc()
        reversal_date_ms = to_timestamp_ms(when)
        now = now_ms()
        reversal = Journal(
            id=str(uuid4()),
            journal_date=reversal_date_ms,
            description=description or f"Reversal of {original.description or original.id}",
            currency_code=original.currency_code,
            status=JournalStatus.POSTED,
            total_amount=original.total_amount,
            transaction_count=len(prepared),
            original_journal_id=original.id,
            created_at=now,
            updated_at=now,
        )

        async with self.store.atomic():
            await self._recheck_locked(original, original_lines, JournalAction.REVERSE)
            rows = await self._build_rows(reversal, prepared, now)
            await self.store.insert_journal(reversal, rows)
            await self.store.mark_journal_reversed(original.id, reversal.id, now)

        account_ids = self._account_ids(rows)
        self.rebuild_queue.enqueue_many(account_ids, reversal_date_ms)

        logger.info(
            f"역분개 생성: {original.id} → {reversal.id}",
            extra={"journal_id": original.id, "reversal_id": reversal.id},
        )

        await self._record(
            EntityKind.JOURNAL,
            reversal.id,
            AuditAction.CREATE,
            {"after": _journal_snapshot(reversal, rows)},
            account_ids,
        )
        await self._record(
            EntityKind.JOURNAL,
            original.id,
            AuditAction.UPDATE,
            {
                "before": {"status": JournalStatus.POSTED.value},
                "after": {
                    "status": JournalStatus.REVERSED.value,
                    "reversing_journal_id": reversal.id,
                },
            },
            account_ids,
        )
        return reversal

    # -------------------------------------------------------------------------
    # 복제
    # -------------------------------------------------------------------------

    async def duplicate_journal(
        self,
        journal_id: str,
        journal_date: datetime | date | None = None,
    ) -> Journal:
        """분개 복제 (새 분개로 재기록)

        Args:
            journal_id: 복제할 분개 ID
            journal_date: 새 분개일 (None이면 현재)
        """
        source = await self.get_journal(journal_id)
        lines = await self.store.get_transactions_by_journal(journal_id)

        request = CreateJournalData(
            journal_date=journal_date if journal_date is not None else now_utc(),
            currency_code=source.currency_code,
            description=f"Copy of {source.description}" if source.description else "Copy",
            transactions=[
                JournalLineInput(
                    account_id=line.account_id,
                    amount=line.amount,
                    side=line.side,
                    exchange_rate=line.exchange_rate,
                    notes=line.notes,
                )
                for line in lines
            ],
        )
        return await self.create_journal_with_transactions(request)

    # -------------------------------------------------------------------------
    # 내부 헬퍼
    # -------------------------------------------------------------------------

    @staticmethod
    def _lifecycle(journal: Journal) -> JournalLifecycle:
        return JournalLifecycle(journal.status, journal.is_reversal, journal_id=journal.id)

    async def _recheck_locked(
        self,
        seen: Journal,
        seen_lines: Sequence[Transaction],
        action: JournalAction,
    ) -> None:
        """쓰기 잠금 안에서 분개 재조회 (atomic() 블록 안에서 호출)

        잠금 전에 읽은 헤더/활성 라인과 달라졌으면 다른 작업이 먼저 커밋된 것.

        Raises:
            NotFoundError: 그 사이 삭제됨
            JournalStateError: 상태 전이 또는 동시 수정
        """
        current = await self.store.get_journal(seen.id)
        if current is None:
            raise NotFoundError("journal", seen.id)
        self._lifecycle(current).require(action)

        current_ids = [line.id for line in await self.store.get_transactions_by_journal(seen.id)]
        if current != seen or current_ids != [line.id for line in seen_lines]:
            raise JournalStateError(f"Journal {seen.id} was modified concurrently")

    @staticmethod
    def _account_ids(lines: Iterable[Transaction]) -> list[str]:
        return list(dict.fromkeys(line.account_id for line in lines))

    async def _precision(self, currency_code: str, cache: dict[str, int]) -> int:
        if currency_code not in cache:
            cache[currency_code] = await self.currency.get_precision(currency_code)
        return cache[currency_code]

    async def _load_accounts(
        self,
        account_ids: Iterable[str],
        include_deleted: bool = False,
    ) -> dict[str, Account]:
        """계정 일괄 조회

        Raises:
            NotFoundError: 없거나 soft-delete된 계정
        """
        accounts: dict[str, Account] = {}
        for account_id in dict.fromkeys(account_ids):
            account = await self.store.get_account(account_id, include_deleted=include_deleted)
            if account is None:
                raise NotFoundError("account", account_id)
            accounts[account_id] = account
        return accounts

    async def _prepare_lines(
        self,
        lines: Sequence[JournalLineInput],
        currency_code: str,
        journal_date: int,
    ) -> tuple[list[PreparedLine], int]:
        """라인 준비 + 규칙 검증

        Returns:
            (준비된 라인, 분개 통화 정밀도)

        Raises:
            ValidationError: 규칙 위반 (모든 오류 메시지 포함)
            NotFoundError: 계정 없음
        """
        accounts = await self._load_accounts(line.account_id for line in lines)
        precisions: dict[str, int] = {}
        journal_precision = await self._precision(currency_code, precisions)
        errors: list[str] = []

        prepared: list[PreparedLine] = []
        for line in lines:
            account = accounts[line.account_id]
            precision = await self._precision(account.currency_code, precisions)
            rate = line.exchange_rate
            if rate is None and account.currency_code != currency_code:
                try:
                    rate = await self.currency.get_exchange_rate(
                        account.currency_code,
                        currency_code,
                        utc_from_timestamp_ms(journal_date),
                    )
                except NotFoundError:
                    errors.append(
                        f"No exchange rate for {account.currency_code}/{currency_code}"
                    )
            prepared.append(
                PreparedLine(
                    account=account,
                    amount=round_to_precision(line.amount, precision),
                    side=line.side,
                    exchange_rate=rate,
                    notes=line.notes,
                    precision=precision,
                )
            )

        errors.extend(JournalValidator.validate(prepared, journal_precision).errors)
        errors.extend(
            JournalValidator.validate_distinct_accounts([p.account.id for p in prepared])
        )
        if errors:
            logger.warning(
                "분개 검증 실패",
                extra={"errors": errors, "currency_code": currency_code},
            )
            raise ValidationError(errors)

        return prepared, journal_precision

    @staticmethod
    def _journal_total(prepared: Sequence[PreparedLine], journal_precision: int) -> Decimal:
        balance_lines = [BalanceLine.from_line(p, journal_precision) for p in prepared]
        return JournalCalculator.journal_amount(balance_lines, journal_precision)

    async def _build_rows(
        self,
        journal: Journal,
        prepared: Sequence[PreparedLine],
        now: int,
        exclude_journal_id: str | None = None,
    ) -> list[Transaction]:
        """잠정 running_balance를 포함한 라인 행 생성 (atomic() 블록 안에서 호출)

        계정별 시작점: 분개일 이하 마지막 라인의 캐시 잔액 (수정 시 자기 분개 제외)
        이후 같은 분개 안에서 라인 순서대로 누적.
        """
        running: dict[str, Decimal] = {}
        rows: list[Transaction] = []
        for order, line in enumerate(prepared):
            account = line.account
            if account.id not in running:
                seed = await self.store.get_last_posting_before(
                    account.id,
                    journal.journal_date,
                    inclusive=True,
                    exclude_journal_id=exclude_journal_id,
                )
                base = seed.running_balance if seed and seed.running_balance is not None else 0
                running[account.id] = round_to_precision(base, line.precision)

            delta = signed_amount(line.amount, account.account_type, line.side, line.precision)
            running[account.id] = safe_add(running[account.id], delta, line.precision)

            rows.append(
                Transaction(
                    id=str(uuid4()),
                    journal_id=journal.id,
                    account_id=account.id,
                    amount=line.amount,
                    side=line.side,
                    currency_code=account.currency_code,
                    transaction_date=journal.journal_date,
                    exchange_rate=line.exchange_rate,
                    running_balance=running[account.id],
                    notes=line.notes,
                    line_order=order,
                    created_at=now,
                    updated_at=now,
                )
            )
        return rows

    async def _record(
        self,
        entity_kind: EntityKind,
        entity_id: str,
        action: AuditAction,
        changes: dict[str, Any],
        account_ids: Sequence[str],
    ) -> None:
        """커밋 이후 감사 로그 + 변경 알림 (실패는 로깅만)"""
        if self.audit is not None:
            try:
                await self.audit.log(entity_kind, entity_id, action, changes)
            except Exception as e:
                logger.error(
                    f"감사 로그 기록 실패: {e}",
                    extra={"entity_id": entity_id, "action": action.value},
                    exc_info=True,
                )
        if self.notifier is not None:
            self.notifier.notify(
                LedgerChange(
                    entity_kind=entity_kind,
                    entity_id=entity_id,
                    action=action,
                    affected_account_ids=tuple(account_ids),
                )
            )

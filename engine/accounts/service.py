"""
AccountService

계정 생성/수정/삭제/복구와 기초 잔액, 잔액 조정 분개.

- 계정 유형과 통화는 생성 후 변경 불가 (부호 규칙 고정)
- 상위 계정은 같은 유형이어야 하며 순환 참조 금지
- 기초 잔액은 통화별 "Opening Balances" 자본 계정과 짝을 이루는 분개로 기록
"""

import dataclasses
import logging
from decimal import Decimal
from typing import Any
from uuid import uuid4

from adapters.interfaces import IAuditSink, ICurrencyService
from core.constants import LedgerLimits
from core.domain.events import ChangeNotifier, LedgerChange
from core.ledger.errors import NotFoundError, ValidationError
from core.ledger.inputs import (
    AccountCreate,
    AccountPatch,
    CreateJournalData,
    JournalLineInput,
    parse_input,
)
from core.ledger.models import Account, Journal
from core.ledger.store import LedgerStore
from core.types import AccountType, AuditAction, EntityKind, JournalSide
from core.utils.money import MoneyLike, amounts_are_equal, round_to_precision, safe_subtract, to_decimal
from core.utils.timezone import now_ms, now_utc
from engine.journal.service import JournalService

logger = logging.getLogger(__name__)

BALANCE_CORRECTION_ACCOUNT_NAME = "Balance Correction"


def _account_snapshot(account: Account) -> dict[str, Any]:
    return {
        "name": account.name,
        "account_type": account.account_type.value,
        "currency_code": account.currency_code,
        "parent_account_id": account.parent_account_id,
        "description": account.description,
    }


class AccountService:
    """계정 서비스

    Args:
        store: 원장 저장소
        journal_service: 기초 잔액/조정 분개 기록용
        currency: 통화 서비스
        audit: 감사 로그 (None이면 기록 안 함)
        notifier: 변경 알림 훅 (None이면 알림 안 함)
    """

    def __init__(
        self,
        store: LedgerStore,
        journal_service: JournalService,
        currency: ICurrencyService,
        audit: IAuditSink | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        self.store = store
        self.journal_service = journal_service
        self.currency = currency
        self.audit = audit
        self.notifier = notifier

    async def get_account(self, account_id: str, include_deleted: bool = False) -> Account:
        """계정 조회

        Raises:
            NotFoundError: 없거나 soft-delete된 계정
        """
        account = await self.store.get_account(account_id, include_deleted=include_deleted)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    async def get_account_balance(self, account_id: str) -> Decimal:
        """캐시 잔액 (강한 일관성이 필요하면 먼저 큐를 flush)"""
        await self.get_account(account_id)
        return await self.store.get_cached_balance(account_id)

    # -------------------------------------------------------------------------
    # 생성
    # -------------------------------------------------------------------------

    async def create_account(self, data: AccountCreate | dict[str, Any]) -> Account:
        """계정 생성 (+ 기초 잔액 분개)

        Raises:
            ValidationError: 입력 오류, 상위 계정 유형 불일치
            NotFoundError: 상위 계정 없음
        """
        request = parse_input(AccountCreate, data)

        if request.parent_account_id is not None:
            parent = await self.get_account(request.parent_account_id)
            if parent.account_type != request.account_type:
                raise ValidationError("Parent account must be of the same type")

        now = now_ms()
        account = Account(
            id=str(uuid4()),
            name=request.name,
            account_type=request.account_type,
            currency_code=request.currency_code,
            parent_account_id=request.parent_account_id,
            description=request.description,
            created_at=now,
            updated_at=now,
        )
        async with self.store.atomic():
            await self.store.insert_account(account)

        logger.info(
            f"계정 생성: {account.name}",
            extra={
                "account_id": account.id,
                "account_type": account.account_type.value,
                "currency_code": account.currency_code,
            },
        )
        await self._record(account.id, AuditAction.CREATE, {"after": _account_snapshot(account)})

        if request.initial_balance is not None:
            await self._post_adjustment(
                account,
                request.initial_balance,
                counter_name=f"{LedgerLimits.OPENING_BALANCES_ACCOUNT_NAME} ({account.currency_code})",
                description=f"Initial Balance: {account.name}",
            )

        return account

    # -------------------------------------------------------------------------
    # 수정
    # -------------------------------------------------------------------------

    async def update_account(self, account_id: str, patch: AccountPatch | dict[str, Any]) -> Account:
        """계정 수정 (name, description, parent_account_id)

        Raises:
            ValidationError: 자기 자신/순환 상위 지정, 유형 불일치
            NotFoundError: 계정 또는 상위 계정 없음
        """
        account = await self.get_account(account_id)
        request = parse_input(AccountPatch, patch)
        fields = request.model_fields_set

        changes: dict[str, Any] = {}
        if "name" in fields and request.name is not None:
            changes["name"] = request.name
        if "description" in fields:
            changes["description"] = request.description
        if "parent_account_id" in fields:
            await self._validate_parent(account, request.parent_account_id)
            changes["parent_account_id"] = request.parent_account_id

        if not changes:
            return account

        updated = dataclasses.replace(account, updated_at=now_ms(), **changes)
        async with self.store.atomic():
            await self.store.update_account(updated)

        logger.info(f"계정 수정: {updated.name}", extra={"account_id": account_id})
        await self._record(
            account_id,
            AuditAction.UPDATE,
            {"before": _account_snapshot(account), "after": _account_snapshot(updated)},
        )
        return updated

    async def _validate_parent(self, account: Account, parent_id: str | None) -> None:
        if parent_id is None:
            return
        if parent_id == account.id:
            raise ValidationError("An account cannot be its own parent")

        parent = await self.get_account(parent_id)
        if parent.account_type != account.account_type:
            raise ValidationError("Parent account must be of the same type")

        # 새 상위에서 루트까지 올라가며 자기 자신이 나오면 순환
        visited: set[str] = set()
        current: Account | None = parent
        while current is not None and current.parent_account_id is not None:
            if current.parent_account_id == account.id:
                raise ValidationError("Circular parent relationship detected")
            if current.id in visited:
                break
            visited.add(current.id)
            current = await self.store.get_account(current.parent_account_id, include_deleted=True)

    # -------------------------------------------------------------------------
    # 삭제 / 복구
    # -------------------------------------------------------------------------

    async def delete_account(self, account_id: str) -> None:
        """계정 soft-delete

        분개 라인은 그대로 남음 (이력 보존).

        Raises:
            ValidationError: 활성 하위 계정 존재
            NotFoundError: 계정 없음
        """
        account = await self.get_account(account_id)
        children = await self.store.get_child_accounts(account_id)
        if children:
            raise ValidationError(
                f"Account {account.name} has {len(children)} active sub-accounts"
            )

        now = now_ms()
        deleted = dataclasses.replace(account, deleted_at=now, updated_at=now)
        async with self.store.atomic():
            await self.store.update_account(deleted)

        logger.info(f"계정 삭제: {account.name}", extra={"account_id": account_id})
        await self._record(account_id, AuditAction.DELETE, {"before": _account_snapshot(account)})

    async def recover_account(self, account_id: str) -> Account:
        """soft-delete된 계정 복구

        Raises:
            NotFoundError: 계정 없음
        """
        account = await self.get_account(account_id, include_deleted=True)
        if account.is_active:
            return account

        recovered = dataclasses.replace(account, deleted_at=None, updated_at=now_ms())
        async with self.store.atomic():
            await self.store.update_account(recovered)

        logger.info(f"계정 복구: {account.name}", extra={"account_id": account_id})
        await self._record(account_id, AuditAction.UPDATE, {"action": "RECOVERED"})
        return recovered

    # -------------------------------------------------------------------------
    # 잔액 조정
    # -------------------------------------------------------------------------

    async def adjust_balance(self, account_id: str, target_balance: MoneyLike) -> Journal | None:
        """목표 잔액과의 차이를 조정 분개로 기록

        재구축 큐를 flush한 뒤의 정확한 잔액 기준으로 차이를 계산.

        Returns:
            조정 분개 (차이가 epsilon 이내면 None)
        """
        account = await self.get_account(account_id)
        await self.journal_service.rebuild_queue.flush()

        precision = await self.currency.get_precision(account.currency_code)
        current = await self.store.get_cached_balance(account_id)
        difference = safe_subtract(to_decimal(target_balance), current, precision)

        if amounts_are_equal(difference, 0, precision):
            logger.info(f"잔액 조정 불필요: {account.name}", extra={"account_id": account_id})
            return None

        logger.info(
            f"잔액 조정: {account.name} {current} → {target_balance}",
            extra={"account_id": account_id, "difference": str(difference)},
        )
        return await self._post_adjustment(
            account,
            difference,
            counter_name=f"{BALANCE_CORRECTION_ACCOUNT_NAME} ({account.currency_code})",
            description=f"Balance Adjustment: {account.name}",
        )

    async def _post_adjustment(
        self,
        account: Account,
        amount: Decimal,
        counter_name: str,
        description: str,
    ) -> Journal | None:
        """계정 잔액을 amount만큼 변경하는 2라인 분개 (상대: 자본 계정)

        amount > 0이면 계정 증가 방향, < 0이면 감소 방향.
        """
        precision = await self.currency.get_precision(account.currency_code)
        magnitude = round_to_precision(abs(amount), precision)
        if amounts_are_equal(magnitude, 0, precision):
            return None

        increase_side = (
            JournalSide.DEBIT if account.account_type.increases_on_debit else JournalSide.CREDIT
        )
        account_side = increase_side if amount > 0 else increase_side.opposite
        counter = await self._get_or_create_equity_account(counter_name, account.currency_code)

        return await self.journal_service.create_journal_with_transactions(
            CreateJournalData(
                journal_date=now_utc(),
                currency_code=account.currency_code,
                description=description,
                transactions=[
                    JournalLineInput(account_id=account.id, amount=magnitude, side=account_side),
                    JournalLineInput(
                        account_id=counter.id, amount=magnitude, side=account_side.opposite
                    ),
                ],
            )
        )

    async def _get_or_create_equity_account(self, name: str, currency_code: str) -> Account:
        existing = await self.store.find_account_by_name(name, AccountType.EQUITY, currency_code)
        if existing is not None:
            return existing
        return await self.create_account(
            AccountCreate(
                name=name,
                account_type=AccountType.EQUITY,
                currency_code=currency_code,
                description="System account",
            )
        )

    async def _record(self, account_id: str, action: AuditAction, changes: dict[str, Any]) -> None:
        """커밋 이후 감사 로그 + 변경 알림 (실패는 로깅만)"""
        if self.audit is not None:
            try:
                await self.audit.log(EntityKind.ACCOUNT, account_id, action, changes)
            except Exception as e:
                logger.error(
                    f"감사 로그 기록 실패: {e}",
                    extra={"entity_id": account_id, "action": action.value},
                    exc_info=True,
                )
        if self.notifier is not None:
            self.notifier.notify(
                LedgerChange(
                    entity_kind=EntityKind.ACCOUNT,
                    entity_id=account_id,
                    action=action,
                    affected_account_ids=(account_id,),
                )
            )

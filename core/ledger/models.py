"""
원장 레코드 모델

LedgerStore가 반환하는 행(row) 데이터 구조.
- 금액은 항상 Decimal (DB에는 TEXT로 저장)
- 날짜는 UTC epoch 밀리초 (INTEGER)
- deleted_at이 있으면 tombstone (soft-delete)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from core.types import AccountType, JournalSide, JournalStatus
from core.utils.timezone import utc_from_timestamp_ms


@dataclass
class Account:
    """계정

    account_type은 생성 후 변경 불가 (부호 규칙 고정).
    """

    id: str
    name: str
    account_type: AccountType
    currency_code: str
    parent_account_id: str | None = None
    description: str | None = None
    created_at: int = 0
    updated_at: int = 0
    deleted_at: int | None = None

    @property
    def is_active(self) -> bool:
        """soft-delete 되지 않은 계정인지 여부"""
        return self.deleted_at is None


@dataclass
class Journal:
    """분개 헤더

    total_amount, transaction_count는 분개 라인에서 파생된 캐시.
    """

    id: str
    journal_date: int
    currency_code: str
    status: JournalStatus
    description: str | None = None
    total_amount: Decimal = Decimal("0")
    transaction_count: int = 0
    original_journal_id: str | None = None  # 이 분개가 역분개인 경우 원 분개
    reversing_journal_id: str | None = None  # 이 분개를 취소한 역분개
    created_at: int = 0
    updated_at: int = 0
    deleted_at: int | None = None

    @property
    def is_active(self) -> bool:
        """soft-delete 되지 않은 분개인지 여부"""
        return self.deleted_at is None

    @property
    def is_reversal(self) -> bool:
        """다른 분개를 취소하기 위해 생성된 역분개인지 여부"""
        return self.original_journal_id is not None

    @property
    def is_locked(self) -> bool:
        """수정/삭제/역분개 불가 여부

        REVERSED 분개와 역분개 자체는 짝을 이루므로 둘 다 잠김.
        """
        return self.status == JournalStatus.REVERSED or self.is_reversal

    @property
    def journal_datetime(self) -> datetime:
        """분개일 (UTC datetime)"""
        return utc_from_timestamp_ms(self.journal_date)


@dataclass
class Transaction:
    """분개 라인

    amount는 항상 양수 크기. 부호는 side와 계정 유형에서 파생.
    running_balance는 재구축 가능한 비권위(non-authoritative) 캐시.
    """

    id: str
    journal_id: str
    account_id: str
    amount: Decimal
    side: JournalSide
    currency_code: str
    transaction_date: int
    exchange_rate: Decimal | None = None  # 계정 통화 금액 × rate = 분개 통화 금액
    running_balance: Decimal | None = None
    notes: str | None = None
    line_order: int = 0
    created_at: int = 0
    updated_at: int = 0
    deleted_at: int | None = None

    @property
    def is_active(self) -> bool:
        """soft-delete 되지 않은 라인인지 여부"""
        return self.deleted_at is None

    @property
    def effective_rate(self) -> Decimal:
        """환산 환율 (없으면 1)"""
        return self.exchange_rate if self.exchange_rate is not None else Decimal("1")

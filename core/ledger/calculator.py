"""
분개 합계 계산기

차변/대변 합계와 불균형 계산. 상태 없는 순수 함수.
라인 금액은 호출자가 분개 통화로 환산한 값을 사용한다 (BalanceLine.from_line).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol, Sequence

from core.ledger.accounting import convert_to_journal_currency
from core.types import JournalSide
from core.utils.money import (
    amounts_are_equal,
    round_to_precision,
    safe_add,
    safe_subtract,
)


class JournalLineLike(Protocol):
    """환율을 가진 분개 라인 (Transaction, JournalLineInput)"""

    amount: Decimal
    side: JournalSide
    exchange_rate: Decimal | None


@dataclass(frozen=True)
class BalanceLine:
    """분개 통화 기준 라인"""

    amount: Decimal
    side: JournalSide

    @classmethod
    def from_line(cls, line: JournalLineLike, precision: int) -> "BalanceLine":
        """환율을 적용하여 분개 통화 라인으로 변환"""
        return cls(
            amount=convert_to_journal_currency(line.amount, line.exchange_rate, precision),
            side=line.side,
        )


class JournalCalculator:
    """분개 합계 계산

    Example:
        >>> lines = [BalanceLine(Decimal("100"), JournalSide.DEBIT),
        ...          BalanceLine(Decimal("50"), JournalSide.CREDIT)]
        >>> JournalCalculator.imbalance(lines, 2)
        Decimal('50.00')
    """

    @staticmethod
    def _total(lines: Sequence[BalanceLine], side: JournalSide, precision: int) -> Decimal:
        total = round_to_precision(0, precision)
        for line in lines:
            if line.side == side:
                total = safe_add(total, line.amount, precision)
        return total

    @classmethod
    def total_debits(cls, lines: Sequence[BalanceLine], precision: int) -> Decimal:
        return cls._total(lines, JournalSide.DEBIT, precision)

    @classmethod
    def total_credits(cls, lines: Sequence[BalanceLine], precision: int) -> Decimal:
        return cls._total(lines, JournalSide.CREDIT, precision)

    @classmethod
    def imbalance(cls, lines: Sequence[BalanceLine], precision: int) -> Decimal:
        """차변 - 대변

        양수: 대변 부족, 음수: 차변 부족
        """
        return safe_subtract(
            cls.total_debits(lines, precision),
            cls.total_credits(lines, precision),
            precision,
        )

    @classmethod
    def is_balanced(cls, lines: Sequence[BalanceLine], precision: int) -> bool:
        return amounts_are_equal(
            cls.total_debits(lines, precision),
            cls.total_credits(lines, precision),
            precision,
        )

    @classmethod
    def journal_amount(cls, lines: Sequence[BalanceLine], precision: int) -> Decimal:
        """분개 총액 (차변 합계, 목록 표시용 캐시)"""
        return cls.total_debits(lines, precision)

"""
분개 검증기

쓰기 전에 수행되는 복식부기 규칙 검사.
오류는 사람이 읽을 수 있는 메시지 목록으로 반환 (불리언이 아님).
"""

from dataclasses import dataclass, field
from typing import Sequence

from core.constants import LedgerLimits
from core.ledger.calculator import BalanceLine, JournalCalculator, JournalLineLike
from core.ledger.errors import ValidationError
from core.utils.money import format_amount


@dataclass
class ValidationResult:
    """검증 결과"""

    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self) -> None:
        """오류가 있으면 ValidationError 발생"""
        if self.errors:
            raise ValidationError(self.errors)


class JournalValidator:
    """분개 규칙 검증

    규칙:
    1. 라인 2개 이상
    2. 0원 라인 금지, 금액은 양수
    3. 환율은 MIN_EXCHANGE_RATE 초과
    4. 차변 합계 == 대변 합계 (분개 통화, epsilon 이내)
    """

    @staticmethod
    def validate(lines: Sequence[JournalLineLike], precision: int) -> ValidationResult:
        """분개 라인 검증

        Args:
            lines: 분개 라인 (계정 통화 금액 + 환율)
            precision: 분개 통화 소수 자릿수

        Returns:
            ValidationResult
        """
        result = ValidationResult()

        if len(lines) < 2:
            result.errors.append("Journal must have at least 2 lines")

        if any(line.amount.is_zero() for line in lines):
            result.errors.append("Lines cannot have zero amount")

        if any(line.amount < 0 for line in lines):
            result.errors.append("Line amounts must be positive")

        bad_rates = [
            line.exchange_rate
            for line in lines
            if line.exchange_rate is not None
            and line.exchange_rate <= LedgerLimits.MIN_EXCHANGE_RATE
        ]
        if bad_rates:
            result.errors.append(
                f"Exchange rate must be greater than {LedgerLimits.MIN_EXCHANGE_RATE}"
            )
            # 잘못된 환율로는 균형 계산이 의미 없음
            return result

        balance_lines = [BalanceLine.from_line(line, precision) for line in lines]
        if not JournalCalculator.is_balanced(balance_lines, precision):
            debits = JournalCalculator.total_debits(balance_lines, precision)
            credits = JournalCalculator.total_credits(balance_lines, precision)
            imbalance = JournalCalculator.imbalance(balance_lines, precision)
            result.errors.append(
                f"Journal is unbalanced by {format_amount(imbalance, precision)} "
                f"(debits {format_amount(debits, precision)}, "
                f"credits {format_amount(credits, precision)})"
            )

        return result

    @staticmethod
    def validate_distinct_accounts(account_ids: Sequence[str]) -> list[str]:
        """서로 다른 계정 2개 이상 참조 여부"""
        if len(set(account_ids)) < 2:
            return ["Journal must reference at least 2 distinct accounts"]
        return []

"""
core/ledger/calculator.py 테스트
"""

from decimal import Decimal

from core.ledger.calculator import BalanceLine, JournalCalculator
from core.ledger.inputs import JournalLineInput
from core.types import JournalSide


def _line(amount: str, side: JournalSide) -> BalanceLine:
    return BalanceLine(Decimal(amount), side)


class TestJournalCalculator:
    """합계 / 불균형 계산 테스트"""

    def test_totals(self) -> None:
        lines = [
            _line("100", JournalSide.DEBIT),
            _line("60", JournalSide.CREDIT),
            _line("40", JournalSide.CREDIT),
        ]

        assert JournalCalculator.total_debits(lines, 2) == Decimal("100.00")
        assert JournalCalculator.total_credits(lines, 2) == Decimal("100.00")
        assert JournalCalculator.is_balanced(lines, 2)

    def test_imbalance_sign(self) -> None:
        """양수: 대변 부족"""
        lines = [_line("100", JournalSide.DEBIT), _line("50", JournalSide.CREDIT)]

        assert JournalCalculator.imbalance(lines, 2) == Decimal("50.00")
        assert not JournalCalculator.is_balanced(lines, 2)

    def test_balanced_within_epsilon(self) -> None:
        """0.1 + 0.2 == 0.3 (부동소수점 오차 없음)"""
        lines = [_line("0.1", JournalSide.DEBIT), _line("0.2", JournalSide.DEBIT),
                 _line("0.3", JournalSide.CREDIT)]

        assert JournalCalculator.is_balanced(lines, 2)

    def test_empty_lines(self) -> None:
        assert JournalCalculator.total_debits([], 2) == Decimal("0.00")
        assert JournalCalculator.is_balanced([], 2)

    def test_journal_amount_is_debit_total(self) -> None:
        lines = [_line("70", JournalSide.DEBIT), _line("70", JournalSide.CREDIT)]

        assert JournalCalculator.journal_amount(lines, 2) == Decimal("70.00")


class TestBalanceLine:
    """분개 통화 환산 테스트"""

    def test_from_line_with_rate(self) -> None:
        """EUR 100 @ 1.10 → USD 110.00"""
        line = JournalLineInput(
            account_id="eur", amount="100", side=JournalSide.DEBIT, exchange_rate="1.10"
        )

        converted = BalanceLine.from_line(line, 2)

        assert converted.amount == Decimal("110.00")
        assert converted.side == JournalSide.DEBIT

    def test_from_line_without_rate(self) -> None:
        line = JournalLineInput(account_id="usd", amount="110", side=JournalSide.CREDIT)

        assert BalanceLine.from_line(line, 2).amount == Decimal("110.00")

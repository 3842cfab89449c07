"""
계정 부호 규칙

금액은 항상 양수 크기로 저장되며, 잔액 영향(부호)은 계정 유형과
차변/대변 방향에서 파생된다.

    ASSET, EXPENSE          → DEBIT 증가, CREDIT 감소
    LIABILITY, EQUITY, INCOME → CREDIT 증가, DEBIT 감소
"""

from decimal import Decimal
from typing import Iterable, Protocol

from core.types import AccountType, JournalSide
from core.utils.money import MoneyLike, round_to_precision, safe_add, safe_multiply


class SidedAmount(Protocol):
    """amount/side 속성을 가진 라인 (Transaction, JournalLineInput)"""

    amount: Decimal
    side: JournalSide


def get_balance_impact_multiplier(account_type: AccountType, side: JournalSide) -> int:
    """잔액 영향 배수

    Returns:
        증가 방향이면 1, 감소 방향이면 -1
    """
    return 1 if is_balance_increase(account_type, side) else -1


def is_balance_increase(account_type: AccountType, side: JournalSide) -> bool:
    """해당 방향의 기록이 계정 잔액을 증가시키는지 여부"""
    if account_type.increases_on_debit:
        return side == JournalSide.DEBIT
    return side == JournalSide.CREDIT


def signed_amount(
    amount: MoneyLike,
    account_type: AccountType,
    side: JournalSide,
    precision: int,
) -> Decimal:
    """계정 관점의 부호 있는 금액"""
    magnitude = round_to_precision(amount, precision)
    return magnitude * get_balance_impact_multiplier(account_type, side)


def convert_to_journal_currency(
    amount: MoneyLike,
    exchange_rate: MoneyLike | None,
    precision: int,
) -> Decimal:
    """계정 통화 금액을 분개 통화 금액으로 환산

    rate가 없으면 동일 통화로 간주 (rate=1).
    """
    if exchange_rate is None:
        return round_to_precision(amount, precision)
    return safe_multiply(amount, exchange_rate, precision)


def accumulate_running_balances(
    lines: Iterable[SidedAmount],
    account_type: AccountType,
    precision: int,
    opening_balance: MoneyLike = 0,
) -> list[Decimal]:
    """순서대로 누적한 잔액 목록

    Args:
        lines: 원장 순서로 정렬된 라인
        account_type: 계정 유형 (부호 결정)
        precision: 계정 통화 소수 자릿수
        opening_balance: 시작 잔액 (부분 재구축 시 직전 잔액)

    Returns:
        각 라인 이후의 잔액 (lines와 같은 순서)
    """
    balance = round_to_precision(opening_balance, precision)
    balances: list[Decimal] = []
    for line in lines:
        delta = signed_amount(line.amount, account_type, line.side, precision)
        balance = safe_add(balance, delta, precision)
        balances.append(balance)
    return balances

"""
금액 연산 유틸리티

통화별 소수 자릿수(precision)를 고려한 고정 소수점 연산.
모든 금액은 Decimal로 다루며, 연산 직후 즉시 반올림하여 누적 오차를 차단.

반올림 규칙: ROUND_HALF_UP (0.5는 0에서 먼 쪽으로)
    round_to_precision(10.555, 2) == 10.56
    round_to_precision(10.554, 2) == 10.55
    round_to_precision(100.5, 0) == 101
    round_to_precision(-2.5, 0) == -3

금액 비교는 반드시 amounts_are_equal()을 사용 (== 직접 비교 금지).
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MoneyLike = Decimal | int | float | str

ROUNDING_MODE = ROUND_HALF_UP


def to_decimal(value: MoneyLike) -> Decimal:
    """금액 값을 Decimal로 변환

    float는 str()을 거쳐 변환하여 2진 부동소수점 잔여값을 제거.
    (Decimal(0.1) → 0.1000000000000000055511151231257827...)

    Args:
        value: Decimal, int, float, 또는 숫자 문자열

    Returns:
        Decimal 값

    Raises:
        ValueError: 숫자로 해석할 수 없는 값
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    else:
        raise ValueError(f"Invalid amount: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def _quantum(precision: int) -> Decimal:
    """소수 자릿수에 해당하는 최소 단위 (precision=2 → 0.01)"""
    if precision < 0:
        raise ValueError(f"Precision must be >= 0: {precision}")
    return Decimal(1).scaleb(-precision)


def round_to_precision(amount: MoneyLike, precision: int) -> Decimal:
    """지정한 소수 자릿수로 반올림 (ROUND_HALF_UP)

    Args:
        amount: 금액
        precision: 소수 자릿수 (0, 2, 3 ...)

    Returns:
        반올림된 Decimal
    """
    return to_decimal(amount).quantize(_quantum(precision), rounding=ROUNDING_MODE)


def epsilon(precision: int) -> Decimal:
    """금액 비교 허용 오차 (최소 단위의 절반)

    precision=2 → 0.005, precision=0 → 0.5
    """
    return Decimal("0.5") * _quantum(precision)


def amounts_are_equal(a: MoneyLike, b: MoneyLike, precision: int) -> bool:
    """두 금액이 허용 오차 이내로 같은지 확인"""
    return abs(to_decimal(a) - to_decimal(b)) < epsilon(precision)


def safe_add(a: MoneyLike, b: MoneyLike, precision: int) -> Decimal:
    """덧셈 후 즉시 반올림"""
    return round_to_precision(to_decimal(a) + to_decimal(b), precision)


def safe_subtract(a: MoneyLike, b: MoneyLike, precision: int) -> Decimal:
    """뺄셈 후 즉시 반올림"""
    return round_to_precision(to_decimal(a) - to_decimal(b), precision)


def safe_multiply(a: MoneyLike, b: MoneyLike, precision: int) -> Decimal:
    """곱셈 후 즉시 반올림 (환율 환산용)"""
    return round_to_precision(to_decimal(a) * to_decimal(b), precision)


def format_amount(amount: MoneyLike, precision: int) -> str:
    """고정 소수점 문자열로 포맷 (메시지/로그 표시용)

    반올림 규칙은 round_to_precision과 동일.

    Example:
        >>> format_amount(50, 2)
        '50.00'
    """
    rounded = round_to_precision(amount, precision)
    if rounded.is_zero():
        rounded = abs(rounded)
    return f"{rounded:f}"

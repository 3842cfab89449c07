"""
유틸리티 패키지

금액 연산(MoneyMath), 타임존 처리 등 공통 유틸리티
"""

from core.utils.money import (
    amounts_are_equal,
    epsilon,
    format_amount,
    round_to_precision,
    safe_add,
    safe_multiply,
    safe_subtract,
    to_decimal,
)
from core.utils.timezone import (
    ensure_utc,
    now_ms,
    now_utc,
    to_timestamp_ms,
    utc_from_timestamp_ms,
)

__all__ = [
    # money
    "amounts_are_equal",
    "epsilon",
    "format_amount",
    "round_to_precision",
    "safe_add",
    "safe_multiply",
    "safe_subtract",
    "to_decimal",
    # timezone
    "ensure_utc",
    "now_ms",
    "now_utc",
    "to_timestamp_ms",
    "utc_from_timestamp_ms",
]

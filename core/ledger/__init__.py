"""
복식부기 (Double-Entry Bookkeeping) 원장

분개(journal)와 분개 라인(transaction)의 저장, 검증, 잔액 계산.

사용 예시:
```python
from core.ledger import LedgerStore, JournalValidator, JournalCalculator

store = LedgerStore(db)

# 검증
result = JournalValidator.validate(lines, precision=2)
result.raise_if_invalid()

# 캐시 잔액 조회
balance = await store.get_cached_balance(account_id)
```
"""

from core.ledger.calculator import BalanceLine, JournalCalculator
from core.ledger.errors import (
    JournalStateError,
    LedgerError,
    NotFoundError,
    StoreWriteError,
    ValidationError,
)
from core.ledger.models import Account, Journal, Transaction
from core.ledger.store import BALANCE_STATUSES, LedgerStore
from core.ledger.validator import JournalValidator, ValidationResult

__all__ = [
    # 핵심 클래스
    "LedgerStore",
    "JournalCalculator",
    "JournalValidator",
    "ValidationResult",
    "BalanceLine",
    # 모델
    "Account",
    "Journal",
    "Transaction",
    # 예외
    "LedgerError",
    "ValidationError",
    "JournalStateError",
    "NotFoundError",
    "StoreWriteError",
    # 상수
    "BALANCE_STATUSES",
]

"""
무결성 점검 모듈

캐시 잔액 검증 및 자동 복구
"""

from engine.integrity.checker import (
    BalanceVerificationResult,
    IntegrityChecker,
    IntegrityCheckResult,
    JournalImbalance,
)

__all__ = [
    "BalanceVerificationResult",
    "IntegrityChecker",
    "IntegrityCheckResult",
    "JournalImbalance",
]

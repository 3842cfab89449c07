"""
Mock 어댑터

테스트용 Mock 구현체 제공.
Protocol 준수하여 실제 구현체와 교체 가능.
"""

from adapters.mock.audit import AuditRecord, MockAuditSink
from adapters.mock.currency import MockCurrencyService

__all__ = [
    "AuditRecord",
    "MockAuditSink",
    "MockCurrencyService",
]

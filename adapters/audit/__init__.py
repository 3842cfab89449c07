"""
감사 로그 어댑터

audit_logs 테이블에 엔티티 변경 이력 기록.
"""

from adapters.audit.sqlite_audit import SQLiteAuditLogger

__all__ = [
    "SQLiteAuditLogger",
]

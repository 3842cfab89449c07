"""
Mock 감사 로그

테스트용 Mock Audit Sink.
IAuditSink Protocol 준수.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from core.types import AuditAction, EntityKind


@dataclass
class AuditRecord:
    """감사 로그 기록"""

    entity_type: EntityKind
    entity_id: str
    action: AuditAction
    changes: dict[str, Any] | None
    timestamp: datetime


class MockAuditSink:
    """Mock 감사 로그

    기록된 모든 항목을 보관하여 테스트에서 검증 가능.

    사용 예시:
    ```python
    audit = MockAuditSink()
    service = JournalService(store, queue, currency, audit=audit)

    await service.create_journal_with_transactions(data)

    assert audit.records[0].action == AuditAction.CREATE
    ```
    """

    def __init__(self, should_fail: bool = False):
        """
        Args:
            should_fail: True면 모든 기록 실패 (에러 시나리오 테스트용)
        """
        self.should_fail = should_fail
        self.records: list[AuditRecord] = []

    async def log(
        self,
        entity_type: EntityKind,
        entity_id: str,
        action: AuditAction,
        changes: dict[str, Any] | None = None,
    ) -> None:
        """변경 기록"""
        if self.should_fail:
            raise RuntimeError("Mock audit failure")
        self.records.append(
            AuditRecord(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                changes=changes,
                timestamp=datetime.now(timezone.utc),
            )
        )

    def get_records(
        self,
        entity_type: EntityKind | None = None,
        action: AuditAction | None = None,
    ) -> list[AuditRecord]:
        """조건별 기록 조회"""
        return [
            r
            for r in self.records
            if (entity_type is None or r.entity_type == entity_type)
            and (action is None or r.action == action)
        ]

    def clear(self) -> None:
        """기록 초기화"""
        self.records.clear()

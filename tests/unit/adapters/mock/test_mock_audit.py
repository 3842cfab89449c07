"""
MockAuditSink 테스트
"""

import pytest

from adapters.mock.audit import MockAuditSink
from core.types import AuditAction, EntityKind


class TestMockAuditSink:
    """Mock 감사 로그 테스트"""

    @pytest.mark.asyncio
    async def test_records_and_filters(self) -> None:
        audit = MockAuditSink()

        await audit.log(EntityKind.JOURNAL, "j-1", AuditAction.CREATE, {"after": {}})
        await audit.log(EntityKind.ACCOUNT, "a-1", AuditAction.UPDATE)

        assert len(audit.records) == 2
        assert [r.entity_id for r in audit.get_records(entity_type=EntityKind.JOURNAL)] == ["j-1"]
        assert [r.entity_id for r in audit.get_records(action=AuditAction.UPDATE)] == ["a-1"]

        audit.clear()
        assert audit.records == []

    @pytest.mark.asyncio
    async def test_should_fail(self) -> None:
        audit = MockAuditSink(should_fail=True)

        with pytest.raises(RuntimeError):
            await audit.log(EntityKind.JOURNAL, "j-1", AuditAction.DELETE)
        assert audit.records == []

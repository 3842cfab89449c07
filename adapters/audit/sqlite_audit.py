"""
SQLite 감사 로그

IAuditSink Protocol 준수.
코어 입장에서는 쓰기 전용 채널. 조회 메서드는 감사 로그 뷰어용.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.types import AuditAction, EntityKind
from core.utils.timezone import now_ms

logger = logging.getLogger(__name__)


@dataclass
class AuditEntry:
    """감사 로그 항목"""

    id: int
    entity_type: str
    entity_id: str
    action: str
    changes: dict[str, Any] | None
    created_at: int


class SQLiteAuditLogger:
    """audit_logs 테이블 기록기

    Args:
        db: 연결된 SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def log(
        self,
        entity_type: EntityKind,
        entity_id: str,
        action: AuditAction,
        changes: dict[str, Any] | None = None,
    ) -> None:
        """엔티티 변경 기록

        Decimal 등 JSON 비호환 값은 문자열로 직렬화.
        """
        payload = json.dumps(changes, default=str, ensure_ascii=False) if changes else None
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO audit_logs (entity_type, entity_id, action, changes, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (entity_type.value, entity_id, action.value, payload, now_ms()),
            )
        logger.debug(f"감사 로그 기록: {entity_type.value} {entity_id} {action.value}")

    async def get_audit_trail(self, entity_type: EntityKind, entity_id: str) -> list[AuditEntry]:
        """엔티티 변경 이력 (오래된 순)"""
        rows = await self.db.fetchall(
            """
            SELECT id, entity_type, entity_id, action, changes, created_at
            FROM audit_logs
            WHERE entity_type = ? AND entity_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (entity_type.value, entity_id),
        )
        return [self._row_to_entry(row) for row in rows]

    async def get_recent_logs(self, limit: int = 100) -> list[AuditEntry]:
        """최근 감사 로그 (최신 순)"""
        rows = await self.db.fetchall(
            """
            SELECT id, entity_type, entity_id, action, changes, created_at
            FROM audit_logs
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row: tuple[Any, ...]) -> AuditEntry:
        return AuditEntry(
            id=row[0],
            entity_type=row[1],
            entity_id=row[2],
            action=row[3],
            changes=json.loads(row[4]) if row[4] else None,
            created_at=row[5],
        )

"""
원장 변경 알림

커밋된 변경마다 LedgerChange를 발행.
구독/푸시 메커니즘은 코어 밖의 어댑터가 담당하며, 코어는 동기 조회 +
"변경됨" 훅만 제공한다.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from core.types import AuditAction, EntityKind
from core.utils.timezone import now_ms

logger = logging.getLogger(__name__)

ChangeListener = Callable[["LedgerChange"], None]


@dataclass(frozen=True)
class LedgerChange:
    """원장 변경 이벤트

    affected_account_ids: 잔액 캐시가 무효화된 계정
    """

    entity_kind: EntityKind
    entity_id: str
    action: AuditAction
    affected_account_ids: tuple[str, ...] = ()
    ts: int = field(default_factory=now_ms)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환 (직렬화용)"""
        return {
            "entity_kind": self.entity_kind.value,
            "entity_id": self.entity_id,
            "action": self.action.value,
            "affected_account_ids": list(self.affected_account_ids),
            "ts": self.ts,
        }


class ChangeNotifier:
    """변경 알림 훅

    리스너 예외는 로깅만 하고 전파하지 않는다 (이미 커밋된 변경).
    """

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """리스너 등록

        Returns:
            구독 해제 함수
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def notify(self, change: LedgerChange) -> None:
        """변경 알림 발행"""
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(
                    f"변경 알림 리스너 오류: {e}",
                    extra={"entity_id": change.entity_id, "action": change.action.value},
                    exc_info=True,
                )

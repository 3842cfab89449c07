"""
분개 생명주기

POSTED 분개만 수정/삭제/역분개 가능.
역분개가 끝난 원 분개(REVERSED)와 역분개 자신은 더 이상 바꿀 수 없다.

    POSTED ──reverse──▶ REVERSED (종료)
"""

import logging
from enum import Enum

from core.ledger.errors import JournalStateError
from core.types import JournalStatus

logger = logging.getLogger(__name__)


class JournalAction(str, Enum):
    """분개에 대한 변경 작업"""

    UPDATE = "modified"
    DELETE = "deleted"
    REVERSE = "reversed"


class JournalLifecycle:
    """분개 하나의 상태와 허용 작업

    Args:
        status: 현재 상태
        is_reversal: 이 분개가 다른 분개의 역분개인지
        journal_id: 오류 메시지/로그용 ID
    """

    ALLOWED: dict[JournalStatus, frozenset[JournalAction]] = {
        JournalStatus.POSTED: frozenset(JournalAction),
        JournalStatus.REVERSED: frozenset(),
    }

    def __init__(
        self,
        status: JournalStatus | str = JournalStatus.POSTED,
        is_reversal: bool = False,
        journal_id: str = "",
    ):
        self.status = JournalStatus(status)
        self.is_reversal = is_reversal
        self.journal_id = journal_id

    @property
    def is_terminal(self) -> bool:
        return not self.is_reversal and not self.ALLOWED[self.status]

    def allows(self, action: JournalAction) -> bool:
        if self.is_reversal:
            return False
        return action in self.ALLOWED[self.status]

    def require(self, action: JournalAction) -> None:
        """작업이 허용되지 않으면 JournalStateError"""
        if self.allows(action):
            return

        if self.is_reversal:
            raise JournalStateError(
                f"Journal {self.journal_id} is a reversal journal and cannot be {action.value}"
            )
        if action is JournalAction.REVERSE:
            raise JournalStateError(f"Journal {self.journal_id} is already reversed")
        raise JournalStateError(
            f"Journal {self.journal_id} is {self.status.value.lower()} and cannot be {action.value}"
        )

    def reverse(self) -> JournalStatus:
        """POSTED → REVERSED"""
        self.require(JournalAction.REVERSE)
        previous, self.status = self.status, JournalStatus.REVERSED
        logger.debug(
            "분개 상태 전이",
            extra={
                "journal_id": self.journal_id,
                "from_status": previous.value,
                "to_status": self.status.value,
            },
        )
        return self.status

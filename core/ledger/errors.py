"""
원장 예외 정의

- ValidationError: 쓰기 전에 거부 (부작용 없음)
- NotFoundError: 존재하지 않거나 soft-delete된 계정/분개
- JournalStateError: 잠긴 분개(REVERSED, 역분개) 수정 시도
- StoreWriteError: 원자적 쓰기 실패 (롤백됨, 부분 상태 없음)
"""

from typing import Iterable


class LedgerError(Exception):
    """원장 예외 기본 클래스"""

    pass


class ValidationError(LedgerError):
    """검증 실패

    사람이 읽을 수 있는 오류 목록을 보관.
    """

    def __init__(self, errors: Iterable[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors))


class JournalStateError(ValidationError):
    """분개 상태 때문에 허용되지 않는 작업"""

    pass


class NotFoundError(LedgerError):
    """엔티티 없음"""

    def __init__(self, entity_kind: str, entity_id: str):
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} {entity_id} not found")


class StoreWriteError(LedgerError):
    """저장소 쓰기 실패"""

    pass

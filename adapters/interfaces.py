"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 Mock 교체 가능.
모든 구현체는 이 Protocol을 준수해야 함.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from core.types import AuditAction, EntityKind


@runtime_checkable
class ICurrencyService(Protocol):
    """통화 정보 조회 인터페이스

    코어는 통화 정밀도와 환율을 외부 의존성으로만 취급한다.
    """

    async def get_precision(self, currency_code: str) -> int:
        """통화 소수 자릿수

        Args:
            currency_code: 통화 코드 (예: USD, JPY)

        Returns:
            소수 자릿수 (USD=2, JPY=0, KWD=3)
        """
        ...

    async def get_exchange_rate(
        self,
        from_currency: str,
        to_currency: str,
        as_of: datetime | date | None = None,
    ) -> Decimal:
        """환율 조회

        from_currency 1단위 = 반환값 × to_currency

        Raises:
            NotFoundError: 환율 정보 없음
        """
        ...


@runtime_checkable
class IAuditSink(Protocol):
    """감사 로그 기록 인터페이스 (쓰기 전용)"""

    async def log(
        self,
        entity_type: EntityKind,
        entity_id: str,
        action: AuditAction,
        changes: dict[str, Any] | None = None,
    ) -> None:
        """엔티티 변경 기록

        Args:
            entity_type: 엔티티 종류
            entity_id: 엔티티 ID
            action: CREATE / UPDATE / DELETE
            changes: {"before": ..., "after": ...}
        """
        ...

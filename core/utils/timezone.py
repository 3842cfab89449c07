"""
타임존 유틸리티

내부 저장: UTC epoch 밀리초 원칙 준수를 위한 헬퍼 함수.
분개일(journal_date), 생성 시각(created_at), 삭제 시각(deleted_at) 모두
INTEGER 밀리초로 저장하여 정렬 순서를 보장.
"""

from datetime import date, datetime, time, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """현재 UTC 시간을 밀리초 타임스탬프로 반환"""
    return to_timestamp_ms(now_utc())


def ensure_utc(value: datetime | date) -> datetime:
    """datetime/date를 UTC datetime으로 정규화

    - naive datetime은 UTC로 간주
    - date는 해당 일자 00:00 UTC로 변환

    Args:
        value: datetime 또는 date

    Returns:
        UTC datetime
    """
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_from_timestamp_ms(ts_ms: int) -> datetime:
    """밀리초 타임스탬프를 UTC datetime으로 변환

    Args:
        ts_ms: Unix 타임스탬프 (밀리초)

    Returns:
        UTC datetime

    Example:
        >>> utc_from_timestamp_ms(1708444800000)
        datetime(2024, 2, 20, 16, 0, 0, tzinfo=timezone.utc)
    """
    return datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc)


def to_timestamp_ms(dt: datetime | date) -> int:
    """datetime을 밀리초 타임스탬프로 변환

    Args:
        dt: datetime 또는 date (naive면 UTC로 간주)

    Returns:
        Unix 타임스탬프 (밀리초)
    """
    utc = ensure_utc(dt)
    return int(utc.timestamp() * 1000)

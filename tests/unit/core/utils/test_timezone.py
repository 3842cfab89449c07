"""
core/utils/timezone.py 테스트
"""

from datetime import date, datetime, timedelta, timezone

from core.utils.timezone import (
    ensure_utc,
    now_ms,
    now_utc,
    to_timestamp_ms,
    utc_from_timestamp_ms,
)


class TestTimezone:
    """UTC / epoch 밀리초 변환 테스트"""

    def test_now_utc_has_tzinfo(self) -> None:
        assert now_utc().tzinfo == timezone.utc

    def test_now_ms_is_int(self) -> None:
        assert isinstance(now_ms(), int)

    def test_naive_datetime_is_utc(self) -> None:
        naive = datetime(2024, 1, 15, 9, 30)
        assert ensure_utc(naive) == datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)

    def test_aware_datetime_converted(self) -> None:
        kst = timezone(timedelta(hours=9))
        value = datetime(2024, 1, 15, 9, 0, tzinfo=kst)
        assert ensure_utc(value) == datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)

    def test_date_is_midnight_utc(self) -> None:
        assert ensure_utc(date(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_roundtrip_ms(self) -> None:
        value = datetime(2024, 2, 20, 16, 0, tzinfo=timezone.utc)
        ms = to_timestamp_ms(value)
        assert ms == 1708444800000
        assert utc_from_timestamp_ms(ms) == value

    def test_date_ordering_preserved(self) -> None:
        assert to_timestamp_ms(date(2024, 1, 1)) < to_timestamp_ms(date(2024, 1, 2))

"""CurrencyService 통합 테스트"""

from datetime import date
from decimal import Decimal

import pytest

from adapters.currency.service import CurrencyService
from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.interfaces import ICurrencyService
from core.ledger.errors import NotFoundError, ValidationError


@pytest.fixture
def service(db: SQLiteAdapter) -> CurrencyService:
    return CurrencyService(db, default_precision=2)


class TestPrecision:
    """소수 자릿수 조회 테스트"""

    def test_protocol_compliance(self, service: CurrencyService) -> None:
        assert isinstance(service, ICurrencyService)

    @pytest.mark.asyncio
    async def test_registered_currency(self, service: CurrencyService) -> None:
        await service.upsert_currency("btc", 8, name="Bitcoin", symbol="₿")

        assert await service.get_precision("BTC") == 8
        assert await service.get_precision("btc") == 8

    @pytest.mark.asyncio
    async def test_upsert_overwrites(self, service: CurrencyService) -> None:
        await service.upsert_currency("USD", 2)
        await service.upsert_currency("USD", 4)

        assert await service.get_precision("USD") == 4

    @pytest.mark.asyncio
    async def test_fallback_precisions(self, service: CurrencyService) -> None:
        """미등록 통화: 통화별 기본값 → 설정 기본값"""
        assert await service.get_precision("JPY") == 0
        assert await service.get_precision("XYZ") == 2

    @pytest.mark.asyncio
    async def test_negative_precision_rejected(self, service: CurrencyService) -> None:
        with pytest.raises(ValidationError):
            await service.upsert_currency("USD", -1)


class TestExchangeRates:
    """환율 조회 테스트"""

    @pytest.mark.asyncio
    async def test_same_currency_is_one(self, service: CurrencyService) -> None:
        assert await service.get_exchange_rate("USD", "usd") == Decimal("1")

    @pytest.mark.asyncio
    async def test_latest_rate_as_of(self, service: CurrencyService) -> None:
        await service.save_exchange_rate("EUR", "USD", "1.05", effective_date=date(2024, 1, 1))
        await service.save_exchange_rate("EUR", "USD", "1.10", effective_date=date(2024, 3, 1))

        assert await service.get_exchange_rate("EUR", "USD", date(2024, 2, 1)) == Decimal("1.05")
        assert await service.get_exchange_rate("EUR", "USD", date(2024, 3, 1)) == Decimal("1.10")
        assert await service.get_exchange_rate("EUR", "USD") == Decimal("1.10")

    @pytest.mark.asyncio
    async def test_inverse_fallback(self, service: CurrencyService) -> None:
        await service.save_exchange_rate("USD", "JPY", "150", effective_date=date(2024, 1, 1))

        rate = await service.get_exchange_rate("JPY", "USD")

        assert rate == (Decimal("1") / Decimal("150")).quantize(Decimal("0.0000000001"))

    @pytest.mark.asyncio
    async def test_rate_before_effective_date_missing(self, service: CurrencyService) -> None:
        await service.save_exchange_rate("EUR", "USD", "1.10", effective_date=date(2024, 3, 1))

        with pytest.raises(NotFoundError):
            await service.get_exchange_rate("EUR", "USD", date(2024, 1, 1))

    @pytest.mark.asyncio
    async def test_unknown_pair(self, service: CurrencyService) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            await service.get_exchange_rate("EUR", "GBP")

        assert "EUR/GBP" in str(exc_info.value)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate", ["0", "-1.5", "0.000001"])
    async def test_non_positive_rate_rejected(self, service: CurrencyService, rate: str) -> None:
        with pytest.raises(ValidationError):
            await service.save_exchange_rate("EUR", "USD", rate)

"""
Mock 통화 서비스

테스트용 메모리 기반 통화 서비스.
ICurrencyService Protocol 준수.
"""

from datetime import date, datetime
from decimal import Decimal

from core.constants import Defaults, LedgerLimits
from core.ledger.errors import NotFoundError
from core.utils.money import MoneyLike, to_decimal


class MockCurrencyService:
    """Mock 통화 서비스

    사용 예시:
    ```python
    currency = MockCurrencyService(precisions={"USD": 2, "JPY": 0})
    currency.set_rate("EUR", "USD", "1.10")

    assert await currency.get_precision("JPY") == 0
    assert await currency.get_exchange_rate("EUR", "USD") == Decimal("1.10")
    ```
    """

    def __init__(
        self,
        precisions: dict[str, int] | None = None,
        default_precision: int = Defaults.PRECISION,
        should_fail: bool = False,
    ):
        """
        Args:
            precisions: 통화별 소수 자릿수
            default_precision: 미등록 통화 자릿수
            should_fail: True면 모든 조회 실패 (에러 시나리오 테스트용)
        """
        self.precisions = {k.upper(): v for k, v in (precisions or {}).items()}
        self.default_precision = default_precision
        self.should_fail = should_fail
        self.rates: dict[tuple[str, str], Decimal] = {}
        self.precision_calls: list[str] = []

    def set_rate(self, from_currency: str, to_currency: str, rate: MoneyLike) -> None:
        """환율 설정"""
        self.rates[(from_currency.upper(), to_currency.upper())] = to_decimal(rate)

    async def get_precision(self, currency_code: str) -> int:
        """통화 소수 자릿수"""
        if self.should_fail:
            raise RuntimeError("Mock currency lookup failure")
        code = currency_code.upper()
        self.precision_calls.append(code)
        if code in self.precisions:
            return self.precisions[code]
        return LedgerLimits.FALLBACK_PRECISIONS.get(code, self.default_precision)

    async def get_exchange_rate(
        self,
        from_currency: str,
        to_currency: str,
        as_of: datetime | date | None = None,
    ) -> Decimal:
        """환율 조회 (as_of 무시)"""
        if self.should_fail:
            raise RuntimeError("Mock currency lookup failure")
        src, dst = from_currency.upper(), to_currency.upper()
        if src == dst:
            return Decimal("1")
        if (src, dst) in self.rates:
            return self.rates[(src, dst)]
        if (dst, src) in self.rates:
            return Decimal("1") / self.rates[(dst, src)]
        raise NotFoundError("exchange_rate", f"{src}/{dst}")

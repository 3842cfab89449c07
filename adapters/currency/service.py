"""
통화 서비스

currencies 테이블에서 소수 자릿수, exchange_rates 테이블에서 환율 조회.
ICurrencyService Protocol 준수.

정밀도 조회 순서:
1. currencies 테이블
2. 통화별 기본 자릿수 (JPY/KRW=0, KWD/BHD=3)
3. 설정 기본값 (ledger.default_precision)
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults, LedgerLimits
from core.ledger.errors import NotFoundError, ValidationError
from core.utils.money import MoneyLike, to_decimal
from core.utils.timezone import now_ms, to_timestamp_ms

logger = logging.getLogger(__name__)

# 역환율 계산 시 유효 자릿수
_INVERSE_RATE_PLACES = Decimal("0.0000000001")


class CurrencyService:
    """통화 서비스

    Args:
        db: 연결된 SQLite 어댑터
        default_precision: 미등록 통화의 소수 자릿수
    """

    def __init__(self, db: SQLiteAdapter, default_precision: int = Defaults.PRECISION):
        self.db = db
        self.default_precision = default_precision

    async def get_precision(self, currency_code: str) -> int:
        """통화 소수 자릿수"""
        code = currency_code.upper()
        row = await self.db.fetchone(
            "SELECT precision FROM currencies WHERE code = ?",
            (code,),
        )
        if row is not None:
            return int(row[0])
        return LedgerLimits.FALLBACK_PRECISIONS.get(code, self.default_precision)

    async def get_exchange_rate(
        self,
        from_currency: str,
        to_currency: str,
        as_of: datetime | date | None = None,
    ) -> Decimal:
        """환율 조회

        - 같은 통화: 1
        - as_of 이전(포함) 최신 환율
        - 역방향만 있으면 역수

        Raises:
            NotFoundError: 환율 정보 없음
        """
        src = from_currency.upper()
        dst = to_currency.upper()
        if src == dst:
            return Decimal("1")

        as_of_ms = to_timestamp_ms(as_of) if as_of is not None else now_ms()

        direct = await self._latest_rate(src, dst, as_of_ms)
        if direct is not None:
            return direct

        reverse = await self._latest_rate(dst, src, as_of_ms)
        if reverse is not None and not reverse.is_zero():
            return (Decimal("1") / reverse).quantize(_INVERSE_RATE_PLACES)

        raise NotFoundError("exchange_rate", f"{src}/{dst}")

    async def _latest_rate(self, src: str, dst: str, as_of_ms: int) -> Decimal | None:
        row = await self.db.fetchone(
            """
            SELECT rate FROM exchange_rates
            WHERE from_currency = ? AND to_currency = ? AND effective_date <= ?
            ORDER BY effective_date DESC, id DESC
            LIMIT 1
            """,
            (src, dst, as_of_ms),
        )
        return Decimal(row[0]) if row else None

    async def upsert_currency(
        self,
        code: str,
        precision: int,
        name: str | None = None,
        symbol: str | None = None,
    ) -> None:
        """통화 등록/갱신"""
        if precision < 0:
            raise ValidationError(f"Precision must be >= 0: {precision}")
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO currencies (code, name, symbol, precision)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(code) DO UPDATE SET
                    name = excluded.name,
                    symbol = excluded.symbol,
                    precision = excluded.precision
                """,
                (code.upper(), name, symbol, precision),
            )
        logger.debug(f"통화 등록: {code.upper()} (precision={precision})")

    async def save_exchange_rate(
        self,
        from_currency: str,
        to_currency: str,
        rate: MoneyLike,
        effective_date: datetime | date | None = None,
        source: str | None = None,
    ) -> None:
        """환율 저장

        Raises:
            ValidationError: MIN_EXCHANGE_RATE 이하의 환율
        """
        rate_dec = to_decimal(rate)
        if rate_dec <= LedgerLimits.MIN_EXCHANGE_RATE:
            raise ValidationError(
                f"Exchange rate must be greater than {LedgerLimits.MIN_EXCHANGE_RATE}"
            )
        effective_ms = (
            to_timestamp_ms(effective_date) if effective_date is not None else now_ms()
        )
        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO exchange_rates (
                    from_currency, to_currency, rate, effective_date, source, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    from_currency.upper(),
                    to_currency.upper(),
                    str(rate_dec),
                    effective_ms,
                    source,
                    now_ms(),
                ),
            )
        logger.debug(
            f"환율 저장: {from_currency.upper()}/{to_currency.upper()} = {rate_dec}",
            extra={"source": source},
        )

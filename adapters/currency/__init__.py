"""
통화 어댑터

currencies / exchange_rates 테이블 기반 정밀도 및 환율 조회.
"""

from adapters.currency.service import CurrencyService

__all__ = [
    "CurrencyService",
]

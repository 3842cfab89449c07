"""
입력 스키마 (Pydantic)

서비스 경계에서 검증되는 생성/수정 요청.
수정(Patch) 타입은 변경 가능한 필드만 나열하며, 실제로 전달된 필드
(model_fields_set)만 적용됨.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.ledger.errors import ValidationError
from core.types import AccountType, JournalSide
from core.utils.money import to_decimal

ModelT = TypeVar("ModelT", bound=BaseModel)


def _normalize_currency(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


class _InputModel(BaseModel):
    """입력 모델 공통 설정 (불변, 알 수 없는 필드 거부)"""

    model_config = ConfigDict(frozen=True, extra="forbid")


class JournalLineInput(_InputModel):
    """분개 라인 입력

    amount는 계정 통화 기준 양수 크기.
    """

    account_id: str = Field(..., min_length=1, description="계정 ID")
    amount: Decimal = Field(..., description="금액 (양수)")
    side: JournalSide = Field(..., description="DEBIT 또는 CREDIT")
    exchange_rate: Decimal | None = Field(
        default=None,
        description="계정 통화 → 분개 통화 환율 (None이면 1)",
    )
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("amount", "exchange_rate", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        if value is None:
            return None
        return to_decimal(value)


class CreateJournalData(_InputModel):
    """분개 생성 요청"""

    journal_date: datetime | date = Field(..., description="분개일 (정렬 기준)")
    currency_code: str = Field(..., min_length=3, max_length=10)
    description: str | None = Field(default=None, max_length=255)
    transactions: list[JournalLineInput] = Field(default_factory=list)

    @field_validator("currency_code", mode="before")
    @classmethod
    def _upper_currency(cls, value: Any) -> Any:
        return _normalize_currency(value)


class JournalUpdate(_InputModel):
    """분개 수정 요청

    transactions는 필수 (전체 라인 교체).
    journal_date, currency_code, description은 전달된 경우에만 변경.
    """

    transactions: list[JournalLineInput] = Field(...)
    journal_date: datetime | date | None = None
    currency_code: str | None = Field(default=None, min_length=3, max_length=10)
    description: str | None = Field(default=None, max_length=255)

    @field_validator("currency_code", mode="before")
    @classmethod
    def _upper_currency(cls, value: Any) -> Any:
        return _normalize_currency(value)


class AccountCreate(_InputModel):
    """계정 생성 요청

    initial_balance가 있으면 기초 잔액 분개를 함께 기록.
    (양수: 계정 증가 방향, 음수: 감소 방향)
    """

    name: str = Field(..., min_length=1, max_length=100)
    account_type: AccountType
    currency_code: str = Field(..., min_length=3, max_length=10)
    parent_account_id: str | None = None
    description: str | None = Field(default=None, max_length=255)
    initial_balance: Decimal | None = None

    @field_validator("currency_code", mode="before")
    @classmethod
    def _upper_currency(cls, value: Any) -> Any:
        return _normalize_currency(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return " ".join(value.split())
        return value

    @field_validator("initial_balance", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        if value is None:
            return None
        return to_decimal(value)


class AccountPatch(_InputModel):
    """계정 수정 요청

    account_type, currency_code는 변경 불가 (필드 없음).
    parent_account_id=None을 명시적으로 전달하면 최상위로 이동.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=255)
    parent_account_id: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            return " ".join(value.split())
        return value


def parse_input(model_cls: type[ModelT], data: ModelT | dict[str, Any]) -> ModelT:
    """입력을 모델로 변환 (경계 검증)

    Args:
        model_cls: 대상 모델 클래스
        data: 모델 인스턴스 또는 dict

    Returns:
        검증된 모델 인스턴스

    Raises:
        ValidationError: 스키마 검증 실패
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except pydantic.ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(errors) from e

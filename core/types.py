"""
타입 정의 모듈

원장 시스템에서 사용하는 Enum 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class AccountType(str, Enum):
    """계정 유형 (복식부기 5대 계정)

    계정 생성 후 변경 불가. 증가 방향은 유형에서 결정됨.
    """

    ASSET = "ASSET"  # 자산 (현금, 예금)
    LIABILITY = "LIABILITY"  # 부채 (카드, 대출)
    EQUITY = "EQUITY"  # 자본 (기초 잔액)
    INCOME = "INCOME"  # 수익 (급여, 이자)
    EXPENSE = "EXPENSE"  # 비용 (식비, 교통비)

    @property
    def increases_on_debit(self) -> bool:
        """차변 기록 시 잔액이 증가하는 유형인지 여부"""
        return self in (AccountType.ASSET, AccountType.EXPENSE)


class JournalSide(str, Enum):
    """분개 방향 (차변/대변)"""

    DEBIT = "DEBIT"  # 차변 (자산/비용 증가)
    CREDIT = "CREDIT"  # 대변 (부채/자본/수익 증가)

    @property
    def opposite(self) -> "JournalSide":
        """반대 방향 (역분개용)"""
        if self is JournalSide.DEBIT:
            return JournalSide.CREDIT
        return JournalSide.DEBIT


class JournalStatus(str, Enum):
    """분개 상태

    POSTED → REVERSED 전이만 허용 (1회, 종료 상태)
    """

    POSTED = "POSTED"
    REVERSED = "REVERSED"


class EntityKind(str, Enum):
    """Entity 종류 (감사 로그, 변경 알림용)"""

    ACCOUNT = "account"
    JOURNAL = "journal"
    TRANSACTION = "transaction"


class AuditAction(str, Enum):
    """감사 로그 행위"""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    CURRENCY: str = "USD"
    PRECISION: int = 2

    LOG_LEVEL: str = "INFO"

    # SQLite
    DB_BUSY_TIMEOUT_MS: int = 30_000
    LEDGER_SCHEMA_VERSION: int = 1

    # Rebuild Queue
    REBUILD_RETRY_LIMIT: int = 3
    REBUILD_RETRY_DELAY_SEC: float = 2.0
    REBUILD_MAX_CONCURRENCY: int = 5

    # Integrity Check
    INTEGRITY_RUN_ON_STARTUP: bool = True
    INTEGRITY_ACCOUNT_TIMEOUT_SEC: float = 30.0


class LedgerLimits:
    """원장 검증 한계값"""

    # 이 값 이하의 환율은 거부 (0 나눗셈 및 비현실적 환율 방지)
    MIN_EXCHANGE_RATE: Decimal = Decimal("0.000001")

    # 통화별 기본 소수 자릿수 (currencies 테이블에 없을 때 사용)
    FALLBACK_PRECISIONS: dict[str, int] = {
        "JPY": 0,
        "KRW": 0,
        "KWD": 3,
        "BHD": 3,
    }

    OPENING_BALANCES_ACCOUNT_NAME: str = "Opening Balances"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    LEDGER_DB: Path = DATA_DIR / "ledger.db"

"""
설정 로더

settings.yaml 로드 및 원장 엔진 설정 생성.
기본 경로에 파일이 없으면 내장 기본값 사용.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from core.constants import PROJECT_ROOT, Defaults, Paths

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    """DB 설정"""

    path: Path = Paths.LEDGER_DB
    busy_timeout_ms: int = Defaults.DB_BUSY_TIMEOUT_MS


@dataclass(frozen=True)
class LedgerConfig:
    """원장 기본값

    default_precision은 currencies 테이블과 통화별 기본 자릿수에 없는
    통화에 적용된다.
    """

    default_currency: str = Defaults.CURRENCY
    default_precision: int = Defaults.PRECISION


@dataclass(frozen=True)
class RebuildQueueConfig:
    """잔액 재구축 큐 설정"""

    retry_limit: int = Defaults.REBUILD_RETRY_LIMIT
    retry_delay_seconds: float = Defaults.REBUILD_RETRY_DELAY_SEC
    max_concurrency: int = Defaults.REBUILD_MAX_CONCURRENCY


@dataclass(frozen=True)
class IntegrityConfig:
    """무결성 점검 설정"""

    run_on_startup: bool = Defaults.INTEGRITY_RUN_ON_STARTUP
    account_timeout_seconds: float = Defaults.INTEGRITY_ACCOUNT_TIMEOUT_SEC


@dataclass(frozen=True)
class LoggingConfig:
    """로깅 레벨 설정"""

    console_level: str = Defaults.LOG_LEVEL
    file_level: str = Defaults.LOG_LEVEL

    @property
    def console_level_no(self) -> int:
        return logging.getLevelName(self.console_level)

    @property
    def file_level_no(self) -> int:
        return logging.getLevelName(self.file_level)


@dataclass(frozen=True)
class LedgerSettings:
    """전체 설정 (불변)"""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    rebuild_queue: RebuildQueueConfig = field(default_factory=RebuildQueueConfig)
    integrity: IntegrityConfig = field(default_factory=IntegrityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class SettingsLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise SettingsLoadError(f"settings.yaml의 '{name}' 섹션은 매핑이어야 합니다")
    return value


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SettingsLoadError(message)


def parse_settings(data: dict[str, Any], base_dir: Path | None = None) -> LedgerSettings:
    """dict를 LedgerSettings로 변환 (범위 검증 포함)

    Args:
        data: yaml.safe_load 결과
        base_dir: 상대 DB 경로의 기준 디렉토리 (None이면 현재 작업 디렉토리 기준)

    Raises:
        SettingsLoadError: 값이 잘못된 경우
    """
    db = _section(data, "database")
    ledger = _section(data, "ledger")
    queue = _section(data, "rebuild_queue")
    integrity = _section(data, "integrity")
    log = _section(data, "logging")

    try:
        db_path = Path(db.get("path", Paths.LEDGER_DB))
        if not db_path.is_absolute() and base_dir is not None:
            db_path = base_dir / db_path
        busy_timeout_ms = int(db.get("busy_timeout_ms", Defaults.DB_BUSY_TIMEOUT_MS))

        ledger_config = LedgerConfig(
            default_currency=str(ledger.get("default_currency", Defaults.CURRENCY)).upper(),
            default_precision=int(ledger.get("default_precision", Defaults.PRECISION)),
        )
        queue_config = RebuildQueueConfig(
            retry_limit=int(queue.get("retry_limit", Defaults.REBUILD_RETRY_LIMIT)),
            retry_delay_seconds=float(
                queue.get("retry_delay_seconds", Defaults.REBUILD_RETRY_DELAY_SEC)
            ),
            max_concurrency=int(queue.get("max_concurrency", Defaults.REBUILD_MAX_CONCURRENCY)),
        )
        integrity_config = IntegrityConfig(
            run_on_startup=bool(integrity.get("run_on_startup", Defaults.INTEGRITY_RUN_ON_STARTUP)),
            account_timeout_seconds=float(
                integrity.get("account_timeout_seconds", Defaults.INTEGRITY_ACCOUNT_TIMEOUT_SEC)
            ),
        )
        logging_config = LoggingConfig(
            console_level=str(log.get("console_level", Defaults.LOG_LEVEL)).upper(),
            file_level=str(log.get("file_level", Defaults.LOG_LEVEL)).upper(),
        )
    except (TypeError, ValueError) as e:
        raise SettingsLoadError(f"settings.yaml 값 변환 실패: {e}") from e

    _require(busy_timeout_ms >= 0, "database.busy_timeout_ms는 0 이상이어야 합니다")
    _require(0 <= ledger_config.default_precision <= 8, "ledger.default_precision은 0~8이어야 합니다")
    _require(len(ledger_config.default_currency) >= 3, "ledger.default_currency가 올바르지 않습니다")
    _require(queue_config.retry_limit >= 0, "rebuild_queue.retry_limit은 0 이상이어야 합니다")
    _require(queue_config.retry_delay_seconds >= 0, "rebuild_queue.retry_delay_seconds는 0 이상이어야 합니다")
    _require(queue_config.max_concurrency >= 1, "rebuild_queue.max_concurrency는 1 이상이어야 합니다")
    _require(
        integrity_config.account_timeout_seconds > 0,
        "integrity.account_timeout_seconds는 0보다 커야 합니다",
    )
    for level in (logging_config.console_level, logging_config.file_level):
        _require(level in _LOG_LEVELS, f"유효하지 않은 로그 레벨입니다: '{level}'")

    return LedgerSettings(
        database=DatabaseConfig(path=db_path, busy_timeout_ms=busy_timeout_ms),
        ledger=ledger_config,
        rebuild_queue=queue_config,
        integrity=integrity_config,
        logging=logging_config,
    )


def load_settings(path: Path | None = None) -> LedgerSettings:
    """settings.yaml 파일 로드

    Args:
        path: settings.yaml 경로 (None이면 기본 경로, 없으면 기본값)

    Returns:
        LedgerSettings 인스턴스

    Raises:
        SettingsLoadError: 지정한 파일이 없거나 형식이 잘못된 경우
    """
    explicit = path is not None
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        if explicit:
            raise SettingsLoadError(f"settings.yaml 파일을 찾을 수 없습니다: {path}")
        return LedgerSettings()

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        return LedgerSettings()
    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 매핑이어야 합니다")

    return parse_settings(data, base_dir=PROJECT_ROOT)


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: LedgerSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(settings_path)

    @property
    def values(self) -> LedgerSettings:
        """로드된 설정 값"""
        assert self._settings is not None
        return self._settings

    @property
    def db_path(self) -> Path:
        """원장 DB 경로"""
        return self.values.database.path

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> LedgerSettings:
    """설정 반환 (프로세스 전역)

    Args:
        settings_path: settings.yaml 경로 (최초 호출에만 적용)

    Returns:
        LedgerSettings
    """
    return Settings(settings_path).values

"""
로깅 설정

엔진과 점검 스크립트가 공유하는 루트 로거 구성.

- 콘솔(stdout) + 일 단위 롤링 파일(logs/<process>.log)
- 원장 코드는 logger.xxx(msg, extra={...})로 계정/분개 ID를 남기므로
  LedgerFormatter가 extra 필드를 메시지 뒤에 key=value로 붙인다
- aiosqlite/asyncio는 쿼리마다 로그를 남기므로 WARNING으로 낮춤
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.constants import Paths

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_RETENTION_DAYS = 7

NOISY_LOGGERS = ("aiosqlite", "asyncio")

# LogRecord 기본 속성 (extra로 들어온 필드만 골라내기 위함)
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class LedgerFormatter(logging.Formatter):
    """extra 필드를 ' | key=value ...' 형태로 덧붙이는 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        fields = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if not fields:
            return text

        extras = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        # 예외 traceback이 붙은 경우 첫 줄 뒤에 삽입
        head, sep, tail = text.partition("\n")
        return f"{head} | {extras}{sep}{tail}"


def get_log_file_path(process_name: str, log_dir: Path | None = None) -> Path:
    return (log_dir or Paths.LOGS_DIR) / f"{process_name}.log"


def _file_handler(log_file: Path, level: int) -> TimedRotatingFileHandler:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=log_file,
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
    )
    handler.suffix = "%Y-%m-%d"  # engine.log.2026-10-19
    handler.setLevel(level)
    return handler


def setup_logging(
    process_name: str,
    console_level: int = logging.INFO,
    file_level: int = logging.INFO,
    log_dir: Path | None = None,
) -> logging.Logger:
    """루트 로거 재구성 (기존 핸들러는 제거)

    Args:
        process_name: 로그 파일 이름 (engine, check_db)
        console_level: stdout 핸들러 레벨
        file_level: 파일 핸들러 레벨
        log_dir: 로그 디렉토리 (None이면 Paths.LOGS_DIR)

    Returns:
        루트 Logger
    """
    log_file = get_log_file_path(process_name, log_dir)
    formatter = LedgerFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # 레벨 필터링은 핸들러에서
    root.setLevel(logging.DEBUG)
    for handler in (console, _file_handler(log_file, file_level)):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        f"로깅 초기화: {process_name}",
        extra={
            "console_level": logging.getLevelName(console_level),
            "file_level": logging.getLevelName(file_level),
            "log_file": str(log_file),
        },
    )
    return root

"""
Ledger Engine Bootstrap

설정 로드, 의존성 주입, 시작/종료 관리.

- 모든 컴포넌트는 생성자 주입 (전역 싱글턴 없음, 설정만 프로세스 단위)
- start(): 스키마 초기화 후 시작 무결성 점검을 백그라운드 태스크로 실행
- stop(): 재구축 큐 flush 후 연결 종료
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from adapters.audit.sqlite_audit import SQLiteAuditLogger
from adapters.currency.service import CurrencyService
from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.interfaces import IAuditSink, ICurrencyService
from core.config.loader import LedgerSettings, SettingsLoadError, get_settings
from core.domain.events import ChangeNotifier
from core.ledger.schema import init_ledger_schema
from core.ledger.store import LedgerStore
from core.logging import setup_logging
from engine.accounts.service import AccountService
from engine.integrity.checker import IntegrityChecker, IntegrityCheckResult
from engine.journal.service import JournalService
from engine.rebuild.queue import BalanceRebuildQueue
from engine.rebuild.rebuilder import RunningBalanceRebuilder

logger = logging.getLogger(__name__)


class LedgerEngine:
    """원장 엔진

    모든 컴포넌트를 조립하고 생명주기 관리.

    Args:
        settings: 설정 객체
        db: SQLite 어댑터 (start()에서 연결)
        currency: 통화 서비스 (None이면 DB 기반 CurrencyService)
        audit: 감사 로그 (None이면 SQLiteAuditLogger)
    """

    def __init__(
        self,
        settings: LedgerSettings,
        db: SQLiteAdapter,
        currency: ICurrencyService | None = None,
        audit: IAuditSink | None = None,
    ):
        self.settings = settings
        self.db = db

        # 저장소 / 어댑터
        self.store = LedgerStore(db)
        self.currency = currency or CurrencyService(db, settings.ledger.default_precision)
        self.audit = audit or SQLiteAuditLogger(db)
        self.notifier = ChangeNotifier()

        # 잔액 재구축
        self.rebuilder = RunningBalanceRebuilder(self.store, self.currency)
        self.rebuild_queue = BalanceRebuildQueue(
            self.rebuilder,
            retry_limit=settings.rebuild_queue.retry_limit,
            retry_delay_seconds=settings.rebuild_queue.retry_delay_seconds,
            max_concurrency=settings.rebuild_queue.max_concurrency,
        )

        # 서비스
        self.journals = JournalService(
            self.store,
            self.rebuild_queue,
            self.currency,
            audit=self.audit,
            notifier=self.notifier,
        )
        self.accounts = AccountService(
            self.store,
            self.journals,
            self.currency,
            audit=self.audit,
            notifier=self.notifier,
        )
        self.integrity = IntegrityChecker(
            self.store,
            self.currency,
            self.rebuilder,
            account_timeout_seconds=settings.integrity.account_timeout_seconds,
        )

        self._startup_check_task: asyncio.Task[IntegrityCheckResult] | None = None
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """엔진 시작

        스키마 초기화 직후 사용 가능 상태가 되며,
        시작 무결성 점검은 백그라운드에서 진행된다.
        """
        if self._started:
            return

        await self.db.connect()
        await init_ledger_schema(self.db)
        self._started = True
        logger.info("원장 엔진 시작", extra={"db_path": str(self.db.db_path)})

        if self.settings.integrity.run_on_startup:
            self._startup_check_task = asyncio.create_task(
                self.integrity.run_startup_check(),
                name="integrity:startup",
            )

    async def wait_for_startup_check(self) -> IntegrityCheckResult | None:
        """시작 무결성 점검 결과 대기 (점검을 실행하지 않았으면 None)"""
        if self._startup_check_task is None:
            return None
        return await self._startup_check_task

    async def stop(self) -> None:
        """엔진 종료

        진행 중인 시작 점검은 취소, 대기 중인 재구축은 모두 완료 후 종료.
        """
        if not self._started:
            return

        logger.info("원장 엔진 종료 중...")

        if self._startup_check_task is not None and not self._startup_check_task.done():
            self._startup_check_task.cancel()
            await asyncio.gather(self._startup_check_task, return_exceptions=True)

        await self.rebuild_queue.flush()
        await self.rebuild_queue.stop()

        if self.rebuild_queue.stale_accounts:
            logger.warning(
                f"재구축 실패 계정 {len(self.rebuild_queue.stale_accounts)}개 (다음 시작 점검에서 복구)",
                extra={"stale_accounts": sorted(self.rebuild_queue.stale_accounts)},
            )

        await self.db.close()
        self._started = False
        logger.info("원장 엔진 종료 완료")

    async def __aenter__(self) -> "LedgerEngine":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


def format_summary(result: IntegrityCheckResult) -> str:
    """무결성 점검 요약 텍스트"""
    lines = [
        "=" * 60,
        "Ledger integrity check",
        "=" * 60,
        f"Accounts:            {result.total_accounts}",
        f"Accounts checked:    {result.accounts_checked}",
        f"Discrepancies found: {result.discrepancies_found}",
        f"Repairs attempted:   {result.repairs_attempted}",
        f"Repairs successful:  {result.repairs_successful}",
        f"Duration:            {result.duration_ms:.1f} ms",
    ]
    for account_id in result.failed_accounts:
        lines.append(f"  FAILED      {account_id}")
    for account_id in result.stale_accounts:
        lines.append(f"  STALE       {account_id}")
    for imbalance in result.unbalanced_journals:
        lines.append(
            f"  UNBALANCED  {imbalance.journal_id} "
            f"(debits {imbalance.total_debits}, credits {imbalance.total_credits})"
        )
    if result.error:
        lines.append(f"  ERROR       {result.error}")
    lines.append("Status: " + ("OK" if result.is_healthy else "ATTENTION REQUIRED"))
    return "\n".join(lines)


async def run_integrity_check(settings: LedgerSettings) -> IntegrityCheckResult:
    """1회성 무결성 점검 (시작 점검을 동기적으로 실행)"""
    async with SQLiteAdapter(
        settings.database.path, busy_timeout_ms=settings.database.busy_timeout_ms
    ) as db:
        engine = LedgerEngine(settings, db)
        await engine.start()
        try:
            result = await engine.wait_for_startup_check()
            if result is None:
                result = await engine.integrity.run_startup_check()
        finally:
            await engine.stop()
    return result


async def main(argv: list[str] | None = None) -> int:
    """원장 엔진 메인 함수

    Returns:
        종료 코드 (0: 정상, 1: 점검 이상, 2: 설정 오류)
    """
    parser = argparse.ArgumentParser(description="원장 무결성 점검")
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="settings.yaml 경로 (기본: config/settings.yaml)",
    )
    args = parser.parse_args(argv)

    try:
        settings = get_settings(args.settings)
    except SettingsLoadError as e:
        print(f"설정 로드 실패: {e}", file=sys.stderr)
        return 2

    setup_logging(
        "engine",
        console_level=settings.logging.console_level_no,
        file_level=settings.logging.file_level_no,
    )
    logger.info(f"DB: {settings.database.path}")

    result = await run_integrity_check(settings)
    print(format_summary(result))
    return 0 if result.is_healthy else 1


def cli() -> None:
    """콘솔 스크립트 진입점"""
    sys.exit(asyncio.run(main()))

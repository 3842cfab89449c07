"""
IntegrityChecker

running_balance 캐시를 권위 있는 값(활성 라인 전체로부터 새로 계산)과 비교하고,
불일치 계정은 재구축 루틴을 동기 호출하여 복구.

- 계정별 실패(저장소 오류, 타임아웃)는 로깅 후 건너뜀 (전체 점검 중단 없음)
- run_startup_check()는 절대 예외를 던지지 않음 (요약에만 반영)
- 복구 후에도 불일치하면 stale로 보고 (캐시는 그대로, 데이터 손실 없음)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal

from adapters.interfaces import ICurrencyService
from core.ledger.accounting import accumulate_running_balances
from core.ledger.calculator import BalanceLine, JournalCalculator
from core.ledger.errors import NotFoundError
from core.ledger.models import Journal
from core.ledger.store import LedgerStore
from core.utils.money import epsilon, round_to_precision, safe_subtract
from engine.rebuild.rebuilder import RunningBalanceRebuilder

logger = logging.getLogger(__name__)


@dataclass
class BalanceVerificationResult:
    """계정 잔액 검증 결과"""

    account_id: str
    account_name: str
    cached_balance: Decimal
    computed_balance: Decimal
    discrepancy: Decimal  # |cached - computed|
    matches: bool


@dataclass
class JournalImbalance:
    """복식부기 불변식을 위반한 분개"""

    journal_id: str
    total_debits: Decimal
    total_credits: Decimal
    imbalance: Decimal


@dataclass
class BalanceScanResult:
    """전체 계정 검증 결과"""

    total_accounts: int = 0
    results: list[BalanceVerificationResult] = field(default_factory=list)
    failed_accounts: list[str] = field(default_factory=list)

    @property
    def mismatches(self) -> list[BalanceVerificationResult]:
        return [r for r in self.results if not r.matches]


@dataclass
class IntegrityCheckResult:
    """시작 점검 요약"""

    total_accounts: int = 0
    accounts_checked: int = 0
    discrepancies_found: int = 0
    repairs_attempted: int = 0
    repairs_successful: int = 0
    results: list[BalanceVerificationResult] = field(default_factory=list)
    failed_accounts: list[str] = field(default_factory=list)
    stale_accounts: list[str] = field(default_factory=list)
    unbalanced_journals: list[JournalImbalance] = field(default_factory=list)
    duration_ms: float = 0.0
    error: str | None = None

    @property
    def is_healthy(self) -> bool:
        """복구 후 남은 문제가 없는지 여부"""
        return (
            self.error is None
            and not self.failed_accounts
            and not self.stale_accounts
            and not self.unbalanced_journals
        )


class IntegrityChecker:
    """원장 무결성 점검기

    Args:
        store: 원장 저장소
        currency: 통화 서비스
        rebuilder: 재구축 루틴 (복구용, 큐와 동일)
        account_timeout_seconds: 계정별 검증 시간 상한
    """

    def __init__(
        self,
        store: LedgerStore,
        currency: ICurrencyService,
        rebuilder: RunningBalanceRebuilder,
        account_timeout_seconds: float = 30.0,
    ):
        self.store = store
        self.currency = currency
        self.rebuilder = rebuilder
        self.account_timeout_seconds = account_timeout_seconds

    async def compute_balance_from_transactions(self, account_id: str) -> Decimal:
        """활성 라인 전체로부터 잔액 계산 (캐시 미사용)

        Raises:
            NotFoundError: 계정 없음
        """
        account = await self.store.get_account(account_id, include_deleted=True)
        if account is None:
            raise NotFoundError("account", account_id)

        precision = await self.currency.get_precision(account.currency_code)
        lines = await self.store.get_ordered_postings(account_id)
        balances = accumulate_running_balances(lines, account.account_type, precision)
        return balances[-1] if balances else round_to_precision(0, precision)

    async def verify_account_balance(self, account_id: str) -> BalanceVerificationResult:
        """캐시 잔액과 계산 잔액 비교

        Raises:
            NotFoundError: 계정 없음
        """
        account = await self.store.get_account(account_id, include_deleted=True)
        if account is None:
            raise NotFoundError("account", account_id)

        precision = await self.currency.get_precision(account.currency_code)
        computed = await self.compute_balance_from_transactions(account_id)
        cached = await self.store.get_cached_balance(account_id)
        discrepancy = abs(safe_subtract(cached, computed, precision))

        return BalanceVerificationResult(
            account_id=account_id,
            account_name=account.name,
            cached_balance=cached,
            computed_balance=computed,
            discrepancy=discrepancy,
            matches=discrepancy < epsilon(precision),
        )

    async def verify_all_account_balances(self) -> BalanceScanResult:
        """모든 활성 계정 검증

        계정별 실패/타임아웃은 로깅 후 failed_accounts에 기록하고 계속 진행.
        """
        accounts = await self.store.list_accounts()
        scan = BalanceScanResult(total_accounts=len(accounts))

        for account in accounts:
            try:
                result = await asyncio.wait_for(
                    self.verify_account_balance(account.id),
                    timeout=self.account_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"잔액 검증 타임아웃: {account.name}",
                    extra={
                        "account_id": account.id,
                        "timeout_seconds": self.account_timeout_seconds,
                    },
                )
                scan.failed_accounts.append(account.id)
                continue
            except Exception as e:
                logger.error(
                    f"잔액 검증 실패: {account.name}",
                    extra={"account_id": account.id, "error": str(e)},
                    exc_info=True,
                )
                scan.failed_accounts.append(account.id)
                continue

            scan.results.append(result)
            if not result.matches:
                logger.warning(
                    f"잔액 불일치: {account.name}",
                    extra={
                        "account_id": account.id,
                        "cached": str(result.cached_balance),
                        "computed": str(result.computed_balance),
                        "discrepancy": str(result.discrepancy),
                    },
                )

        return scan

    async def repair_account_balance(self, account_id: str) -> BalanceVerificationResult:
        """전체 재구축 후 재검증

        Returns:
            재구축 이후의 검증 결과
        """
        result = await self.rebuilder.rebuild_running_balances(account_id)
        logger.info(
            "잔액 복구 실행",
            extra={"account_id": account_id, "rows_updated": result.rows_updated},
        )
        return await self.verify_account_balance(account_id)

    async def verify_journal_balances(self) -> list[JournalImbalance]:
        """활성 분개의 차변/대변 균형 검사

        분개별 실패/타임아웃은 로깅 후 건너뜀.
        """
        unbalanced: list[JournalImbalance] = []
        precisions: dict[str, int] = {}

        for journal in await self.store.list_journals():
            try:
                precision, balance_lines = await asyncio.wait_for(
                    self._load_balance_lines(journal, precisions),
                    timeout=self.account_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"분개 균형 검사 타임아웃: {journal.id}",
                    extra={
                        "journal_id": journal.id,
                        "timeout_seconds": self.account_timeout_seconds,
                    },
                )
                continue
            except Exception as e:
                logger.error(
                    f"분개 균형 검사 실패: {journal.id}",
                    extra={"journal_id": journal.id, "error": str(e)},
                    exc_info=True,
                )
                continue

            if not JournalCalculator.is_balanced(balance_lines, precision):
                imbalance = JournalImbalance(
                    journal_id=journal.id,
                    total_debits=JournalCalculator.total_debits(balance_lines, precision),
                    total_credits=JournalCalculator.total_credits(balance_lines, precision),
                    imbalance=JournalCalculator.imbalance(balance_lines, precision),
                )
                unbalanced.append(imbalance)
                logger.warning(
                    f"불균형 분개 발견: {journal.id}",
                    extra={"journal_id": journal.id, "imbalance": str(imbalance.imbalance)},
                )

        return unbalanced

    async def _load_balance_lines(
        self,
        journal: Journal,
        precisions: dict[str, int],
    ) -> tuple[int, list[BalanceLine]]:
        if journal.currency_code not in precisions:
            precisions[journal.currency_code] = await self.currency.get_precision(
                journal.currency_code
            )
        precision = precisions[journal.currency_code]
        lines = await self.store.get_transactions_by_journal(journal.id)
        return precision, [BalanceLine.from_line(line, precision) for line in lines]

    async def run_startup_check(self) -> IntegrityCheckResult:
        """시작 시 전체 점검 + 자동 복구

        절대 예외를 던지지 않음. 모든 실패는 로깅 후 요약에 반영.
        """
        summary = IntegrityCheckResult()
        started = time.monotonic()
        logger.info("무결성 점검 시작")

        try:
            scan = await self.verify_all_account_balances()
            summary.total_accounts = scan.total_accounts
            summary.accounts_checked = len(scan.results)
            summary.failed_accounts = list(scan.failed_accounts)
            summary.results = list(scan.results)

            mismatches = scan.mismatches
            summary.discrepancies_found = len(mismatches)

            for mismatch in mismatches:
                summary.repairs_attempted += 1
                try:
                    repaired = await asyncio.wait_for(
                        self.repair_account_balance(mismatch.account_id),
                        timeout=self.account_timeout_seconds,
                    )
                except asyncio.TimeoutError:
                    logger.error(
                        f"잔액 복구 타임아웃: {mismatch.account_name}",
                        extra={
                            "account_id": mismatch.account_id,
                            "timeout_seconds": self.account_timeout_seconds,
                        },
                    )
                    summary.stale_accounts.append(mismatch.account_id)
                    continue
                except Exception as e:
                    logger.error(
                        f"잔액 복구 실패: {mismatch.account_name}",
                        extra={"account_id": mismatch.account_id, "error": str(e)},
                        exc_info=True,
                    )
                    summary.stale_accounts.append(mismatch.account_id)
                    continue

                if repaired.matches:
                    summary.repairs_successful += 1
                else:
                    summary.stale_accounts.append(mismatch.account_id)
                    logger.error(
                        f"복구 후에도 불일치: {mismatch.account_name}",
                        extra={
                            "account_id": mismatch.account_id,
                            "discrepancy": str(repaired.discrepancy),
                        },
                    )

            summary.unbalanced_journals = await self.verify_journal_balances()

        except Exception as e:
            summary.error = str(e)
            logger.error(f"무결성 점검 중단: {e}", exc_info=True)

        summary.duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            "무결성 점검 완료",
            extra={
                "accounts_checked": summary.accounts_checked,
                "discrepancies_found": summary.discrepancies_found,
                "repairs_attempted": summary.repairs_attempted,
                "repairs_successful": summary.repairs_successful,
                "failed_accounts": len(summary.failed_accounts),
                "duration_ms": summary.duration_ms,
            },
        )
        return summary

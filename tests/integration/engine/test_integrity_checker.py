"""IntegrityChecker 통합 테스트"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from core.ledger.store import LedgerStore
from core.types import AccountType
from engine.integrity.checker import IntegrityChecker
from engine.journal.service import JournalService
from engine.rebuild.rebuilder import RunningBalanceRebuilder


async def _corrupt_last_line(store: LedgerStore, account_id: str, value: str) -> None:
    lines = await store.get_ordered_postings(account_id)
    async with store.atomic():
        await store.update_running_balances([(lines[-1].id, Decimal(value))], 1)


@pytest_asyncio.fixture
async def ledger(journal_service: JournalService, make_account, post_journal):
    """Wallet 177.00 / Food 23.00 / Salary 200.00"""
    wallet = await make_account("Wallet", AccountType.ASSET)
    salary = await make_account("Salary", AccountType.INCOME)
    food = await make_account("Food", AccountType.EXPENSE)
    await post_journal(wallet, salary, "200.00", date(2024, 1, 1))
    await post_journal(food, wallet, "5.50", date(2024, 1, 2))
    await post_journal(food, wallet, "17.50", date(2024, 1, 3))
    await journal_service.rebuild_queue.flush()
    return {"wallet": wallet, "salary": salary, "food": food}


class TestVerification:
    """잔액 검증 테스트"""

    @pytest.mark.asyncio
    async def test_computed_balance(self, integrity_checker: IntegrityChecker, ledger) -> None:
        computed = await integrity_checker.compute_balance_from_transactions(ledger["wallet"].id)

        assert computed == Decimal("177.00")

    @pytest.mark.asyncio
    async def test_consistent_account_matches(
        self, integrity_checker: IntegrityChecker, ledger
    ) -> None:
        result = await integrity_checker.verify_account_balance(ledger["wallet"].id)

        assert result.matches
        assert result.discrepancy == Decimal("0")
        assert result.account_name == "Wallet"

    @pytest.mark.asyncio
    async def test_corrupted_cache_detected(
        self, integrity_checker: IntegrityChecker, store: LedgerStore, ledger
    ) -> None:
        await _corrupt_last_line(store, ledger["wallet"].id, "180.00")

        result = await integrity_checker.verify_account_balance(ledger["wallet"].id)

        assert not result.matches
        assert result.cached_balance == Decimal("180.00")
        assert result.computed_balance == Decimal("177.00")
        assert result.discrepancy == Decimal("3.00")

    @pytest.mark.asyncio
    async def test_scan_all(
        self, integrity_checker: IntegrityChecker, store: LedgerStore, ledger
    ) -> None:
        await _corrupt_last_line(store, ledger["food"].id, "1.00")

        scan = await integrity_checker.verify_all_account_balances()

        assert scan.total_accounts == 3
        assert [m.account_id for m in scan.mismatches] == [ledger["food"].id]
        assert scan.failed_accounts == []

    @pytest.mark.asyncio
    async def test_account_failure_isolated(
        self,
        integrity_checker: IntegrityChecker,
        ledger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """계정 하나의 실패는 나머지 검증을 막지 않음"""
        original = integrity_checker.verify_account_balance
        broken_id = ledger["salary"].id

        async def flaky(account_id: str):
            if account_id == broken_id:
                raise RuntimeError("boom")
            return await original(account_id)

        monkeypatch.setattr(integrity_checker, "verify_account_balance", flaky)

        scan = await integrity_checker.verify_all_account_balances()

        assert scan.failed_accounts == [broken_id]
        assert len(scan.results) == 2


class TestStartupCheck:
    """시작 점검 + 자동 복구 테스트"""

    @pytest.mark.asyncio
    async def test_healthy_ledger(self, integrity_checker: IntegrityChecker, ledger) -> None:
        result = await integrity_checker.run_startup_check()

        assert result.is_healthy
        assert result.accounts_checked == 3
        assert result.discrepancies_found == 0
        assert result.repairs_attempted == 0

    @pytest.mark.asyncio
    async def test_repairs_corrupted_cache(
        self, integrity_checker: IntegrityChecker, store: LedgerStore, ledger
    ) -> None:
        await _corrupt_last_line(store, ledger["wallet"].id, "0.01")

        result = await integrity_checker.run_startup_check()

        assert result.discrepancies_found == 1
        assert result.repairs_attempted == 1
        assert result.repairs_successful == 1
        assert result.is_healthy
        assert await store.get_cached_balance(ledger["wallet"].id) == Decimal("177.00")

    @pytest.mark.asyncio
    async def test_failed_repair_reported_stale(
        self,
        integrity_checker: IntegrityChecker,
        store: LedgerStore,
        ledger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await _corrupt_last_line(store, ledger["wallet"].id, "0.01")

        async def failing_rebuild(account_id: str, from_date=None):
            raise RuntimeError("disk full")

        monkeypatch.setattr(
            integrity_checker.rebuilder, "rebuild_running_balances", failing_rebuild
        )

        result = await integrity_checker.run_startup_check()

        assert result.stale_accounts == [ledger["wallet"].id]
        assert result.repairs_successful == 0
        assert not result.is_healthy
        # 캐시는 그대로 (데이터 손실 없음)
        assert await store.get_cached_balance(ledger["wallet"].id) == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_hanging_repair_times_out(
        self,
        store: LedgerStore,
        currency,
        rebuilder: RunningBalanceRebuilder,
        ledger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """복구가 끝나지 않아도 점검은 반환되고 해당 계정은 stale"""
        checker = IntegrityChecker(store, currency, rebuilder, account_timeout_seconds=0.05)
        await _corrupt_last_line(store, ledger["wallet"].id, "0.01")

        async def hanging_rebuild(account_id: str, from_date=None):
            await asyncio.Event().wait()

        monkeypatch.setattr(rebuilder, "rebuild_running_balances", hanging_rebuild)

        result = await asyncio.wait_for(checker.run_startup_check(), timeout=5)

        assert result.repairs_attempted == 1
        assert result.stale_accounts == [ledger["wallet"].id]
        assert result.error is None
        assert not result.is_healthy
        assert await store.get_cached_balance(ledger["wallet"].id) == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_hanging_journal_read_skipped(
        self,
        store: LedgerStore,
        currency,
        rebuilder: RunningBalanceRebuilder,
        ledger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """분개 균형 검사도 분개별 시간 상한 적용"""
        checker = IntegrityChecker(store, currency, rebuilder, account_timeout_seconds=0.05)
        stuck_id = (await store.list_journals())[0].id
        original = store.get_transactions_by_journal

        async def slow_lines(journal_id: str, include_deleted: bool = False):
            if journal_id == stuck_id:
                await asyncio.Event().wait()
            return await original(journal_id, include_deleted=include_deleted)

        monkeypatch.setattr(store, "get_transactions_by_journal", slow_lines)

        unbalanced = await asyncio.wait_for(checker.verify_journal_balances(), timeout=5)

        assert unbalanced == []

    @pytest.mark.asyncio
    async def test_never_raises(
        self,
        integrity_checker: IntegrityChecker,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def broken_scan():
            raise RuntimeError("database is locked")

        monkeypatch.setattr(integrity_checker, "verify_all_account_balances", broken_scan)

        result = await integrity_checker.run_startup_check()

        assert result.error == "database is locked"
        assert not result.is_healthy

    @pytest.mark.asyncio
    async def test_unbalanced_journal_reported(
        self, integrity_checker: IntegrityChecker, store: LedgerStore, ledger
    ) -> None:
        """저장소를 직접 조작한 불균형 분개 탐지"""
        journal = (await store.list_journals())[0]
        lines = await store.get_transactions_by_journal(journal.id)
        async with store.atomic():
            await store.db.execute(
                "UPDATE transactions SET amount = ? WHERE id = ?",
                ("150.00", lines[0].id),
            )

        result = await integrity_checker.run_startup_check()

        assert [j.journal_id for j in result.unbalanced_journals] == [journal.id]
        assert result.unbalanced_journals[0].imbalance == Decimal("50.00")
        assert not result.is_healthy

"""AccountService 통합 테스트"""

from datetime import date
from decimal import Decimal

import pytest

from adapters.mock.audit import MockAuditSink
from core.ledger.errors import NotFoundError, ValidationError
from core.ledger.store import LedgerStore
from core.types import AccountType, AuditAction, EntityKind
from engine.accounts.service import AccountService
from engine.journal.service import JournalService


class TestCreateAccount:
    """계정 생성 테스트"""

    @pytest.mark.asyncio
    async def test_create_normalizes_input(self, account_service: AccountService) -> None:
        account = await account_service.create_account(
            {"name": "  Daily   Wallet ", "account_type": "ASSET", "currency_code": "usd"}
        )

        assert account.name == "Daily Wallet"
        assert account.currency_code == "USD"
        assert account.is_active
        assert await account_service.get_account_balance(account.id) == Decimal("0")

    @pytest.mark.asyncio
    async def test_initial_balance_posts_opening_journal(
        self,
        account_service: AccountService,
        journal_service: JournalService,
        store: LedgerStore,
        make_account,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET, initial_balance="250")
        await journal_service.rebuild_queue.flush()

        opening = await store.find_account_by_name(
            "Opening Balances (USD)", AccountType.EQUITY, "USD"
        )
        journals = await store.list_journals()

        assert opening is not None
        assert [j.description for j in journals] == ["Initial Balance: Wallet"]
        assert await account_service.get_account_balance(wallet.id) == Decimal("250.00")
        assert await account_service.get_account_balance(opening.id) == Decimal("250.00")

    @pytest.mark.asyncio
    async def test_negative_initial_balance_on_liability(
        self,
        account_service: AccountService,
        journal_service: JournalService,
        make_account,
    ) -> None:
        """음수 기초 잔액은 감소 방향"""
        card = await make_account("Credit Card", AccountType.LIABILITY, initial_balance="-40")
        await journal_service.rebuild_queue.flush()

        assert await account_service.get_account_balance(card.id) == Decimal("-40.00")

    @pytest.mark.asyncio
    async def test_opening_account_reused(
        self,
        store: LedgerStore,
        make_account,
    ) -> None:
        await make_account("Wallet", AccountType.ASSET, initial_balance="10")
        await make_account("Savings", AccountType.ASSET, initial_balance="20")

        equity = await store.list_accounts(account_type=AccountType.EQUITY)

        assert [a.name for a in equity] == ["Opening Balances (USD)"]

    @pytest.mark.asyncio
    async def test_parent_must_share_type(self, make_account) -> None:
        assets = await make_account("Assets", AccountType.ASSET)

        with pytest.raises(ValidationError) as exc_info:
            await make_account("Food", AccountType.EXPENSE, parent_account_id=assets.id)

        assert exc_info.value.errors == ["Parent account must be of the same type"]

    @pytest.mark.asyncio
    async def test_unknown_parent(self, make_account) -> None:
        with pytest.raises(NotFoundError):
            await make_account("Wallet", AccountType.ASSET, parent_account_id="missing")


class TestUpdateAccount:
    """계정 수정 테스트"""

    @pytest.mark.asyncio
    async def test_rename(self, account_service: AccountService, make_account) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)

        updated = await account_service.update_account(wallet.id, {"name": "Pocket"})

        assert updated.name == "Pocket"
        assert (await account_service.get_account(wallet.id)).name == "Pocket"

    @pytest.mark.asyncio
    async def test_type_is_immutable(self, account_service: AccountService, make_account) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)

        with pytest.raises(ValidationError):
            await account_service.update_account(wallet.id, {"account_type": "EXPENSE"})

    @pytest.mark.asyncio
    async def test_own_parent_rejected(self, account_service: AccountService, make_account) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)

        with pytest.raises(ValidationError) as exc_info:
            await account_service.update_account(wallet.id, {"parent_account_id": wallet.id})

        assert exc_info.value.errors == ["An account cannot be its own parent"]

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, account_service: AccountService, make_account) -> None:
        """A → B → C 구조에서 A의 상위를 C로 지정하면 순환"""
        a = await make_account("A", AccountType.ASSET)
        b = await make_account("B", AccountType.ASSET, parent_account_id=a.id)
        c = await make_account("C", AccountType.ASSET, parent_account_id=b.id)

        with pytest.raises(ValidationError) as exc_info:
            await account_service.update_account(a.id, {"parent_account_id": c.id})

        assert exc_info.value.errors == ["Circular parent relationship detected"]

    @pytest.mark.asyncio
    async def test_move_to_top_level(self, account_service: AccountService, make_account) -> None:
        parent = await make_account("Assets", AccountType.ASSET)
        child = await make_account("Wallet", AccountType.ASSET, parent_account_id=parent.id)

        updated = await account_service.update_account(child.id, {"parent_account_id": None})

        assert updated.parent_account_id is None

    @pytest.mark.asyncio
    async def test_empty_patch_is_noop(
        self,
        account_service: AccountService,
        audit: MockAuditSink,
        make_account,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)
        audit.clear()

        result = await account_service.update_account(wallet.id, {})

        assert result == wallet
        assert audit.records == []


class TestDeleteAccount:
    """계정 삭제/복구 테스트"""

    @pytest.mark.asyncio
    async def test_delete_and_recover(
        self,
        account_service: AccountService,
        store: LedgerStore,
        make_account,
        post_journal,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)
        food = await make_account("Food", AccountType.EXPENSE)
        await post_journal(food, wallet, "10.00", date(2024, 1, 1))

        await account_service.delete_account(wallet.id)

        with pytest.raises(NotFoundError):
            await account_service.get_account(wallet.id)
        # 라인은 이력으로 보존
        assert await store.count_active_postings(wallet.id) == 1

        recovered = await account_service.recover_account(wallet.id)

        assert recovered.is_active
        assert (await account_service.get_account(wallet.id)).deleted_at is None

    @pytest.mark.asyncio
    async def test_active_children_block_delete(
        self, account_service: AccountService, make_account
    ) -> None:
        parent = await make_account("Assets", AccountType.ASSET)
        await make_account("Wallet", AccountType.ASSET, parent_account_id=parent.id)

        with pytest.raises(ValidationError):
            await account_service.delete_account(parent.id)

    @pytest.mark.asyncio
    async def test_deleted_account_rejected_in_new_journal(
        self,
        account_service: AccountService,
        make_account,
        post_journal,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)
        food = await make_account("Food", AccountType.EXPENSE)
        await account_service.delete_account(food.id)

        with pytest.raises(NotFoundError):
            await post_journal(food, wallet, "10.00", date(2024, 1, 1))

    @pytest.mark.asyncio
    async def test_audit_trail(
        self,
        account_service: AccountService,
        audit: MockAuditSink,
        make_account,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET)
        await account_service.update_account(wallet.id, {"description": "Cash on hand"})
        await account_service.delete_account(wallet.id)

        records = audit.get_records(entity_type=EntityKind.ACCOUNT)

        assert [r.action for r in records] == [
            AuditAction.CREATE,
            AuditAction.UPDATE,
            AuditAction.DELETE,
        ]
        assert records[1].changes["after"]["description"] == "Cash on hand"


class TestAdjustBalance:
    """잔액 조정 테스트"""

    @pytest.mark.asyncio
    async def test_adjust_up_and_down(
        self,
        account_service: AccountService,
        journal_service: JournalService,
        make_account,
        post_journal,
    ) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET, initial_balance="100")

        journal = await account_service.adjust_balance(wallet.id, "120.50")
        await journal_service.rebuild_queue.flush()

        assert journal is not None
        assert journal.total_amount == Decimal("20.50")
        assert await account_service.get_account_balance(wallet.id) == Decimal("120.50")

        await account_service.adjust_balance(wallet.id, "90")
        await journal_service.rebuild_queue.flush()

        assert await account_service.get_account_balance(wallet.id) == Decimal("90.00")

    @pytest.mark.asyncio
    async def test_no_difference(self, account_service: AccountService, make_account) -> None:
        wallet = await make_account("Wallet", AccountType.ASSET, initial_balance="100")

        assert await account_service.adjust_balance(wallet.id, "100.00") is None

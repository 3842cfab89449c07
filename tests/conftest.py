"""
pytest 공통 fixture 정의

임시 SQLite 원장 DB, 저장소, 서비스 조립
"""

import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import AsyncIterator

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.mock.audit import MockAuditSink
from adapters.mock.currency import MockCurrencyService
from core.config.loader import Settings
from core.domain.events import ChangeNotifier
from core.ledger.inputs import AccountCreate, CreateJournalData, JournalLineInput
from core.ledger.models import Account, Journal
from core.ledger.schema import init_ledger_schema
from core.ledger.store import LedgerStore
from core.types import AccountType, JournalSide
from engine.accounts.service import AccountService
from engine.integrity.checker import IntegrityChecker
from engine.journal.service import JournalService
from engine.rebuild.queue import BalanceRebuildQueue
from engine.rebuild.rebuilder import RunningBalanceRebuilder


@pytest.fixture(autouse=True)
def reset_settings() -> None:
    """테스트 간 설정 싱글턴 격리"""
    Settings.reset()
    yield
    Settings.reset()


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml 파일 생성"""
    settings_content = """# 테스트용 settings.yaml
database:
  path: ledger_test.db

ledger:
  default_currency: eur
  default_precision: 2

rebuild_queue:
  retry_limit: 5
  retry_delay_seconds: 0.5
  max_concurrency: 2

integrity:
  run_on_startup: false
  account_timeout_seconds: 10

logging:
  console_level: debug
  file_level: WARNING
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


# -------------------------------------------------------------------------
# 원장 DB / 저장소
# -------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db() -> AsyncIterator[SQLiteAdapter]:
    """스키마가 초기화된 임시 DB"""
    with tempfile.TemporaryDirectory() as tmpdir:
        adapter = SQLiteAdapter(Path(tmpdir) / "test_ledger.db")
        await adapter.connect()
        await init_ledger_schema(adapter)

        yield adapter

        await adapter.close()


@pytest.fixture
def store(db: SQLiteAdapter) -> LedgerStore:
    """LedgerStore 인스턴스"""
    return LedgerStore(db)


@pytest.fixture
def currency() -> MockCurrencyService:
    """Mock 통화 서비스 (USD=2, JPY=0, EUR=2)"""
    service = MockCurrencyService(precisions={"USD": 2, "EUR": 2, "JPY": 0})
    service.set_rate("EUR", "USD", Decimal("1.10"))
    return service


@pytest.fixture
def audit() -> MockAuditSink:
    return MockAuditSink()


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


# -------------------------------------------------------------------------
# 엔진 컴포넌트
# -------------------------------------------------------------------------

@pytest.fixture
def rebuilder(store: LedgerStore, currency: MockCurrencyService) -> RunningBalanceRebuilder:
    return RunningBalanceRebuilder(store, currency)


@pytest_asyncio.fixture
async def rebuild_queue(
    rebuilder: RunningBalanceRebuilder,
) -> AsyncIterator[BalanceRebuildQueue]:
    """재시도 지연 없는 재구축 큐"""
    queue = BalanceRebuildQueue(rebuilder, retry_limit=1, retry_delay_seconds=0)

    yield queue

    await queue.stop()


@pytest.fixture
def journal_service(
    store: LedgerStore,
    rebuild_queue: BalanceRebuildQueue,
    currency: MockCurrencyService,
    audit: MockAuditSink,
    notifier: ChangeNotifier,
) -> JournalService:
    return JournalService(store, rebuild_queue, currency, audit=audit, notifier=notifier)


@pytest.fixture
def account_service(
    store: LedgerStore,
    journal_service: JournalService,
    currency: MockCurrencyService,
    audit: MockAuditSink,
    notifier: ChangeNotifier,
) -> AccountService:
    return AccountService(store, journal_service, currency, audit=audit, notifier=notifier)


@pytest.fixture
def integrity_checker(
    store: LedgerStore,
    currency: MockCurrencyService,
    rebuilder: RunningBalanceRebuilder,
) -> IntegrityChecker:
    return IntegrityChecker(store, currency, rebuilder, account_timeout_seconds=5.0)


# -------------------------------------------------------------------------
# 데이터 팩토리
# -------------------------------------------------------------------------

@pytest.fixture
def make_account(account_service: AccountService):
    """계정 생성 헬퍼

    사용 예시:
        wallet = await make_account("Wallet", AccountType.ASSET)
    """

    async def _make(
        name: str,
        account_type: AccountType,
        currency_code: str = "USD",
        **kwargs,
    ) -> Account:
        return await account_service.create_account(
            AccountCreate(
                name=name,
                account_type=account_type,
                currency_code=currency_code,
                **kwargs,
            )
        )

    return _make


@pytest.fixture
def post_journal(journal_service: JournalService):
    """2라인 분개 기록 헬퍼 (debit_account 차변, credit_account 대변)"""

    async def _post(
        debit_account: Account,
        credit_account: Account,
        amount: str,
        journal_date: date,
        description: str | None = None,
        currency_code: str = "USD",
    ) -> Journal:
        return await journal_service.create_journal_with_transactions(
            CreateJournalData(
                journal_date=journal_date,
                currency_code=currency_code,
                description=description,
                transactions=[
                    JournalLineInput(
                        account_id=debit_account.id, amount=amount, side=JournalSide.DEBIT
                    ),
                    JournalLineInput(
                        account_id=credit_account.id, amount=amount, side=JournalSide.CREDIT
                    ),
                ],
            )
        )

    return _post

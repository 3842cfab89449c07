"""
RunningBalanceRebuilder

계정의 running_balance 캐시를 활성 라인으로부터 다시 계산하여 저장.

- 원장 순서(분개일 → 생성 시각 → 라인 순서)로 누적
- 저장값과 epsilon 이상 차이나는 행만 기록 (쓰기 최소화)
- 멱등: 새 데이터 없이 재실행하면 쓰기 0건
- 읽기와 쓰기를 하나의 원자적 블록에서 수행 (중간 쓰기 끼어들기 방지)
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal

from adapters.interfaces import ICurrencyService
from core.ledger.accounting import accumulate_running_balances
from core.ledger.errors import NotFoundError
from core.ledger.store import LedgerStore
from core.utils.money import epsilon
from core.utils.timezone import now_ms

logger = logging.getLogger(__name__)


@dataclass
class RebuildResult:
    """재구축 결과"""

    account_id: str
    rows_scanned: int = 0
    rows_updated: int = 0
    final_balance: Decimal = Decimal("0")
    from_date: int | None = None  # None이면 전체 재구축


class RunningBalanceRebuilder:
    """running_balance 재구축기

    Args:
        store: 원장 저장소
        currency: 통화 서비스 (계정 통화 정밀도)
    """

    def __init__(self, store: LedgerStore, currency: ICurrencyService):
        self.store = store
        self.currency = currency

    async def rebuild_running_balances(
        self,
        account_id: str,
        from_date: int | None = None,
    ) -> RebuildResult:
        """running_balance 재구축

        from_date가 있으면 그 이전 마지막 라인의 캐시 잔액에서 시작하여
        from_date 이후 라인만 다시 계산. 시작점 캐시가 비어 있으면 전체 재구축.

        Args:
            account_id: 계정 ID (soft-delete된 계정 포함)
            from_date: 변경이 발생한 가장 이른 분개일 (epoch ms)

        Returns:
            RebuildResult

        Raises:
            NotFoundError: 계정 없음
            StoreWriteError: 저장 실패
        """
        account = await self.store.get_account(account_id, include_deleted=True)
        if account is None:
            raise NotFoundError("account", account_id)

        precision = await self.currency.get_precision(account.currency_code)
        tolerance = epsilon(precision)
        started = time.monotonic()

        async with self.store.atomic():
            opening = Decimal("0")
            walk_from = from_date
            if from_date is not None:
                seed = await self.store.get_last_posting_before(account_id, from_date)
                if seed is not None:
                    if seed.running_balance is None:
                        walk_from = None
                    else:
                        opening = seed.running_balance

            lines = await self.store.get_ordered_postings(account_id, walk_from)
            balances = accumulate_running_balances(
                lines, account.account_type, precision, opening
            )

            updates = [
                (line.id, balance)
                for line, balance in zip(lines, balances)
                if line.running_balance is None
                or abs(line.running_balance - balance) > tolerance
            ]
            await self.store.update_running_balances(updates, now_ms())

        result = RebuildResult(
            account_id=account_id,
            rows_scanned=len(lines),
            rows_updated=len(updates),
            final_balance=balances[-1] if balances else opening,
            from_date=walk_from,
        )

        logger.debug(
            f"running_balance 재구축 완료: {account.name}",
            extra={
                "account_id": account_id,
                "rows_scanned": result.rows_scanned,
                "rows_updated": result.rows_updated,
                "duration_ms": (time.monotonic() - started) * 1000,
            },
        )
        return result

"""
BalanceRebuildQueue

변경된 계정의 running_balance를 백그라운드에서 재구축하는 큐.

- 계정별 대기 구간: 이미 대기 중이면 min(기존 from_date, 새 from_date)로 확장
- 계정당 동시 실행 1개: 실행 중 들어온 enqueue는 종료 후 정확히 1회 후속 실행
- 다른 계정은 동시 실행 (max_concurrency로 제한)
- 실패 시 선형 back-off로 retry_limit회 재시도, 모두 실패하면 stale_accounts에 기록
- stale 계정은 다음 재구축을 항상 전체 재구축으로 실행
- 실패는 호출자에게 전파되지 않음 (로깅 + 상태로만 노출)
"""

import asyncio
import logging
from typing import Iterable, Protocol

from engine.rebuild.rebuilder import RebuildResult

logger = logging.getLogger(__name__)


class IRebuilder(Protocol):
    """재구축 루틴 인터페이스"""

    async def rebuild_running_balances(
        self,
        account_id: str,
        from_date: int | None = None,
    ) -> RebuildResult:
        ...


def _earliest(a: int | None, b: int | None) -> int | None:
    """더 이른 시작점 (None = 전체 재구축 = 가장 이름)"""
    if a is None or b is None:
        return None
    return min(a, b)


class BalanceRebuildQueue:
    """잔액 재구축 큐 (주입 가능한 인스턴스)

    Args:
        rebuilder: 재구축 루틴
        retry_limit: 실패 시 재시도 횟수
        retry_delay_seconds: 재시도 기본 지연 (n번째 재시도는 n배)
        max_concurrency: 동시 재구축 계정 수 상한

    사용 예시:
    ```python
    queue = BalanceRebuildQueue(rebuilder)
    queue.enqueue(account_id, from_date=journal_date_ms)
    await queue.flush()  # 강한 일관성 지점
    ```
    """

    def __init__(
        self,
        rebuilder: IRebuilder,
        retry_limit: int = 3,
        retry_delay_seconds: float = 2.0,
        max_concurrency: int = 5,
    ):
        self.rebuilder = rebuilder
        self.retry_limit = retry_limit
        self.retry_delay_seconds = retry_delay_seconds
        self.max_concurrency = max_concurrency

        self._pending: dict[str, int | None] = {}
        self._in_flight: set[str] = set()
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._retry_counts: dict[str, int] = {}

        self.stale_accounts: set[str] = set()
        self.completed_count: int = 0
        self.failed_count: int = 0

    # -------------------------------------------------------------------------
    # 상태 조회
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> dict[str, int | None]:
        """대기 중인 계정 → from_date (복사본)"""
        return dict(self._pending)

    @property
    def in_flight(self) -> frozenset[str]:
        """실행 중인 계정"""
        return frozenset(self._in_flight)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_pending(self) -> bool:
        """대기 또는 실행 중인 재구축 존재 여부"""
        return bool(self._pending or self._in_flight or self._tasks)

    # -------------------------------------------------------------------------
    # 등록
    # -------------------------------------------------------------------------

    def enqueue(self, account_id: str, from_date: int | None = None) -> None:
        """계정 재구축 등록

        Args:
            account_id: 계정 ID
            from_date: 변경이 발생한 가장 이른 분개일 (None이면 전체 재구축)

        stale 계정은 앞쪽 캐시를 시작값으로 쓸 수 없으므로 항상 전체 재구축.
        """
        if account_id in self.stale_accounts:
            from_date = None

        if account_id in self._pending:
            self._pending[account_id] = _earliest(self._pending[account_id], from_date)
        else:
            self._pending[account_id] = from_date

        if account_id not in self._tasks:
            self._tasks[account_id] = asyncio.create_task(
                self._worker(account_id),
                name=f"rebuild:{account_id}",
            )

    def enqueue_many(self, account_ids: Iterable[str], from_date: int | None = None) -> None:
        """여러 계정 재구축 등록 (일괄 가져오기 등)"""
        for account_id in dict.fromkeys(account_ids):
            self.enqueue(account_id, from_date)

    # -------------------------------------------------------------------------
    # 처리
    # -------------------------------------------------------------------------

    async def _worker(self, account_id: str) -> None:
        """계정별 워커 (대기 항목이 없을 때까지 반복)"""
        try:
            while account_id in self._pending:
                from_date = self._pending.pop(account_id)
                # 대기 중에 stale이 된 경우
                if account_id in self.stale_accounts:
                    from_date = None
                self._in_flight.add(account_id)
                try:
                    await self._rebuild_with_retry(account_id, from_date)
                finally:
                    self._in_flight.discard(account_id)
        finally:
            self._tasks.pop(account_id, None)

    async def _rebuild_with_retry(self, account_id: str, from_date: int | None) -> None:
        while True:
            try:
                async with self._semaphore:
                    result = await self.rebuilder.rebuild_running_balances(account_id, from_date)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                retry_count = self._retry_counts.get(account_id, 0) + 1
                self._retry_counts[account_id] = retry_count

                if retry_count > self.retry_limit:
                    self._retry_counts.pop(account_id, None)
                    self.stale_accounts.add(account_id)
                    self.failed_count += 1
                    logger.error(
                        f"재구축 포기: {account_id} ({retry_count}회 시도)",
                        extra={"account_id": account_id, "error": str(e)},
                        exc_info=True,
                    )
                    return

                delay = self.retry_delay_seconds * retry_count
                logger.warning(
                    f"재구축 실패, {delay:.1f}초 후 재시도 ({retry_count}/{self.retry_limit})",
                    extra={"account_id": account_id, "error": str(e)},
                )
                await asyncio.sleep(delay)
                continue

            self._retry_counts.pop(account_id, None)
            self.stale_accounts.discard(account_id)
            self.completed_count += 1
            logger.debug(
                "재구축 완료",
                extra={
                    "account_id": account_id,
                    "rows_updated": result.rows_updated,
                },
            )
            return

    # -------------------------------------------------------------------------
    # 동기화 지점 / 종료
    # -------------------------------------------------------------------------

    async def flush(self) -> None:
        """대기/실행 중인 모든 재구축 완료까지 대기

        flush 도중 새로 등록된 작업도 함께 기다린다.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def stop(self) -> None:
        """워커 취소 및 상태 초기화"""
        tasks = list(self._tasks.values())
        self._pending.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._in_flight.clear()
        self._retry_counts.clear()
        logger.info("재구축 큐 정지")

"""
잔액 재구축 모듈

running_balance 캐시 재계산과 백그라운드 재구축 큐
"""

from engine.rebuild.queue import BalanceRebuildQueue
from engine.rebuild.rebuilder import RebuildResult, RunningBalanceRebuilder

__all__ = [
    "BalanceRebuildQueue",
    "RebuildResult",
    "RunningBalanceRebuilder",
]

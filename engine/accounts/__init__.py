"""
계정 모듈

계정 관리, 기초 잔액, 잔액 조정
"""

from engine.accounts.service import AccountService

__all__ = [
    "AccountService",
]

"""
분개 모듈

분개 생성/수정/삭제/역분개
"""

from engine.journal.service import JournalService

__all__ = [
    "JournalService",
]

"""
원장 DB 어댑터

SQLiteAdapter: 공유 연결 + 단일 writer 트랜잭션 + 스키마 버전
"""

from adapters.db.sqlite_adapter import SQLiteAdapter

__all__ = ["SQLiteAdapter"]

#!/usr/bin/env python3
"""원장 DB 상태 확인 스크립트 (읽기 전용)

사용법:
    python scripts/check_db.py
    python scripts/check_db.py --db data/ledger.db
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Paths
from core.logging import setup_logging
from core.ledger.store import LedgerStore
from core.types import JournalStatus
from core.utils.timezone import utc_from_timestamp_ms


async def main(db_path: Path) -> int:
    if not db_path.exists():
        print(f"DB 파일이 없습니다: {db_path}", file=sys.stderr)
        return 1

    async with SQLiteAdapter(db_path, readonly=True) as db:
        store = LedgerStore(db)
        journals = await store.list_journals()
        reversed_count = sum(1 for j in journals if j.status == JournalStatus.REVERSED)

        print(f"DB Path: {db_path}")
        print(f"Schema version: {await db.get_schema_version()}")
        print(f"Active journals: {len(journals)} (reversed: {reversed_count})")

        rows = await db.fetchall(
            """
            SELECT account_id, name, account_type, currency_code, line_total, last_journal_date
            FROM v_account_activity
            ORDER BY account_type, name
            """
        )
        print(f"\nAccounts ({len(rows)}):")
        for account_id, name, account_type, currency_code, line_total, last_date in rows:
            balance = await store.get_cached_balance(account_id)
            last = utc_from_timestamp_ms(last_date).date().isoformat() if last_date else "-"
            print(
                f"  - {account_type:<9} {name:<30} {balance:>14} {currency_code} "
                f"lines: {line_total}, last: {last}"
            )

    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="원장 DB 상태 확인")
    parser.add_argument("--db", type=Path, default=Paths.LEDGER_DB, help="원장 DB 경로")
    args = parser.parse_args()

    setup_logging("check_db", console_level=logging.WARNING)
    sys.exit(asyncio.run(main(args.db)))

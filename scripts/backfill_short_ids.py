# scripts/backfill_short_ids.py
from __future__ import annotations

import argparse
import asyncio

from khorders.core.config import get_settings
from khorders.core.logging import setup_logging
from khorders.db.session import close_engines, get_sessionmaker
from khorders.services.order_store import OrderStore
from khorders.services.short_id_allocator import ShortIdAllocator, ShortIdFormat, SqlSequenceCounter
from khorders.services.short_id_backfill import backfill_short_ids


async def main(limit: int) -> None:
    """
    给历史订单（kh_short_id 为空）补短单号。

    可重复执行：已有短单号的行不会被选中，attach 本身幂等。
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)

    sessions = get_sessionmaker()
    store = OrderStore(sessions)
    allocator = ShortIdAllocator(SqlSequenceCounter(sessions), ShortIdFormat.from_settings(settings))
    try:
        report = await backfill_short_ids(store, allocator, limit=limit)
    finally:
        await close_engines()

    print(f"[backfill_short_ids] scanned={report.scanned} attached={report.attached} skipped={report.skipped}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Backfill short ids for legacy orders")
    parser.add_argument("--limit", type=int, default=200)
    args = parser.parse_args()
    asyncio.run(main(args.limit))

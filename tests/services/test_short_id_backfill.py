# tests/services/test_short_id_backfill.py
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from khorders.services.order_store import OrderStore
from khorders.services.short_id_allocator import ShortIdAllocator, SqlSequenceCounter
from khorders.services.short_id_backfill import backfill_short_ids
from tests.helpers.orders import make_order


@pytest.mark.asyncio
async def test_backfill_assigns_ids_oldest_first(sessions):
    store = OrderStore(sessions)
    allocator = ShortIdAllocator(SqlSequenceCounter(sessions))
    base = datetime(2026, 10, 5, 12, 0, tzinfo=timezone.utc)

    await store.insert(make_order(name="second", created_at=base + timedelta(hours=1)))
    await store.insert(make_order(name="first", created_at=base))
    await store.insert(make_order(name="next-week", pickup_date=date(2026, 10, 31), created_at=base + timedelta(hours=2)))

    report = await backfill_short_ids(store, allocator)
    assert (report.scanned, report.attached, report.skipped) == (3, 3, 0)

    by_name = {o.customer_name: o for o in await store.list_recent()}
    assert (by_name["first"].kh_short_id, by_name["first"].period_key) == ("KH001", "2026-10-19")
    assert (by_name["second"].kh_short_id, by_name["second"].period_key) == ("KH002", "2026-10-19")
    assert (by_name["next-week"].kh_short_id, by_name["next-week"].period_key) == ("KH001", "2026-10-26")

    again = await backfill_short_ids(store, allocator)
    assert again.scanned == 0


@pytest.mark.asyncio
async def test_backfill_falls_back_to_created_date(sessions):
    store = OrderStore(sessions)
    allocator = ShortIdAllocator(SqlSequenceCounter(sessions))
    await store.insert(make_order(pickup_date=None, created_at=datetime(2026, 9, 2, 15, 0, tzinfo=timezone.utc)))

    report = await backfill_short_ids(store, allocator)
    assert report.attached == 1
    (row,) = await store.list_recent()
    assert row.period_key == "2026-08-31"

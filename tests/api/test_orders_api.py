# tests/api/test_orders_api.py
from __future__ import annotations

import csv
import io

import pytest

from tests.helpers.orders import ADMIN_EMAIL, pickup_payload, shipping_payload


@pytest.mark.asyncio
async def test_submit_pickup_order_end_to_end(admin_client, fake_mailer):
    r = await admin_client.post("/orders", json=pickup_payload())
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["shortId"] == "KH001"
    assert body["orderId"]
    assert body["paymentNote"] == "KH001 — Kanarra Heights Homestead"
    assert "warning" not in body

    assert len(fake_mailer.attempts) == 2
    assert fake_mailer.sent_to("a@b.com")[0].subject == "Your order is confirmed — #KH001"

    r = await admin_client.get("/orders")
    assert r.status_code == 200
    (row,) = r.json()
    assert row["id"] == body["orderId"]
    assert row["kh_short_id"] == "KH001"
    assert row["customer_name"] == "A"
    assert row["email"] == "a@b.com"
    assert row["ship"] is False
    assert row["pickup_date"] == "2026-10-24"
    assert row["fulfillment_date"] == "2026-10-24"
    assert row["country"] == "USA"
    assert row["status"] == "open"
    assert row["order_total"] == 10.0
    assert isinstance(row["order_total"], float)


@pytest.mark.asyncio
async def test_submit_shipping_order(client):
    r = await client.post("/orders", json=shipping_payload())
    assert r.status_code == 200, r.text
    assert r.json()["shortId"] == "KH001"


@pytest.mark.asyncio
async def test_short_ids_increase_per_submission(client):
    ids = []
    for _ in range(3):
        r = await client.post("/orders", json=pickup_payload())
        ids.append(r.json()["shortId"])
    assert ids == ["KH001", "KH002", "KH003"]


@pytest.mark.asyncio
async def test_missing_email_is_400(client, fake_mailer):
    r = await client.post("/orders", json={"items": [{"name": "Loaf"}]})
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error"] == "Missing email"
    assert body["error_code"] == "MISSING_EMAIL"
    assert body["http_status"] == 400
    assert body["trace_id"].startswith("t_")
    assert fake_mailer.attempts == []


@pytest.mark.asyncio
async def test_empty_items_is_400(client):
    r = await client.post("/orders", json={"email": "a@b.com", "items": {}})
    assert r.status_code == 400
    assert r.json()["error_code"] == "EMPTY_ITEMS"


@pytest.mark.asyncio
async def test_incomplete_shipping_address_is_400(client):
    r = await client.post("/orders", json=shipping_payload(shippingAddress={"city": "Kanarraville"}))
    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "MISSING_ADDRESS"
    assert body["context"]["missing"] == ["address_line1", "state", "postal_code"]


@pytest.mark.parametrize("content", [b"", b"   ", b"{not json", b"[1, 2]", b'"hello"'])
@pytest.mark.asyncio
async def test_malformed_body_is_400(client, content):
    r = await client.post("/orders", content=content, headers={"content-type": "application/json"})
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "INVALID_BODY"


@pytest.mark.asyncio
async def test_admin_mail_failure_still_ok_with_warning(client, fake_mailer):
    fake_mailer.fail_for.add(ADMIN_EMAIL)
    r = await client.post("/orders", json=pickup_payload())
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["shortId"] == "KH001"
    assert "admin email failed" in body["warning"]


@pytest.mark.asyncio
async def test_customer_mail_failure_still_ok_with_warning(client, fake_mailer):
    fake_mailer.fail_for.add("a@b.com")
    r = await client.post("/orders", json=pickup_payload())
    assert r.status_code == 200
    assert "customer email failed" in r.json()["warning"]
    assert len(fake_mailer.sent_to(ADMIN_EMAIL)) == 1


@pytest.mark.asyncio
async def test_listing_requires_admin(client):
    r = await client.get("/orders")
    assert r.status_code == 401
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "UNAUTHORIZED"

    r = await client.get("/orders/export.csv")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_listing_search_and_limit(admin_client):
    await admin_client.post("/orders", json=pickup_payload(email="june@example.com", items=[{"name": "Country Loaf"}]))
    await admin_client.post("/orders", json=pickup_payload(email="sam@example.com", items=[{"name": "Bagels"}]))
    await admin_client.post("/orders", json=shipping_payload())

    r = await admin_client.get("/orders")
    assert len(r.json()) == 3

    r = await admin_client.get("/orders", params={"q": "bagel"})
    assert [o["email"] for o in r.json()] == ["sam@example.com"]

    r = await admin_client.get("/orders", params={"q": "kanarraville"})
    assert [o["city"] for o in r.json()] == ["Kanarraville"]

    r = await admin_client.get("/orders", params={"limit": 2})
    assert len(r.json()) == 2

    r = await admin_client.get("/orders", params={"limit": 0})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_csv_export(admin_client):
    await admin_client.post("/orders", json=pickup_payload(notes="extra crusty\nplease"))

    r = await admin_client.get("/orders/export.csv")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert 'filename="orders.csv"' in r.headers["content-disposition"]

    rows = list(csv.reader(io.StringIO(r.text)))
    assert rows[0][:3] == ["created_at", "short_id", "customer_name"]
    assert rows[1][1] == "KH001"
    assert rows[1][2] == "A"
    assert rows[1][5] == "pickup"
    assert rows[1][7] == "Loaf x 1"
    assert rows[1][8] == "extra crusty please"
    assert rows[1][10] == "2026-10-24"


@pytest.mark.parametrize(
    "line",
    [
        {"name": "Loaf", "qty": 1, "unit_price": "1e30"},
        {"name": "Loaf", "qty": 10**27, "unit_price": 10},
        {"name": "Loaf", "qty": 1000, "unit_price": 10000.01},
    ],
)
@pytest.mark.asyncio
async def test_oversized_item_is_400_and_uses_no_short_id(client, fake_mailer, line):
    r = await client.post("/orders", json={"email": "a@b.com", "items": [line]})
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error_code"] == "INVALID_ITEM"
    assert fake_mailer.attempts == []

    r = await client.post("/orders", json=pickup_payload())
    assert r.json()["shortId"] == "KH001"


@pytest.mark.asyncio
async def test_far_future_requested_date_is_400(client):
    r = await client.post("/orders", json=pickup_payload(requested_date="9999-12-31"))
    assert r.status_code == 400
    body = r.json()
    assert body["error_code"] == "INVALID_DATE"
    assert body["context"]["requested_date"] == "9999-12-31"

    r = await client.post("/orders", json=pickup_payload())
    assert r.json()["shortId"] == "KH001"

# tests/services/test_notification_dispatcher.py
from __future__ import annotations

import pytest

from khorders.services.mailer import OutboundEmail
from khorders.services.notification_dispatcher import NotificationDispatcher, NotifyConfig
from khorders.services.order_render import EmailBranding
from tests.helpers.mailer import FakeMailer
from tests.helpers.orders import ADMIN_EMAIL, make_order

CUSTOMER_EMAIL = "pat@example.com"


def _cfg(**kw) -> NotifyConfig:
    kw.setdefault("admin_emails", (ADMIN_EMAIL,))
    kw.setdefault("timeout_seconds", 0.5)
    kw.setdefault("branding", EmailBranding(site_name="Kanarra Heights Homestead"))
    return NotifyConfig(**kw)


def _order():
    return make_order(id="order-1", short_id="KH003", period_key="2026-10-19", email=CUSTOMER_EMAIL)


@pytest.mark.asyncio
async def test_both_notifications_sent():
    mailer = FakeMailer()
    res = await NotificationDispatcher(mailer, _cfg()).notify(_order())

    assert (res.customer_sent, res.admin_sent) == (True, True)
    assert res.warning is None

    (customer,) = mailer.sent_to(CUSTOMER_EMAIL)
    (admin,) = mailer.sent_to(ADMIN_EMAIL)
    assert customer.subject == "Your order is confirmed — #KH003"
    assert customer.reply_to == (ADMIN_EMAIL,)
    assert admin.subject == "NEW ORDER — #KH003"
    assert admin.reply_to == (CUSTOMER_EMAIL,)


@pytest.mark.asyncio
async def test_admin_failure_does_not_block_customer():
    mailer = FakeMailer(fail_for=[ADMIN_EMAIL])
    res = await NotificationDispatcher(mailer, _cfg()).notify(_order())

    assert res.customer_sent is True
    assert res.admin_sent is False
    assert "admin email failed" in res.warning
    assert len(mailer.attempts) == 2
    assert len(mailer.sent_to(CUSTOMER_EMAIL)) == 1


@pytest.mark.asyncio
async def test_customer_failure_does_not_block_admin():
    mailer = FakeMailer(fail_for=[CUSTOMER_EMAIL])
    res = await NotificationDispatcher(mailer, _cfg()).notify(_order())

    assert res.customer_sent is False
    assert res.admin_sent is True
    assert "customer email failed" in res.warning


@pytest.mark.asyncio
async def test_slow_provider_times_out_each_send():
    mailer = FakeMailer(delay=1.0)
    res = await NotificationDispatcher(mailer, _cfg(timeout_seconds=0.05)).notify(_order())

    assert (res.customer_sent, res.admin_sent) == (False, False)
    assert res.warnings == ("customer email timed out", "admin email timed out")


@pytest.mark.asyncio
async def test_missing_admin_recipient_is_a_warning():
    mailer = FakeMailer()
    res = await NotificationDispatcher(mailer, _cfg(admin_emails=())).notify(_order())

    assert res.customer_sent is True
    assert res.admin_sent is False
    assert res.warning == "admin email not configured"
    assert len(mailer.attempts) == 1


class _ExplodingMailer:
    async def send(self, email: OutboundEmail) -> str:
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_unexpected_errors_are_downgraded_to_warnings():
    res = await NotificationDispatcher(_ExplodingMailer(), _cfg()).notify(_order())
    assert (res.customer_sent, res.admin_sent) == (False, False)
    assert res.warnings == ("customer email failed: boom", "admin email failed: boom")


@pytest.mark.asyncio
async def test_health_check_sends_to_admin():
    mailer = FakeMailer()
    message_id = await NotificationDispatcher(mailer, _cfg()).send_health_check()
    assert message_id == "msg_1"
    assert mailer.sent[0].to == (ADMIN_EMAIL,)

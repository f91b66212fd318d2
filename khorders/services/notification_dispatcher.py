# khorders/services/notification_dispatcher.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from khorders.core.config import AppSettings
from khorders.metrics import NOTIFY
from khorders.models.order import Order
from khorders.services.mailer import Mailer, MailError, OutboundEmail
from khorders.services.order_render import (
    EmailBranding,
    RenderedEmail,
    render_admin_email,
    render_customer_email,
)
from khorders.services.order_types import NotifyResult

log = logging.getLogger("khorders.notify")

CUSTOMER = "customer"
ADMIN = "admin"


@dataclass(frozen=True)
class NotifyConfig:
    admin_emails: Tuple[str, ...] = ()
    timeout_seconds: float = 10.0
    branding: EmailBranding = field(default_factory=EmailBranding)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "NotifyConfig":
        admin = settings.admin_recipient
        return cls(
            admin_emails=(admin,) if admin else (),
            timeout_seconds=float(settings.NOTIFY_TIMEOUT_SECONDS),
            branding=EmailBranding(
                site_name=settings.SITE_NAME,
                pickup_location=settings.PICKUP_LOCATION,
                payment_instructions=settings.PAYMENT_INSTRUCTIONS,
            ),
        )


class NotificationDispatcher:
    """
    订单通知（客户确认 + 管理员提醒）：

    - 两封邮件并发发送，互不影响；各自有独立的超时与异常边界
    - 任何失败只记日志 + 计入 warnings，notify() 永不向上抛
    - 每个收件方每单最多尝试一次，不做重试队列
    """

    def __init__(self, mailer: Mailer, cfg: NotifyConfig):
        self.mailer = mailer
        self.cfg = cfg

    async def notify(self, order: Order) -> NotifyResult:
        customer_msg = render_customer_email(order, self.cfg.branding)
        admin_msg = render_admin_email(order, self.cfg.branding)

        customer_email = OutboundEmail(
            to=(order.email,),
            subject=customer_msg.subject,
            html=customer_msg.html,
            text=customer_msg.text,
            reply_to=self.cfg.admin_emails,
        )
        admin_email: Optional[OutboundEmail] = None
        if self.cfg.admin_emails:
            admin_email = OutboundEmail(
                to=self.cfg.admin_emails,
                subject=admin_msg.subject,
                html=admin_msg.html,
                text=admin_msg.text,
                reply_to=(order.email,),
            )

        customer_res, admin_res = await asyncio.gather(
            self._send_one(CUSTOMER, order, customer_email),
            self._send_one(ADMIN, order, admin_email),
        )

        warnings = tuple(w for w in (customer_res, admin_res) if w)
        return NotifyResult(
            customer_sent=customer_res is None,
            admin_sent=admin_res is None,
            warnings=warnings,
        )

    async def _send_one(self, recipient: str, order: Order, email: Optional[OutboundEmail]) -> Optional[str]:
        """成功返回 None；失败返回 warning 文案。"""
        short = order.kh_short_id
        if email is None:
            log.warning("notify skipped: recipient=%s short_id=%s reason=no recipient configured", recipient, short)
            NOTIFY.labels(recipient=recipient, state="skipped").inc()
            return f"{recipient} email not configured"

        log.info("notify attempt: recipient=%s short_id=%s", recipient, short)
        try:
            message_id = await asyncio.wait_for(self.mailer.send(email), timeout=self.cfg.timeout_seconds)
        except asyncio.TimeoutError:
            log.warning("notify timeout: recipient=%s short_id=%s after %.1fs", recipient, short, self.cfg.timeout_seconds)
            NOTIFY.labels(recipient=recipient, state="timeout").inc()
            return f"{recipient} email timed out"
        except MailError as exc:
            log.warning(
                "notify failed: recipient=%s short_id=%s error=%s details=%s",
                recipient,
                short,
                exc.message,
                exc.details,
            )
            NOTIFY.labels(recipient=recipient, state="failed").inc()
            return f"{recipient} email failed: {exc.message}"
        except Exception as exc:
            log.exception("notify crashed: recipient=%s short_id=%s", recipient, short)
            NOTIFY.labels(recipient=recipient, state="failed").inc()
            return f"{recipient} email failed: {exc}"

        log.info("notify sent: recipient=%s short_id=%s message_id=%s", recipient, short, message_id)
        NOTIFY.labels(recipient=recipient, state="sent").inc()
        return None

    async def send_health_check(self) -> str:
        """管理端自检：给管理员发一封测试邮件，失败抛 MailError。"""
        if not self.cfg.admin_emails:
            raise MailError("Missing ADMIN_NOTIFY_EMAIL/FROM_EMAIL")
        msg = RenderedEmail(
            subject=f"{self.cfg.branding.site_name} email health check",
            html="<p>If you received this, outbound email is working.</p>",
            text="If you received this, outbound email is working.",
        )
        return await self.mailer.send(
            OutboundEmail(to=self.cfg.admin_emails, subject=msg.subject, html=msg.html, text=msg.text)
        )

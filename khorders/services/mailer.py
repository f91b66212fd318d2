# khorders/services/mailer.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import httpx

from khorders.core.config import AppSettings
from khorders.services.order_errors import NotificationError

log = logging.getLogger("khorders.mail")


class MailError(NotificationError):
    """邮件服务商拒绝 / 不可达 / 未配置。"""

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message, context={"status_code": status_code} if status_code else None)
        self.status_code = status_code
        self.details = details


@dataclass(frozen=True)
class OutboundEmail:
    to: Tuple[str, ...]
    subject: str
    html: Optional[str] = None
    text: Optional[str] = None
    reply_to: Tuple[str, ...] = ()


class Mailer(Protocol):
    async def send(self, email: OutboundEmail) -> str:
        """成功返回服务商 message id；失败抛 MailError。"""
        ...


@dataclass(frozen=True)
class ResendConfig:
    api_key: Optional[str]
    from_email: str = "onboarding@resend.dev"
    from_name: str = "Kanarra Heights Homestead"
    api_url: str = "https://api.resend.com/emails"
    timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ResendConfig":
        return cls(
            api_key=settings.RESEND_API_KEY,
            from_email=settings.FROM_EMAIL,
            from_name=settings.SITE_NAME,
            api_url=settings.RESEND_API_URL,
            timeout=float(settings.NOTIFY_TIMEOUT_SECONDS),
        )

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email


def _as_list(v: Sequence[str]) -> list[str]:
    return [s.strip() for s in v if s and s.strip()]


class ResendMailer:
    """
    Resend REST API 客户端（POST /emails）。

    transport 仅用于测试注入（httpx.MockTransport）。
    """

    def __init__(self, cfg: ResendConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.cfg = cfg
        self._transport = transport

    def _payload(self, email: OutboundEmail) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.cfg.sender,
            "to": _as_list(email.to),
            "subject": email.subject,
        }
        if email.html:
            payload["html"] = email.html
        if email.text:
            payload["text"] = email.text
        if email.reply_to:
            payload["reply_to"] = _as_list(email.reply_to)
        return payload

    async def send(self, email: OutboundEmail) -> str:
        if not self.cfg.api_key:
            raise MailError("Email not configured")
        payload = self._payload(email)
        if not payload["to"]:
            raise MailError("Missing 'to'")

        headers = {"Authorization": f"Bearer {self.cfg.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.cfg.timeout, transport=self._transport) as client:
                r = await client.post(self.cfg.api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise MailError(f"Resend request failed: {exc}") from exc

        try:
            data = r.json() if r.content else None
        except ValueError:
            data = r.text

        if r.status_code >= 400:
            log.error("[send-email] Resend error %s %s", r.status_code, data)
            raise MailError(f"Resend {r.status_code}", status_code=r.status_code, details=data)

        message_id = data.get("id") if isinstance(data, dict) else None
        return str(message_id or "")

# khorders/core/security.py
"""
管理端会话（统一入口）：

- 会话 token：PyJWT HS256，放在 httpOnly cookie 中
- 管理员口令：ADMIN_PASSWORD_HASH（passlib pbkdf2_sha256）优先，其次明文 ADMIN_PASSWORD
- 强制规则：
    * 非 dev 环境必须显式配置 SESSION_SECRET
    * 任何环境禁止 alg=none
"""

from __future__ import annotations

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jwt  # PyJWT
from passlib.context import CryptContext

from khorders.core.config import AppSettings

log = logging.getLogger("khorders.auth")

_JWT_ALG = "HS256"
_SUBJECT = "admin"

_DEV_SECRETS = {
    "",
    "dev-temp-secret",
    "dev-secret-change-me",
}

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@dataclass(frozen=True)
class SessionConfig:
    secret: str
    cookie_name: str = "admin_session"
    ttl_minutes: int = 8 * 60
    cookie_secure: bool = True
    admin_password: Optional[str] = None
    admin_password_hash: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "SessionConfig":
        return cls(
            secret=settings.SESSION_SECRET,
            cookie_name=settings.SESSION_COOKIE_NAME,
            ttl_minutes=int(settings.SESSION_TTL_MINUTES),
            cookie_secure=bool(settings.SESSION_COOKIE_SECURE),
            admin_password=settings.ADMIN_PASSWORD,
            admin_password_hash=settings.ADMIN_PASSWORD_HASH,
        )


def ensure_secret_configured(settings: AppSettings) -> None:
    """启动即执行：非 dev 环境禁止使用默认 secret。"""
    if settings.ENV == "dev":
        return
    if not settings.SESSION_SECRET or settings.SESSION_SECRET in _DEV_SECRETS:
        raise RuntimeError(
            "SECURITY ERROR: SESSION_SECRET is not properly configured.\n\n"
            f"ENV = {settings.ENV!r}\n"
            "You are running in a non-dev environment, but SESSION_SECRET is missing "
            "or still using a development default value.\n\n"
            "Fix:\n"
            "  - Set a strong SESSION_SECRET via environment variable or .env file\n"
            "  - Restart the application\n"
        )


def get_password_hash(password: str) -> str:
    return _pwd_context.hash(password)


def verify_admin_password(plain_password: Optional[str], cfg: SessionConfig) -> bool:
    """未配置任何口令时一律拒绝。"""
    if not plain_password:
        return False
    if cfg.admin_password_hash:
        try:
            return _pwd_context.verify(plain_password, cfg.admin_password_hash)
        except (ValueError, TypeError):
            log.warning("ADMIN_PASSWORD_HASH is not a valid passlib hash")
            return False
    if cfg.admin_password:
        return hmac.compare_digest(plain_password.encode("utf-8"), cfg.admin_password.encode("utf-8"))
    return False


def create_session_token(cfg: SessionConfig, *, now: Optional[float] = None) -> str:
    issued = int(now if now is not None else time.time())
    payload: Dict[str, Any] = {
        "sub": _SUBJECT,
        "iat": issued,
        "exp": issued + 60 * cfg.ttl_minutes,
    }
    return jwt.encode(payload, cfg.secret, algorithm=_JWT_ALG)


def decode_session_token(token: Optional[str], cfg: SessionConfig) -> Optional[Dict[str, Any]]:
    """签名错误 / 过期 / 主体不对 → None。"""
    if not token:
        return None
    try:
        out = jwt.decode(token, cfg.secret, algorithms=[_JWT_ALG])
    except jwt.PyJWTError:
        return None
    if not isinstance(out, dict) or out.get("sub") != _SUBJECT:
        return None
    return out

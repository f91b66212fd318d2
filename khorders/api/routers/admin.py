# khorders/api/routers/admin.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from khorders.api.deps import get_dispatcher, get_session_config, is_authorized, require_admin
from khorders.api.problem import make_problem, raise_401
from khorders.core.security import SessionConfig, create_session_token, verify_admin_password
from khorders.core.trace import new_trace
from khorders.schemas.orders import EmailHealthOut, LoginIn, OkOut, SessionOut
from khorders.services.mailer import MailError
from khorders.services.notification_dispatcher import NotificationDispatcher

log = logging.getLogger("khorders.auth")

router = APIRouter(tags=["admin"])


@router.post("/login", response_model=OkOut)
async def login(
    payload: LoginIn,
    response: Response,
    cfg: SessionConfig = Depends(get_session_config),
):
    """
    管理员登录：
    - 口令正确 → 下发 httpOnly 会话 cookie（默认 8 小时）
    - 口令错误 / 未配置口令 → 401
    """
    if not verify_admin_password(payload.password, cfg):
        log.info("admin login rejected")
        raise_401("Invalid password")

    response.set_cookie(
        key=cfg.cookie_name,
        value=create_session_token(cfg),
        max_age=60 * cfg.ttl_minutes,
        path="/",
        httponly=True,
        secure=cfg.cookie_secure,
        samesite="lax",
    )
    log.info("admin login ok")
    return OkOut()


@router.post("/logout", response_model=OkOut)
async def logout(response: Response, cfg: SessionConfig = Depends(get_session_config)):
    response.delete_cookie(
        key=cfg.cookie_name,
        path="/",
        httponly=True,
        secure=cfg.cookie_secure,
        samesite="lax",
    )
    return OkOut()


@router.get("/admin/session", response_model=SessionOut)
async def admin_session(request: Request, cfg: SessionConfig = Depends(get_session_config)):
    return SessionOut(authorized=is_authorized(request, cfg))


@router.get(
    "/email-health",
    response_model=EmailHealthOut,
    dependencies=[Depends(require_admin)],
)
async def email_health(dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """发一封测试邮件给管理员；服务商失败 → 502，未配置收件人 → 500。"""
    trace = new_trace("http:/email-health")
    if not dispatcher.cfg.admin_emails:
        return JSONResponse(
            status_code=500,
            content=make_problem(
                status_code=500,
                error_code="MAIL_NOT_CONFIGURED",
                message="Missing ADMIN_NOTIFY_EMAIL/FROM_EMAIL",
                trace_id=trace.trace_id,
            ),
        )
    try:
        message_id = await dispatcher.send_health_check()
    except MailError as exc:
        log.warning("email health failed[%s]: %s details=%s", trace.trace_id, exc.message, exc.details)
        return JSONResponse(
            status_code=502,
            content=make_problem(
                status_code=502,
                error_code=exc.code,
                message=exc.message,
                context=exc.context,
                trace_id=trace.trace_id,
            ),
        )
    return EmailHealthOut(messageId=message_id)

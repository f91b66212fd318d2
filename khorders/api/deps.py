# khorders/api/deps.py
from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from khorders.api.problem import raise_401
from khorders.core.config import AppSettings, get_settings
from khorders.core.security import SessionConfig, decode_session_token
from khorders.db.session import get_sessionmaker
from khorders.services.fulfillment_dates import FulfillmentRules
from khorders.services.mailer import Mailer, ResendConfig, ResendMailer
from khorders.services.notification_dispatcher import NotificationDispatcher, NotifyConfig
from khorders.services.order_store import OrderStore
from khorders.services.order_workflow import Clock, OrderWorkflow, system_clock
from khorders.services.short_id_allocator import ShortIdAllocator, ShortIdFormat, SqlSequenceCounter

# ---------------------------
# 基础设施（测试中通过 dependency_overrides 替换）
# ---------------------------


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return get_sessionmaker()


def get_mailer(settings: AppSettings = Depends(get_settings)) -> Mailer:
    return ResendMailer(ResendConfig.from_settings(settings))


def get_clock(settings: AppSettings = Depends(get_settings)) -> Clock:
    return system_clock(settings.BUSINESS_TZ)


# ---------------------------
# 订单链路组件
# ---------------------------


def get_order_store(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderStore:
    return OrderStore(sessions)


def get_allocator(
    sessions: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings: AppSettings = Depends(get_settings),
) -> ShortIdAllocator:
    return ShortIdAllocator(SqlSequenceCounter(sessions), ShortIdFormat.from_settings(settings))


def get_dispatcher(
    mailer: Mailer = Depends(get_mailer),
    settings: AppSettings = Depends(get_settings),
) -> NotificationDispatcher:
    return NotificationDispatcher(mailer, NotifyConfig.from_settings(settings))


def get_order_workflow(
    store: OrderStore = Depends(get_order_store),
    allocator: ShortIdAllocator = Depends(get_allocator),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
    settings: AppSettings = Depends(get_settings),
) -> OrderWorkflow:
    return OrderWorkflow(
        store=store,
        allocator=allocator,
        dispatcher=dispatcher,
        rules=FulfillmentRules.from_settings(settings),
        clock=clock,
    )


# ---------------------------
# 管理端会话
# ---------------------------


def get_session_config(settings: AppSettings = Depends(get_settings)) -> SessionConfig:
    return SessionConfig.from_settings(settings)


def is_authorized(request: Request, cfg: SessionConfig) -> bool:
    """cookie 存在、签名正确且未过期。"""
    token = request.cookies.get(cfg.cookie_name)
    return decode_session_token(token, cfg) is not None


async def require_admin(
    request: Request,
    cfg: SessionConfig = Depends(get_session_config),
) -> None:
    if not is_authorized(request, cfg):
        raise_401()

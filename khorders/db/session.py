# khorders/db/session.py
# 统一的异步 engine / 会话工厂（惰性创建，import 时不连库）
from __future__ import annotations

import logging
import re
from functools import lru_cache

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from khorders.core.config import get_settings

log = logging.getLogger("khorders.db")


def _strip_quotes(raw: str) -> str:
    # 有些环境会把值写成 '"postgresql+psycopg://.../db"'，这里统一剥掉两侧引号
    s = (raw or "").strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        s = s[1:-1].strip()
    return s


def normalize_async_dsn(url: str) -> str:
    """把各种历史写法统一到 psycopg3 / aiosqlite。"""
    url = _strip_quotes(url)
    if not url:
        raise ValueError("DATABASE_URL is empty")
    # sqlite:/// → sqlite+aiosqlite:///
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite://") :]
    # postgres/postgresql(+*) → postgresql+psycopg
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def create_async_engine_safe(url_str: str, *, echo: bool = False, **kwargs) -> AsyncEngine:
    """PG 开 pool_pre_ping；SQLite 只带 check_same_thread。"""
    dsn = normalize_async_dsn(url_str)
    backend = make_url(dsn).get_backend_name()

    opts = {"echo": echo, **kwargs}
    if backend.startswith("postgresql"):
        opts.setdefault("pool_pre_ping", True)
    elif backend.startswith("sqlite"):
        opts.setdefault("connect_args", {"check_same_thread": False})
    return create_async_engine(dsn, **opts)


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    engine = create_async_engine_safe(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    log.info("[DB] Using DSN (async): %s", engine.url.render_as_string(hide_password=True))
    return engine


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=get_engine(), class_=AsyncSession, expire_on_commit=False)


# ---- 关闭引擎（测试/生命周期） ----
async def close_engines() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
        get_engine.cache_clear()
        get_sessionmaker.cache_clear()

# tests/conftest.py
from __future__ import annotations

from datetime import datetime
from typing import AsyncGenerator
from zoneinfo import ZoneInfo

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from khorders.api.deps import get_clock, get_mailer, get_session_factory
from khorders.core.config import AppSettings, get_settings
from khorders.db.base import Base, init_models
from khorders.db.session import create_async_engine_safe
from khorders.main import app
from khorders.services.fulfillment_dates import FulfillmentRules
from tests.helpers.mailer import FakeMailer
from tests.helpers.orders import ADMIN_EMAIL, ADMIN_PASSWORD

DENVER = ZoneInfo("America/Denver")

# 基准时间：2026-10-21 是周三，当周周六为 2026-10-24
WEDNESDAY_9AM = datetime(2026, 10, 21, 9, 0, tzinfo=DENVER)


# =========================================
# 每用例独立 SQLite 文件库（NullPool，避免跨 loop）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine_safe(f"sqlite:///{tmp_path / 'khorders.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def sessions(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def settings(tmp_path) -> AppSettings:
    return AppSettings(
        _env_file=None,
        ENV="test",
        DATABASE_URL=f"sqlite:///{tmp_path / 'khorders.db'}",
        SESSION_SECRET="test-session-secret-0123456789abcdef",
        SESSION_COOKIE_SECURE=False,
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        RESEND_API_KEY="re_test_key",
        ADMIN_NOTIFY_EMAIL=ADMIN_EMAIL,
        FROM_EMAIL="orders@kh.test",
        NOTIFY_TIMEOUT_SECONDS=0.5,
    )


@pytest.fixture
def rules() -> FulfillmentRules:
    return FulfillmentRules()


@pytest.fixture
def fake_mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def now() -> datetime:
    return WEDNESDAY_9AM


# =========================================
# HTTP 客户端：依赖全部替换为测试实现
# =========================================
@pytest_asyncio.fixture
async def client(sessions, settings, fake_mailer, now) -> AsyncGenerator[httpx.AsyncClient, None]:
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_session_factory] = lambda: sessions
    app.dependency_overrides[get_mailer] = lambda: fake_mailer
    app.dependency_overrides[get_clock] = lambda: (lambda: now)

    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin_client(client: httpx.AsyncClient) -> httpx.AsyncClient:
    r = await client.post("/login", json={"password": ADMIN_PASSWORD})
    assert r.status_code == 200, r.text
    return client

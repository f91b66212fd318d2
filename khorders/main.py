# khorders/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from khorders import __version__
from khorders.api.routers.admin import router as admin_router
from khorders.api.routers.orders import router as orders_router
from khorders.core.config import get_settings
from khorders.core.logging import setup_logging
from khorders.core.security import ensure_secret_configured
from khorders.db import init_models
from khorders.db.session import close_engines
from khorders.http_problem_handlers import register_exception_handlers
from khorders.metrics import router as metrics_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger("khorders")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ensure_secret_configured(get_settings())
    init_models()
    logger.info("khorders %s starting (env=%s)", __version__, settings.ENV)
    try:
        yield
    finally:
        await close_engines()


app = FastAPI(
    title="KH Orders",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(orders_router)
app.include_router(admin_router)
app.include_router(metrics_router)


@app.get("/")
async def root():
    return {"name": settings.SITE_NAME, "service": "kh-orders", "version": __version__}


@app.get("/ping")
async def ping():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}

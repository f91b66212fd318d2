# khorders/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable, List, Set

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("khorders.db")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False  # 防重复初始化

MODEL_MODULES = (
    "khorders.models.order",
    "khorders.models.order_sequence",
)


def init_models(*, extra_modules: Iterable[str] | None = None, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射（alembic env / 建表脚本 / 测试共用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    loaded: List[str] = []
    seen: Set[str] = set()
    for mod in [*MODEL_MODULES, *(extra_modules or [])]:
        if mod in seen:
            continue
        seen.add(mod)
        importlib.import_module(mod)
        loaded.append(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(loaded))

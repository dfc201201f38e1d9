# stockledger/db/base.py
from __future__ import annotations

import importlib
import logging

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("stockledger.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


_INITIALIZED: bool = False

_MODEL_MODULES = (
    "stockledger.models.location",
    "stockledger.models.product",
    "stockledger.models.stock",
    "stockledger.models.stock_movement",
)


def init_models(*, force: bool = False) -> None:
    """集中导入模型 + 固化关系映射（Alembic / 脚本 / 建表前调用）。"""
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    for mod in _MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(_MODEL_MODULES))


async def create_all_tables(engine) -> None:
    """dev / 测试：按 ORM 元数据直接建表（生产走 Alembic 迁移）。"""
    init_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all_tables(engine) -> None:
    init_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

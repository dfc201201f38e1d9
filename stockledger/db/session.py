# stockledger/db/session.py
# 异步 Engine / AsyncSession 工厂：不持有进程级全局句柄，由应用启动或测试显式创建
from __future__ import annotations

import re
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stockledger.core.config import AppSettings


def normalize_async_dsn(url: str) -> str:
    """
    DSN 归一：
      sqlite:///x.db            → sqlite+aiosqlite:///x.db
      postgres:// / postgresql:// / postgresql+asyncpg:// → postgresql+psycopg://
    两侧引号会被剥掉（部分环境把值写成 '"postgresql://..."'）。
    """
    url = (url or "").strip()
    if (url.startswith('"') and url.endswith('"')) or (url.startswith("'") and url.endswith("'")):
        url = url[1:-1].strip()
    if not url:
        raise ValueError("DATABASE_URL 为空")

    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _connect_args_for(url_str: str) -> dict[str, Any]:
    backend = make_url(url_str).get_backend_name()
    if backend.startswith("sqlite"):
        # 写锁等待（秒）：并发写入时排队而不是立刻报 database is locked
        return {"timeout": 30}
    return {}


def create_engine_from_url(url: str, *, echo: bool = False, **kwargs: Any) -> AsyncEngine:
    dsn = normalize_async_dsn(url)
    opts: dict[str, Any] = {"echo": echo}
    if make_url(dsn).get_backend_name().startswith("postgresql"):
        opts["pool_pre_ping"] = True
    connect_args = _connect_args_for(dsn)
    if connect_args:
        opts["connect_args"] = connect_args
    opts.update(kwargs)
    return create_async_engine(dsn, **opts)


def create_engine_from_settings(settings: AppSettings) -> AsyncEngine:
    return create_engine_from_url(settings.DATABASE_URL, echo=settings.SQL_ECHO)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

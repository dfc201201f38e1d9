# stockledger/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stockledger import __version__
from stockledger.api.routers.health import router as health_router
from stockledger.api.routers.locations import router as locations_router
from stockledger.api.routers.stocks import router as stocks_router
from stockledger.core.config import AppSettings, get_settings
from stockledger.core.logging import setup_logging
from stockledger.db.base import create_all_tables
from stockledger.db.session import build_session_factory, create_engine_from_settings
from stockledger.http_handlers import register_exception_handlers
from stockledger.obs.metrics import PrometheusMiddleware
from stockledger.services.container import LedgerServices, build_services

logger = logging.getLogger("stockledger")


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    services: Optional[LedgerServices] = None,
) -> FastAPI:
    """
    应用工厂：

    - 未注入 services 时，lifespan 内按 DATABASE_URL 建 engine + session_factory + 服务容器
    - ENV=dev 时启动自动建表（生产走 alembic upgrade head）
    - 测试直接注入已装配好的 services（共享测试库）
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if services is not None:
            app.state.services = services
        else:
            engine = create_engine_from_settings(settings)
            if settings.ENV.lower() == "dev":
                await create_all_tables(engine)
            app.state.services = build_services(build_session_factory(engine), settings)
        logger.info("stockledger %s started env=%s", __version__, settings.ENV)
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title="Stock Ledger",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    # lifespan 不执行时（部分测试客户端）也要能拿到容器
    if services is not None:
        app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(locations_router)
    app.include_router(stocks_router)
    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, sql_echo=settings.SQL_ECHO)
    return create_app(settings)


app = _build_default_app()

# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import NullPool

from stockledger.core.config import AppSettings
from stockledger.db.base import create_all_tables, drop_all_tables
from stockledger.db.session import build_session_factory, create_engine_from_url
from stockledger.main import create_app
from stockledger.services.container import LedgerServices, build_services
from stockledger.services.ledger_tx import RetryPolicy
from tests.factories import TENANT, LedgerFactory


# ==========================
# 数据库 DSN：默认每用例一个临时 SQLite 文件；
# 设置 STOCKLEDGER_TEST_DATABASE_URL 时改跑指定库（如 PostgreSQL）
# ==========================
@pytest.fixture(scope="function")
def database_url(tmp_path) -> str:
    url = os.getenv("STOCKLEDGER_TEST_DATABASE_URL")
    if url:
        return url
    return f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture(scope="function")
def settings(database_url: str) -> AppSettings:
    return AppSettings(_env_file=None, ENV="test", DATABASE_URL=database_url)


# =========================================
# 每用例独立 Engine（NullPool，避免跨 loop）+ 干净表结构
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_engine_from_url(database_url, poolclass=NullPool)
    await drop_all_tables(engine)
    await create_all_tables(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(async_engine: AsyncEngine):
    return build_session_factory(async_engine)


@pytest.fixture(scope="function")
def services(session_factory, settings: AppSettings) -> LedgerServices:
    # 测试里退避放短，避免并发用例拖慢
    policy = RetryPolicy(max_attempts=8, base_delay=0.001, max_delay=0.01, lock_timeout=5.0)
    return build_services(session_factory, settings, policy=policy)


@pytest.fixture(scope="function")
def factory(services: LedgerServices) -> LedgerFactory:
    return LedgerFactory(services)


# =========================================
# FastAPI / httpx AsyncClient
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(services: LedgerServices, settings: AppSettings) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(settings, services=services)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"X-Tenant-Id": TENANT, "X-User-Id": "u-1"},
        timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
    ) as c:
        yield c

#!/usr/bin/env python3
# scripts/create_tables.py
# 本地 / 演示环境直接建表（生产走 alembic upgrade head）
from __future__ import annotations

import argparse
import asyncio

from stockledger.core.config import get_settings
from stockledger.db.base import create_all_tables, drop_all_tables
from stockledger.db.session import create_engine_from_url


async def _run(db_url: str, drop: bool) -> None:
    engine = create_engine_from_url(db_url)
    try:
        if drop:
            await drop_all_tables(engine)
            print("已删除全部数据表")
        await create_all_tables(engine)
        print("所有数据库表创建完成！")
    finally:
        await engine.dispose()


def main():
    p = argparse.ArgumentParser(description="Create stock ledger tables from ORM metadata")
    p.add_argument("--db", default=None, help="DSN，默认取 DATABASE_URL")
    p.add_argument("--drop", action="store_true", help="先删表再建（仅限本地）")
    a = p.parse_args()
    asyncio.run(_run(a.db or get_settings().DATABASE_URL, a.drop))


if __name__ == "__main__":
    main()

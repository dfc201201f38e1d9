#!/usr/bin/env python3
# scripts/seed_locations.py
# 为指定租户灌入演示库位（WH-MAIN / STORE-A / STORE-B）
from __future__ import annotations

import argparse
import asyncio

from stockledger.core.config import get_settings
from stockledger.core.errors import ConflictError
from stockledger.db.base import init_models
from stockledger.db.session import build_session_factory, create_engine_from_url
from stockledger.services.container import build_services
from stockledger.services.ledger_types import StockKey

init_models()

DEMO_LOCATIONS = [
    {
        "code": "WH-MAIN",
        "name": "Main Warehouse",
        "address": "123 Industrial Blvd, Suite 100",
    },
    {
        "code": "STORE-A",
        "name": "Retail Store A",
        "address": "456 Shopping Plaza, Unit 5",
    },
    {
        "code": "STORE-B",
        "name": "Retail Store B",
        "address": "789 Main Street",
    },
]


async def _run(tenant_id: str, db_url: str, with_stock_rows: bool) -> None:
    engine = create_engine_from_url(db_url)
    services = build_services(build_session_factory(engine), get_settings())
    created = skipped = rows = 0
    try:
        for item in DEMO_LOCATIONS:
            try:
                loc = await services.locations.create_location(tenant_id, **item)
            except ConflictError:
                print(f"skip  {item['code']}: already exists")
                skipped += 1
                continue
            print(f"ok    {loc.code} - {loc.name} (id={loc.id})")
            created += 1

            if not with_stock_rows:
                continue
            # 为已有商品预建 0 库存行
            async with services.runtime.uow_factory() as uow:
                product_ids = await uow.products.list_ids(tenant_id)
            for pid in product_ids:
                key = StockKey(tenant_id, pid, loc.id)
                await services.runtime.run(
                    "seed", [key], lambda uow, key=key: uow.stocks.compare_and_apply(key)
                )
                rows += 1
    finally:
        await engine.dispose()

    print({"tenant_id": tenant_id, "created": created, "skipped": skipped, "stock_rows": rows})


def main():
    p = argparse.ArgumentParser(description="Seed demo warehouse locations for a tenant")
    p.add_argument("tenant_id", help="租户 ID")
    p.add_argument("--db", default=None, help="DSN，默认取 DATABASE_URL")
    p.add_argument("--with-stock-rows", action="store_true", help="为已有商品预建 0 库存行")
    a = p.parse_args()
    asyncio.run(_run(a.tenant_id, a.db or get_settings().DATABASE_URL, a.with_stock_rows))


if __name__ == "__main__":
    main()

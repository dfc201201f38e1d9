# stockledger/services/container.py
"""
服务装配：一个 session_factory + 一个进程内锁表 + 一份重试策略，
所有服务共享同一个 LedgerRuntime（同 key 的锁必须是同一把）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockledger.core.config import AppSettings, get_settings
from stockledger.core.keyed_lock import KeyedLockRegistry
from stockledger.db.uow import uow_factory_for
from stockledger.services.ledger_tx import LedgerRuntime, RetryPolicy
from stockledger.services.location_registry import LocationRegistry
from stockledger.services.movement_journal import MovementJournal
from stockledger.services.stock_bulk_service import StockBulkService
from stockledger.services.stock_ledger_service import StockLedgerService
from stockledger.services.stock_query_service import StockQueryService
from stockledger.services.transfer_coordinator import TransferCoordinator


@dataclass
class LedgerServices:
    runtime: LedgerRuntime
    locations: LocationRegistry
    ledger: StockLedgerService
    transfers: TransferCoordinator
    journal: MovementJournal
    bulk: StockBulkService
    stocks: StockQueryService


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Optional[AppSettings] = None,
    *,
    policy: Optional[RetryPolicy] = None,
) -> LedgerServices:
    settings = settings or get_settings()
    runtime = LedgerRuntime(
        uow_factory=uow_factory_for(session_factory),
        locks=KeyedLockRegistry(),
        policy=policy or RetryPolicy.from_settings(settings),
    )
    return LedgerServices(
        runtime=runtime,
        locations=LocationRegistry(
            runtime,
            default_page_size=settings.LOCATION_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
        ),
        ledger=StockLedgerService(runtime),
        transfers=TransferCoordinator(runtime),
        journal=MovementJournal(
            runtime,
            default_page_size=settings.MOVEMENT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
        ),
        bulk=StockBulkService(runtime),
        stocks=StockQueryService(runtime, max_page_size=settings.MAX_PAGE_SIZE),
    )

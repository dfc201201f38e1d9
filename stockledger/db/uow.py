# stockledger/db/uow.py
"""
Unit of Work：一次调用 = 一个 AsyncSession = 一个事务边界。

    async with LedgerUnitOfWork(session_factory) as uow:
        await uow.stocks.compare_and_apply(...)
        await uow.movements.append(...)

- 无异常 -> commit；有异常 -> rollback；UoW 自己创建的 session 由 UoW 关闭
- 仓储（locations / products / stocks / movements）共享同一个 session
- 服务层只拿工厂（UnitOfWorkFactory），每次尝试新开一个 UoW，便于重试与测试替身
"""

from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stockledger.services.location_repo import LocationRepo
from stockledger.services.movement_repo import MovementRepo
from stockledger.services.product_repo import ProductRepo
from stockledger.services.stock_repo import StockRepo


class LedgerUnitOfWork:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self.session: Optional[AsyncSession] = None

        self.locations: LocationRepo
        self.products: ProductRepo
        self.stocks: StockRepo
        self.movements: MovementRepo

    async def __aenter__(self) -> "LedgerUnitOfWork":
        self.session = self._session_factory()
        self.locations = LocationRepo(self.session)
        self.products = ProductRepo(self.session)
        self.stocks = StockRepo(self.session)
        self.movements = MovementRepo(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if self.session is None:
            return False
        try:
            if exc_type:
                await self.session.rollback()
            else:
                await self.session.commit()
        finally:
            try:
                await self.session.close()
            finally:
                self.session = None
        # False -> 异常继续向外抛
        return False


UnitOfWorkFactory = Callable[[], LedgerUnitOfWork]


def uow_factory_for(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWorkFactory:
    def _make() -> LedgerUnitOfWork:
        return LedgerUnitOfWork(session_factory)

    return _make

# stockledger/services/stock_repo.py
"""
库存行仓储：单行原子 compare-and-apply

    compare_and_apply(key, quantity_delta, reserved_delta, allow_negative, guard)

流程：
  1) 加锁读取（PG: SELECT ... FOR UPDATE；SQLite 由库级写锁串行）
  2) 行不存在：按 0/0 物化（create_missing=False 时抛 NotFoundError）
  3) guard(当前快照)：业务规则（负库存 / 超预留 / 可用不足）由调用方注入
  4) 计算后置状态 → check_stock_invariants（不变量失败抛 InvariantViolation）
  5) UPDATE ... WHERE id = :id AND version = :seen；命中 0 行抛 StaleStockError（可重试）

读取只选列、不装载 ORM 实体，避免 identity map 中残留旧值。
"""

from __future__ import annotations

from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy import exists, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.core.errors import NotFoundError, StaleStockError
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.models.stock import Stock
from stockledger.services.ledger_types import AppliedChange, StockKey, StockState, StockView
from stockledger.services.stock_rules import check_stock_invariants

StockGuard = Callable[[StockState], None]
# 增量可以是常数，也可以由加锁后的当前快照算出（如“设为目标值”、“按余量截断释放”）
Delta = Union[int, Callable[[StockState], int]]


class StockRepo:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------

    def _key_stmt(self, key: StockKey):
        return select(Stock.id, Stock.quantity, Stock.reserved_quantity, Stock.version).where(
            Stock.tenant_id == key.tenant_id,
            Stock.product_id == int(key.product_id),
            Stock.location_id == int(key.location_id),
        )

    @staticmethod
    def _state(key: StockKey, row) -> StockState:
        return StockState(
            stock_id=int(row.id),
            key=key,
            quantity=int(row.quantity),
            reserved_quantity=int(row.reserved_quantity),
            version=int(row.version),
        )

    async def get_state(self, key: StockKey) -> Optional[StockState]:
        row = (await self.session.execute(self._key_stmt(key))).first()
        return self._state(key, row) if row is not None else None

    async def _lock_state(self, key: StockKey) -> Optional[StockState]:
        row = (await self.session.execute(self._key_stmt(key).with_for_update())).first()
        return self._state(key, row) if row is not None else None

    async def _materialize(self, key: StockKey) -> StockState:
        try:
            await self.session.execute(
                insert(Stock).values(
                    tenant_id=key.tenant_id,
                    product_id=int(key.product_id),
                    location_id=int(key.location_id),
                    quantity=0,
                    reserved_quantity=0,
                    version=0,
                )
            )
        except IntegrityError as e:
            # 并发物化同一行：整个事务回滚后由事务执行器重试
            raise StaleStockError(f"concurrent stock row creation for {key}") from e

        state = await self._lock_state(key)
        if state is None:
            raise StaleStockError(f"stock row vanished after creation for {key}")
        return state

    async def exists_at_location(
        self,
        tenant_id: str,
        location_id: int,
        *,
        positive_only: bool = False,
        negative_only: bool = False,
    ) -> bool:
        cond = [Stock.tenant_id == tenant_id, Stock.location_id == int(location_id)]
        if positive_only:
            cond.append(Stock.quantity > 0)
        if negative_only:
            cond.append(Stock.quantity < 0)
        return bool((await self.session.execute(select(exists().where(*cond)))).scalar())

    # ------------------------------------------------------------------
    # compare-and-apply
    # ------------------------------------------------------------------

    async def compare_and_apply(
        self,
        key: StockKey,
        *,
        quantity_delta: Delta = 0,
        reserved_delta: Delta = 0,
        allow_negative: bool = False,
        guard: Optional[StockGuard] = None,
        create_missing: bool = True,
    ) -> AppliedChange:
        created = False
        before = await self._lock_state(key)
        if before is None:
            if not create_missing:
                raise NotFoundError(
                    "stock record not found",
                    context={"product_id": key.product_id, "location_id": key.location_id},
                )
            before = await self._materialize(key)
            created = True

        if guard is not None:
            guard(before)

        q_delta = int(quantity_delta(before)) if callable(quantity_delta) else int(quantity_delta)
        r_delta = int(reserved_delta(before)) if callable(reserved_delta) else int(reserved_delta)
        new_qty = before.quantity + q_delta
        new_reserved = before.reserved_quantity + r_delta
        check_stock_invariants(
            new_qty,
            new_reserved,
            allow_negative=allow_negative,
            context={
                "tenant_id": key.tenant_id,
                "product_id": key.product_id,
                "location_id": key.location_id,
                "stock_id": before.stock_id,
                "quantity_delta": q_delta,
                "reserved_delta": r_delta,
            },
        )

        res = await self.session.execute(
            update(Stock)
            .where(Stock.id == before.stock_id, Stock.version == before.version)
            .values(
                quantity=new_qty,
                reserved_quantity=new_reserved,
                version=before.version + 1,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            raise StaleStockError(
                f"stock row {before.stock_id} changed concurrently (seen version {before.version})"
            )

        after = StockState(
            stock_id=before.stock_id,
            key=key,
            quantity=new_qty,
            reserved_quantity=new_reserved,
            version=before.version + 1,
        )
        return AppliedChange(before=before, after=after, created=created)

    # ------------------------------------------------------------------
    # 视图查询（联 products / locations 展示字段）
    # ------------------------------------------------------------------

    def _view_stmt(self, tenant_id: str):
        return (
            select(
                Stock.id,
                Stock.product_id,
                Product.sku,
                Product.name.label("product_name"),
                Stock.location_id,
                Location.code.label("location_code"),
                Location.name.label("location_name"),
                Stock.quantity,
                Stock.reserved_quantity,
            )
            .join(Product, Product.id == Stock.product_id)
            .join(Location, Location.id == Stock.location_id)
            .where(Stock.tenant_id == tenant_id)
        )

    @staticmethod
    def _view(row) -> StockView:
        return StockView(
            stock_id=int(row.id),
            product_id=int(row.product_id),
            sku=row.sku,
            product_name=row.product_name,
            location_id=int(row.location_id),
            location_code=row.location_code,
            location_name=row.location_name,
            quantity=int(row.quantity),
            reserved_quantity=int(row.reserved_quantity),
        )

    async def list_views(
        self,
        tenant_id: str,
        *,
        product_id: Optional[int] = None,
        location_id: Optional[int] = None,
        offset: int = 0,
        limit: Optional[int] = None,
        order: str = "location",
    ) -> Tuple[List[StockView], int]:
        stmt = self._view_stmt(tenant_id)
        count_stmt = select(func.count(Stock.id)).where(Stock.tenant_id == tenant_id)
        if product_id is not None:
            stmt = stmt.where(Stock.product_id == int(product_id))
            count_stmt = count_stmt.where(Stock.product_id == int(product_id))
        if location_id is not None:
            stmt = stmt.where(Stock.location_id == int(location_id))
            count_stmt = count_stmt.where(Stock.location_id == int(location_id))

        if order == "location_name":
            stmt = stmt.order_by(Location.name.asc(), Stock.id.asc())
        else:
            stmt = stmt.order_by(Location.code.asc(), Product.sku.asc(), Stock.id.asc())

        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        total = int((await self.session.execute(count_stmt)).scalar_one())
        rows = (await self.session.execute(stmt)).all()
        return [self._view(r) for r in rows], total

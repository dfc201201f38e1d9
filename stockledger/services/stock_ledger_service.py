# stockledger/services/stock_ledger_service.py
"""
库存台账服务：adjust / reserve / unreserve

每个操作 = 一次 run_ledger_tx（同 key 串行 + 有界重试）：
  - adjust：库存行 compare-and-apply + 追加一条 IN / OUT 台账，同事务提交
  - reserve / unreserve：只动 reserved_quantity，不写台账；库存行必须已存在

返回值统一为更新后的 StockState（available 现算）。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from stockledger.core.errors import (
    NegativeStockError,
    NotFoundError,
    OverReservationError,
    ValidationError,
)
from stockledger.db.uow import LedgerUnitOfWork
from stockledger.models.enums import MovementType
from stockledger.obs.metrics import ledger_movements_total
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import StockKey, StockState
from stockledger.services.stock_rules import normalize_reason, normalize_reference, require_int

logger = logging.getLogger("stockledger.stock")


async def load_location_for_write(uow: LedgerUnitOfWork, tenant_id: str, location_id: int):
    """库存写入前读取库位（共享锁，阻止并发停用 / 改策略）。"""
    loc = await uow.locations.get(tenant_id, location_id, lock="share")
    if loc is None:
        raise NotFoundError("location not found", context={"location_id": location_id})
    return loc


async def require_product(uow: LedgerUnitOfWork, tenant_id: str, product_id: int):
    product = await uow.products.get(tenant_id, product_id)
    if product is None:
        raise NotFoundError("product not found", context={"product_id": product_id})
    return product


class StockLedgerService:
    def __init__(self, runtime: LedgerRuntime) -> None:
        self._rt = runtime

    async def adjust_stock(
        self,
        tenant_id: str,
        product_id: int,
        location_id: int,
        delta: Any,
        reason: Any,
        reference: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> StockState:
        delta = require_int(delta, "delta")
        if delta == 0:
            raise ValidationError("delta must not be zero", context={"field": "delta"})
        reason = normalize_reason(reason)
        reference = normalize_reference(reference)
        created_by = actor or tenant_id
        key = StockKey(tenant_id, int(product_id), int(location_id))

        async def _tx(uow: LedgerUnitOfWork):
            loc = await load_location_for_write(uow, tenant_id, key.location_id)
            await require_product(uow, tenant_id, key.product_id)

            def guard(cur: StockState) -> None:
                new_qty = cur.quantity + delta
                if new_qty < 0 and not loc.allow_negative_stock:
                    raise NegativeStockError(
                        f"insufficient stock: available {cur.available_quantity}, delta {delta}",
                        available=cur.available_quantity,
                        delta=delta,
                        context={"location_id": key.location_id, "product_id": key.product_id},
                    )
                if cur.reserved_quantity > max(new_qty, 0):
                    raise OverReservationError(
                        "adjustment would cut into reserved stock",
                        context={
                            "quantity": cur.quantity,
                            "reserved_quantity": cur.reserved_quantity,
                            "delta": delta,
                        },
                    )

            change = await uow.stocks.compare_and_apply(
                key,
                quantity_delta=delta,
                allow_negative=loc.allow_negative_stock,
                guard=guard,
            )
            movement = await uow.movements.append(
                tenant_id=tenant_id,
                product_id=key.product_id,
                movement_type=MovementType.IN if delta > 0 else MovementType.OUT,
                quantity=abs(delta),
                reason=reason,
                reference=reference,
                created_by=created_by,
                location_id=key.location_id,
            )
            return change, movement

        change, movement = await self._rt.run("adjust", [key], _tx)
        ledger_movements_total.labels(movement.movement_type.value).inc()
        logger.info(
            "stock adjusted tenant=%s product=%s location=%s delta=%+d qty=%d->%d movement=%s",
            tenant_id,
            key.product_id,
            key.location_id,
            delta,
            change.before.quantity,
            change.after.quantity,
            movement.id,
        )
        return change.after

    async def reserve_stock(
        self,
        tenant_id: str,
        product_id: int,
        location_id: int,
        amount: Any,
        order_id: Optional[str] = None,
    ) -> StockState:
        amount = require_int(amount, "quantity", minimum=0)
        key = StockKey(tenant_id, int(product_id), int(location_id))

        def guard(cur: StockState) -> None:
            if cur.reserved_quantity + amount > cur.quantity:
                raise OverReservationError(
                    f"cannot reserve {amount}: available {cur.available_quantity}",
                    context={
                        "quantity": cur.quantity,
                        "reserved_quantity": cur.reserved_quantity,
                        "requested": amount,
                        "order_id": order_id,
                    },
                )

        async def _tx(uow: LedgerUnitOfWork):
            return await uow.stocks.compare_and_apply(
                key,
                reserved_delta=amount,
                guard=guard,
                create_missing=False,
            )

        change = await self._rt.run("reserve", [key], _tx)
        logger.info(
            "stock reserved tenant=%s product=%s location=%s amount=%d reserved=%d order=%s",
            tenant_id,
            key.product_id,
            key.location_id,
            amount,
            change.after.reserved_quantity,
            order_id,
        )
        return change.after

    async def unreserve_stock(
        self,
        tenant_id: str,
        product_id: int,
        location_id: int,
        amount: Any,
        order_id: Optional[str] = None,
    ) -> StockState:
        amount = require_int(amount, "quantity", minimum=0)
        key = StockKey(tenant_id, int(product_id), int(location_id))

        async def _tx(uow: LedgerUnitOfWork):
            return await uow.stocks.compare_and_apply(
                key,
                # 超额释放按 0 截断（幂等释放）
                reserved_delta=lambda cur: -min(amount, cur.reserved_quantity),
                create_missing=False,
                # 只动 reserved；负库存行的 reserved 恒为 0
                allow_negative=True,
            )

        change = await self._rt.run("unreserve", [key], _tx)
        logger.info(
            "stock unreserved tenant=%s product=%s location=%s amount=%d reserved=%d order=%s",
            tenant_id,
            key.product_id,
            key.location_id,
            amount,
            change.after.reserved_quantity,
            order_id,
        )
        return change.after


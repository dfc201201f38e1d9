# stockledger/services/transfer_coordinator.py
"""
库位间调拨（from -> to，同一事务）：

  1) 两个库位都必须存在且启用
  2) 源库存行必须存在
  3) 源可用量 = quantity - reserved，不足则 InsufficientStockError
  4) 扣源 + 加目标（不存在则物化）+ 一条 TRANSFER 台账
     三者同事务，任一步失败整体回滚
  5) 预留量不随调拨移动

两个库存行的 key 锁按排序获取，A->B 与 B->A 并发不会互等。
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from stockledger.core.errors import InsufficientStockError, NotFoundError, ValidationError
from stockledger.db.uow import LedgerUnitOfWork
from stockledger.models.enums import MovementType
from stockledger.obs.metrics import ledger_movements_total
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import StockKey, StockState, TransferResult
from stockledger.services.stock_ledger_service import load_location_for_write, require_product
from stockledger.services.stock_rules import normalize_reason, normalize_reference, require_int

logger = logging.getLogger("stockledger.transfer")


class TransferCoordinator:
    def __init__(self, runtime: LedgerRuntime) -> None:
        self._rt = runtime

    async def transfer_stock(
        self,
        tenant_id: str,
        product_id: int,
        from_location_id: int,
        to_location_id: int,
        quantity: Any,
        reason: Any,
        reference: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> TransferResult:
        qty = require_int(quantity, "quantity", minimum=1)
        reason = normalize_reason(reason)
        reference = normalize_reference(reference)
        created_by = actor or tenant_id

        if int(from_location_id) == int(to_location_id):
            raise ValidationError(
                "source and destination locations must differ",
                context={"from_location_id": from_location_id, "to_location_id": to_location_id},
            )

        src_key = StockKey(tenant_id, int(product_id), int(from_location_id))
        dst_key = StockKey(tenant_id, int(product_id), int(to_location_id))

        async def _tx(uow: LedgerUnitOfWork):
            src_loc = await load_location_for_write(uow, tenant_id, src_key.location_id)
            dst_loc = await load_location_for_write(uow, tenant_id, dst_key.location_id)
            for loc in (src_loc, dst_loc):
                if not loc.is_active:
                    raise NotFoundError(
                        f"location {loc.code} is inactive",
                        code="LOCATION_INACTIVE",
                        context={"location_id": loc.id},
                    )
            await require_product(uow, tenant_id, src_key.product_id)

            def guard(cur: StockState) -> None:
                if cur.available_quantity < qty:
                    raise InsufficientStockError(
                        f"insufficient stock at {src_loc.code}: available {cur.available_quantity}, requested {qty}",
                        available=cur.available_quantity,
                        requested=qty,
                        context={"location_id": src_key.location_id, "product_id": src_key.product_id},
                    )

            src = await uow.stocks.compare_and_apply(
                src_key,
                quantity_delta=-qty,
                allow_negative=src_loc.allow_negative_stock,
                guard=guard,
                create_missing=False,
            )
            dst = await uow.stocks.compare_and_apply(
                dst_key,
                quantity_delta=qty,
                allow_negative=dst_loc.allow_negative_stock,
            )
            movement = await uow.movements.append(
                tenant_id=tenant_id,
                product_id=src_key.product_id,
                movement_type=MovementType.TRANSFER,
                quantity=qty,
                reason=reason,
                reference=reference,
                created_by=created_by,
                from_location_id=src_key.location_id,
                to_location_id=dst_key.location_id,
            )
            return TransferResult(source=src.after, destination=dst.after, movement_id=int(movement.id))

        result = await self._rt.run("transfer", [src_key, dst_key], _tx)
        ledger_movements_total.labels(MovementType.TRANSFER.value).inc()
        logger.info(
            "stock transferred tenant=%s product=%s %s->%s qty=%d movement=%s",
            tenant_id,
            src_key.product_id,
            src_key.location_id,
            dst_key.location_id,
            qty,
            result.movement_id,
        )
        return result

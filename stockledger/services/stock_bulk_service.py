# stockledger/services/stock_bulk_service.py
"""
批量导入 / 导出（盘点文件）

导入：逐行处理，一行一个串行化事务；行级失败只记入 errors，不中断整批。
  - 缺字段 / 数量非整数或为负：行错误
  - 商品按 key 解析（先 sku，再商品名）；库位按编码（大小写不敏感）
  - 目标数量覆盖现存：delta = quantity - current，在锁内计算
  - delta != 0 时追加一条 ADJUSTMENT 台账；delta == 0 不落账
  - 非 LedgerError（如数据库不可用）直接上抛

导出：纯读，按库位编码 + sku 排序。
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from stockledger.core.errors import (
    LedgerError,
    NotFoundError,
    OverReservationError,
    ValidationError,
)
from stockledger.db.uow import LedgerUnitOfWork
from stockledger.models.enums import MovementType
from stockledger.obs.metrics import ledger_movements_total
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import (
    ImportResult,
    ImportRow,
    ImportRowError,
    StockExportRow,
    StockKey,
    StockState,
)

logger = logging.getLogger("stockledger.bulk")

MISSING_FIELDS_MSG = "Missing required fields (sku, location_code, quantity)"


def parse_import_quantity(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid quantity: {raw}")
    if isinstance(raw, int):
        qty = raw
    else:
        text = str(raw).strip()
        try:
            qty = int(text)
        except ValueError:
            raise ValidationError(f"Invalid quantity: {raw}") from None
    if qty < 0:
        raise ValidationError(f"Invalid quantity: {raw}")
    return qty


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class StockBulkService:
    def __init__(self, runtime: LedgerRuntime) -> None:
        self._rt = runtime

    async def bulk_import_stocks(
        self,
        tenant_id: str,
        rows: Iterable[ImportRow],
        actor: Optional[str] = None,
    ) -> ImportResult:
        result = ImportResult()
        created_by = actor or tenant_id

        for idx, row in enumerate(rows):
            row_no = row.row_number if row.row_number is not None else idx + 2
            key_label = str(row.product_key or "").strip() or "Unknown"

            if _blank(row.product_key) or _blank(row.location_code) or _blank(row.quantity):
                result.failed += 1
                result.errors.append(ImportRowError(row=row_no, key=key_label, message=MISSING_FIELDS_MSG))
                continue

            try:
                await self._import_one(tenant_id, row, created_by)
            except LedgerError as e:
                result.failed += 1
                result.errors.append(ImportRowError(row=row_no, key=key_label, message=e.message))
                logger.info("import row rejected tenant=%s row=%s key=%s: %s", tenant_id, row_no, key_label, e)
                continue

            result.succeeded += 1

        logger.info(
            "bulk import done tenant=%s succeeded=%d failed=%d",
            tenant_id,
            result.succeeded,
            result.failed,
        )
        return result

    async def _import_one(self, tenant_id: str, row: ImportRow, created_by: str) -> None:
        target = parse_import_quantity(row.quantity)
        product_key = str(row.product_key).strip()
        location_code = str(row.location_code).strip()

        # 解析商品 / 库位（只读），拿到 key 后再进串行化事务
        async with self._rt.uow_factory() as uow:
            product = await uow.products.find_by_key(tenant_id, product_key)
            if product is None:
                raise NotFoundError("Product not found", context={"product_key": product_key})
            location = await uow.locations.get_by_code(tenant_id, location_code)
            if location is None:
                raise NotFoundError(
                    f"Location code '{location_code}' not found",
                    context={"location_code": location_code},
                )
            key = StockKey(tenant_id, int(product.id), int(location.id))

        def guard(cur: StockState) -> None:
            if target < cur.reserved_quantity:
                raise OverReservationError(
                    f"quantity {target} is below reserved quantity {cur.reserved_quantity}",
                    context={"reserved_quantity": cur.reserved_quantity, "quantity": target},
                )

        async def _tx(uow: LedgerUnitOfWork):
            loc = await uow.locations.get(tenant_id, key.location_id, lock="share")
            change = await uow.stocks.compare_and_apply(
                key,
                quantity_delta=lambda cur: target - cur.quantity,
                allow_negative=bool(loc is not None and loc.allow_negative_stock),
                guard=guard,
            )
            delta = change.after.quantity - change.before.quantity
            if delta != 0:
                await uow.movements.append(
                    tenant_id=tenant_id,
                    product_id=key.product_id,
                    movement_type=MovementType.ADJUSTMENT,
                    quantity=abs(delta),
                    reason=f"Bulk import: {'increased' if delta > 0 else 'decreased'} by {abs(delta)}",
                    created_by=created_by,
                    location_id=key.location_id,
                )
            return delta

        delta = await self._rt.run("import", [key], _tx)
        if delta != 0:
            ledger_movements_total.labels(MovementType.ADJUSTMENT.value).inc()

    async def export_stocks(
        self,
        tenant_id: str,
        product_id: Optional[int] = None,
        location_id: Optional[int] = None,
    ) -> List[StockExportRow]:
        async with self._rt.uow_factory() as uow:
            views, _ = await uow.stocks.list_views(
                tenant_id, product_id=product_id, location_id=location_id
            )
        return [
            StockExportRow(
                sku=v.sku,
                product_name=v.product_name,
                location_code=v.location_code,
                location_name=v.location_name,
                quantity=v.quantity,
                reserved_quantity=v.reserved_quantity,
                available_quantity=v.available_quantity,
            )
            for v in views
        ]

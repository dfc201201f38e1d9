# stockledger/services/movement_journal.py
"""
台账查询（只读）：按 created_at DESC, id DESC 分页返回。

写入只发生在库存事务内部（MovementRepo.append），这里不提供写接口。
"""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from stockledger.core.errors import ValidationError
from stockledger.models.enums import MovementType
from stockledger.models.stock_movement import StockMovement
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import MovementFilters, Page
from stockledger.utils.time import as_utc


class MovementJournal:
    def __init__(
        self,
        runtime: LedgerRuntime,
        *,
        default_page_size: int = 50,
        max_page_size: int = 500,
    ) -> None:
        self._rt = runtime
        self.default_page_size = int(default_page_size)
        self.max_page_size = int(max_page_size)

    def _normalize(self, filters: Optional[MovementFilters]) -> MovementFilters:
        f = filters or MovementFilters(page_size=self.default_page_size)
        if f.page < 1:
            raise ValidationError("page must be >= 1", context={"field": "page"})
        if f.page_size < 1:
            raise ValidationError("page_size must be >= 1", context={"field": "page_size"})

        movement_type = f.movement_type
        if movement_type is not None and not isinstance(movement_type, MovementType):
            try:
                movement_type = MovementType(str(movement_type).upper())
            except ValueError as e:
                raise ValidationError(
                    f"unknown movement type {f.movement_type!r}",
                    context={"field": "movement_type"},
                ) from e

        from_date = as_utc(f.from_date) if f.from_date is not None else None
        to_date = as_utc(f.to_date) if f.to_date is not None else None
        if from_date is not None and to_date is not None and from_date > to_date:
            raise ValidationError("from_date must not be after to_date", context={"field": "from_date"})

        return replace(
            f,
            movement_type=movement_type,
            from_date=from_date,
            to_date=to_date,
            page_size=min(f.page_size, self.max_page_size),
        )

    async def query_movements(
        self, tenant_id: str, filters: Optional[MovementFilters] = None
    ) -> Page[StockMovement]:
        f = self._normalize(filters)
        async with self._rt.uow_factory() as uow:
            rows, total = await uow.movements.query(tenant_id, f)
        return Page(items=rows, page=f.page, page_size=f.page_size, total=total)

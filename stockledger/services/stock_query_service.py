# stockledger/services/stock_query_service.py
from __future__ import annotations

from typing import List, Optional

from stockledger.core.errors import ValidationError
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import Page, StockView


class StockQueryService:
    """库存余额查询（联商品 sku / 名称 与库位编码 / 名称）。"""

    def __init__(self, runtime: LedgerRuntime, *, max_page_size: int = 500) -> None:
        self._rt = runtime
        self.max_page_size = int(max_page_size)

    async def list_stocks(
        self,
        tenant_id: str,
        *,
        product_id: Optional[int] = None,
        location_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Page[StockView]:
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be >= 1", context={"field": "page"})
        size = min(int(page_size), self.max_page_size)

        async with self._rt.uow_factory() as uow:
            views, total = await uow.stocks.list_views(
                tenant_id,
                product_id=product_id,
                location_id=location_id,
                offset=(page - 1) * size,
                limit=size,
            )
        return Page(items=views, page=page, page_size=size, total=total)

    async def get_stocks_by_product(self, tenant_id: str, product_id: int) -> List[StockView]:
        async with self._rt.uow_factory() as uow:
            views, _ = await uow.stocks.list_views(
                tenant_id, product_id=product_id, order="location_name"
            )
        return views

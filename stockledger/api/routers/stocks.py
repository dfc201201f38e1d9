# stockledger/api/routers/stocks.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import Response

from stockledger.adapters.stock_csv import export_filename, parse_stock_csv, render_stock_csv
from stockledger.api.deps import get_actor, get_services, get_tenant_id
from stockledger.core.errors import ValidationError
from stockledger.models.enums import MovementType
from stockledger.schemas.common import Pagination
from stockledger.schemas.stocks import (
    ImportResultEnvelope,
    ImportResultOut,
    MovementListEnvelope,
    MovementOut,
    StockAdjustIn,
    StockListEnvelope,
    StockReservationIn,
    StockStateEnvelope,
    StockTransferIn,
    StockViewOut,
    StockViewsEnvelope,
    TransferEnvelope,
    TransferOut,
    state_out,
)
from stockledger.services.container import LedgerServices
from stockledger.services.ledger_types import MovementFilters

router = APIRouter(prefix="/stocks", tags=["stocks"])


# ---------------------------------------------------------
# 查询
# ---------------------------------------------------------


@router.get("", response_model=StockListEnvelope)
async def list_stocks(
    product_id: Optional[int] = Query(None, ge=1),
    location_id: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> StockListEnvelope:
    result = await services.stocks.list_stocks(
        tenant_id, product_id=product_id, location_id=location_id, page=page, page_size=limit
    )
    return StockListEnvelope(
        data=[StockViewOut.model_validate(v) for v in result.items],
        pagination=Pagination.of(result),
    )


@router.get("/product/{product_id}", response_model=StockViewsEnvelope)
async def get_stocks_by_product(
    product_id: int = Path(..., ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> StockViewsEnvelope:
    views = await services.stocks.get_stocks_by_product(tenant_id, product_id)
    return StockViewsEnvelope(data=[StockViewOut.model_validate(v) for v in views])


@router.get("/movements", response_model=MovementListEnvelope)
async def query_movements(
    product_id: Optional[int] = Query(None, ge=1),
    location_id: Optional[int] = Query(None, ge=1),
    from_location_id: Optional[int] = Query(None, ge=1),
    to_location_id: Optional[int] = Query(None, ge=1),
    movement_type: Optional[MovementType] = Query(None),
    from_date: Optional[datetime] = Query(None, description="含边界"),
    to_date: Optional[datetime] = Query(None, description="含边界"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=500, description="缺省取 MOVEMENT_PAGE_SIZE"),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> MovementListEnvelope:
    filters = MovementFilters(
        product_id=product_id,
        location_id=location_id,
        from_location_id=from_location_id,
        to_location_id=to_location_id,
        movement_type=movement_type,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=limit or services.journal.default_page_size,
    )
    result = await services.journal.query_movements(tenant_id, filters)
    return MovementListEnvelope(
        data=[MovementOut.model_validate(m) for m in result.items],
        pagination=Pagination.of(result),
    )


# ---------------------------------------------------------
# 写操作
# ---------------------------------------------------------


@router.post("/adjust", response_model=StockStateEnvelope)
async def adjust_stock(
    payload: StockAdjustIn,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    services: LedgerServices = Depends(get_services),
) -> StockStateEnvelope:
    state = await services.ledger.adjust_stock(
        tenant_id,
        payload.product_id,
        payload.location_id,
        payload.delta,
        payload.reason,
        reference=payload.reference,
        actor=actor,
    )
    return StockStateEnvelope(data=state_out(state))


@router.post("/transfer", response_model=TransferEnvelope)
async def transfer_stock(
    payload: StockTransferIn,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    services: LedgerServices = Depends(get_services),
) -> TransferEnvelope:
    res = await services.transfers.transfer_stock(
        tenant_id,
        payload.product_id,
        payload.from_location_id,
        payload.to_location_id,
        payload.quantity,
        payload.reason,
        reference=payload.reference,
        actor=actor,
    )
    return TransferEnvelope(
        data=TransferOut(
            source=state_out(res.source),
            destination=state_out(res.destination),
            movement_id=res.movement_id,
        )
    )


@router.post("/reserve", response_model=StockStateEnvelope)
async def reserve_stock(
    payload: StockReservationIn,
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> StockStateEnvelope:
    state = await services.ledger.reserve_stock(
        tenant_id, payload.product_id, payload.location_id, payload.quantity, order_id=payload.order_id
    )
    return StockStateEnvelope(data=state_out(state))


@router.post("/unreserve", response_model=StockStateEnvelope)
async def unreserve_stock(
    payload: StockReservationIn,
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> StockStateEnvelope:
    state = await services.ledger.unreserve_stock(
        tenant_id, payload.product_id, payload.location_id, payload.quantity, order_id=payload.order_id
    )
    return StockStateEnvelope(data=state_out(state))


# ---------------------------------------------------------
# 导入 / 导出（CSV）
# ---------------------------------------------------------


@router.post("/import", response_model=ImportResultEnvelope)
async def import_stocks(
    request: Request,
    tenant_id: str = Depends(get_tenant_id),
    actor: str = Depends(get_actor),
    services: LedgerServices = Depends(get_services),
) -> ImportResultEnvelope:
    """
    请求体为 CSV 文本（text/csv）：
      表头 sku | product_key, location_code, quantity
    行级失败不影响其它行，结果里逐行给出错误。
    """
    raw = await request.body()
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValidationError("CSV body must be UTF-8 text", context={"field": "file"}) from e

    rows = parse_stock_csv(text)
    result = await services.bulk.bulk_import_stocks(tenant_id, rows, actor=actor)
    return ImportResultEnvelope(data=ImportResultOut.model_validate(result))


@router.get("/export")
async def export_stocks(
    product_id: Optional[int] = Query(None, ge=1),
    location_id: Optional[int] = Query(None, ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> Response:
    rows = await services.bulk.export_stocks(tenant_id, product_id=product_id, location_id=location_id)
    return Response(
        content=render_stock_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )

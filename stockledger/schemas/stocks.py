# stockledger/schemas/stocks.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import Field, field_validator

from stockledger.models.enums import MovementType
from stockledger.schemas.common import Pagination, _Base


# ========= 写操作入参 =========
class StockAdjustIn(_Base):
    """库存调整（正数=入库，负数=出库）"""

    product_id: Annotated[int, Field(ge=1)]
    location_id: Annotated[int, Field(ge=1)]
    delta: Annotated[int, Field(description="库存变动量；正数入库，负数出库")]
    reason: Annotated[str, Field(min_length=3, max_length=500)]
    reference: Annotated[Optional[str], Field(None, max_length=128)] = None

    @field_validator("delta")
    @classmethod
    def _nonzero(cls, v: int):
        if v == 0:
            raise ValueError("delta 不能为 0")
        return v


class StockTransferIn(_Base):
    product_id: Annotated[int, Field(ge=1)]
    from_location_id: Annotated[int, Field(ge=1)]
    to_location_id: Annotated[int, Field(ge=1)]
    quantity: Annotated[int, Field(ge=1)]
    reason: Annotated[str, Field(min_length=3, max_length=500)]
    reference: Annotated[Optional[str], Field(None, max_length=128)] = None


class StockReservationIn(_Base):
    """预留 / 释放预留"""

    product_id: Annotated[int, Field(ge=1)]
    location_id: Annotated[int, Field(ge=1)]
    quantity: Annotated[int, Field(ge=0)]
    order_id: Annotated[Optional[str], Field(None, max_length=128)] = None


# ========= 出参 =========
class StockStateOut(_Base):
    stock_id: int
    product_id: int
    location_id: int
    quantity: int
    reserved_quantity: int
    available_quantity: int
    version: int


class TransferOut(_Base):
    source: StockStateOut
    destination: StockStateOut
    movement_id: int


class StockViewOut(_Base):
    stock_id: int
    product_id: int
    sku: str
    product_name: str
    location_id: int
    location_code: str
    location_name: str
    quantity: int
    reserved_quantity: int
    available_quantity: int


class MovementOut(_Base):
    id: int
    product_id: int
    movement_type: MovementType
    quantity: int
    location_id: Optional[int] = None
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None
    reason: str
    reference: Optional[str] = None
    created_by: str
    created_at: datetime


class ImportRowErrorOut(_Base):
    row: int
    key: str
    message: str


class ImportResultOut(_Base):
    succeeded: int
    failed: int
    errors: List[ImportRowErrorOut] = []


# ========= 包装 =========
class StockStateEnvelope(_Base):
    success: bool = True
    data: StockStateOut


class TransferEnvelope(_Base):
    success: bool = True
    data: TransferOut


class StockListEnvelope(_Base):
    success: bool = True
    data: List[StockViewOut]
    pagination: Pagination


class StockViewsEnvelope(_Base):
    success: bool = True
    data: List[StockViewOut]


class MovementListEnvelope(_Base):
    success: bool = True
    data: List[MovementOut]
    pagination: Pagination


class ImportResultEnvelope(_Base):
    success: bool = True
    data: ImportResultOut


def state_out(state) -> StockStateOut:
    return StockStateOut(
        stock_id=state.stock_id,
        product_id=state.key.product_id,
        location_id=state.key.location_id,
        quantity=state.quantity,
        reserved_quantity=state.reserved_quantity,
        available_quantity=state.available_quantity,
        version=state.version,
    )

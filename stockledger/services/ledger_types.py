# stockledger/services/ledger_types.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, List, Optional, TypeVar, Union

from stockledger.models.enums import MovementType
from stockledger.services.stock_rules import available_quantity

T = TypeVar("T")


@dataclass(frozen=True, order=True)
class StockKey:
    tenant_id: str
    product_id: int
    location_id: int


@dataclass(frozen=True)
class StockState:
    """库存行快照（值对象）；available 由 quantity / reserved 现算。"""

    stock_id: int
    key: StockKey
    quantity: int
    reserved_quantity: int
    version: int

    @property
    def available_quantity(self) -> int:
        return available_quantity(self.quantity, self.reserved_quantity)


@dataclass(frozen=True)
class AppliedChange:
    before: StockState
    after: StockState
    created: bool = False


@dataclass(frozen=True)
class TransferResult:
    source: StockState
    destination: StockState
    movement_id: int


@dataclass
class Page(Generic[T]):
    items: List[T]
    page: int
    page_size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


@dataclass
class LocationPatch:
    code: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    allow_negative_stock: Optional[bool] = None


@dataclass
class MovementFilters:
    product_id: Optional[int] = None
    location_id: Optional[int] = None
    from_location_id: Optional[int] = None
    to_location_id: Optional[int] = None
    movement_type: Optional[MovementType] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    page: int = 1
    page_size: int = 50


@dataclass
class ImportRow:
    product_key: Optional[str]
    location_code: Optional[str]
    quantity: Union[int, str, None]
    row_number: Optional[int] = None


@dataclass(frozen=True)
class ImportRowError:
    row: int
    key: str
    message: str


@dataclass
class ImportResult:
    succeeded: int = 0
    failed: int = 0
    errors: List[ImportRowError] = field(default_factory=list)


@dataclass(frozen=True)
class StockView:
    stock_id: int
    product_id: int
    sku: str
    product_name: str
    location_id: int
    location_code: str
    location_name: str
    quantity: int
    reserved_quantity: int

    @property
    def available_quantity(self) -> int:
        return available_quantity(self.quantity, self.reserved_quantity)


@dataclass(frozen=True)
class StockExportRow:
    sku: str
    product_name: str
    location_code: str
    location_name: str
    quantity: int
    reserved_quantity: int
    available_quantity: int

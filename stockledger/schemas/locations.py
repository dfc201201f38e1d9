# stockledger/schemas/locations.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from stockledger.schemas.common import Pagination, _Base


class LocationOut(_Base):
    id: int
    code: str
    name: str
    address: Optional[str] = None
    is_active: bool = True
    allow_negative_stock: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LocationCreateIn(_Base):
    code: str = Field(..., min_length=1, max_length=20, description="大写字母 / 数字 / '-' / '_'")
    name: str = Field(..., min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    allow_negative_stock: bool = False


class LocationUpdateIn(_Base):
    """只更新传入的字段；address 传空串表示清空"""

    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, max_length=500)
    allow_negative_stock: Optional[bool] = None


class LocationEnvelope(_Base):
    success: bool = True
    data: LocationOut


class LocationListEnvelope(_Base):
    success: bool = True
    data: List[LocationOut]
    pagination: Pagination

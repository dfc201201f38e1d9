# stockledger/schemas/common.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from stockledger.services.ledger_types import Page


class _Base(BaseModel):
    """允许 ORM / dataclass 输出、忽略多余字段"""

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class Pagination(_Base):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def of(cls, page: Page) -> "Pagination":
        return cls(page=page.page, limit=page.page_size, total=page.total, pages=page.pages)

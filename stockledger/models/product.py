# stockledger/models/product.py
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base


class Product(Base):
    """
    商品目录投影（商品 CRUD 属于外部协作方）：
    台账只需要 id / sku / name，用于导入按 key 解析、导出展示、租户归属校验。
    """

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)
    sku: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)

    __table_args__ = (sa.UniqueConstraint("tenant_id", "sku", name="uq_products_tenant_sku"),)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r}>"

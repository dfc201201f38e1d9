# stockledger/models/stock.py
from __future__ import annotations

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockledger.db.base import Base


class Stock(Base):
    """
    库存余额维度 (tenant_id, product_id, location_id)

    - quantity / reserved_quantity 为唯一真实来源；available 永不落库
    - version 为乐观并发计数，每次写入 +1（写入带 WHERE version = 读取值）
    - 行只增不删：数量归零的行保留为历史锚点
    """

    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    product_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False
    )
    location_id: Mapped[int] = mapped_column(
        sa.Integer, sa.ForeignKey("locations.id", ondelete="RESTRICT"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "product_id", "location_id", name="uq_stocks_tenant_product_location"),
        sa.CheckConstraint("reserved_quantity >= 0", name="ck_stocks_reserved_nonneg"),
        # 负库存行（仅允许负库存的库位）预留必须为 0
        sa.CheckConstraint(
            "reserved_quantity = 0 OR reserved_quantity <= quantity", name="ck_stocks_reserved_le_qty"
        ),
        sa.Index("ix_stocks_tenant_location", "tenant_id", "location_id"),
        sa.Index("ix_stocks_tenant_product", "tenant_id", "product_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Stock tenant={self.tenant_id} product={self.product_id} loc={self.location_id} "
            f"qty={self.quantity} reserved={self.reserved_quantity} v={self.version}>"
        )

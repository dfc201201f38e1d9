# stockledger/models/stock_movement.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from stockledger.db.base import Base
from stockledger.utils.time import utc_now
from stockledger.models.enums import MovementType


class StockMovement(Base):
    """
    台账（只增不改不删）

    - IN / OUT / ADJUSTMENT：只有 location_id
    - TRANSFER：只有 from_location_id + to_location_id
    - quantity 为变动量绝对值（> 0）
    - created_at 由写入方赋值（UTC），查询按 created_at DESC, id DESC
    """

    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    product_id: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    location_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    from_location_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)
    to_location_id: Mapped[Optional[int]] = mapped_column(sa.Integer, nullable=True)

    movement_type: Mapped[MovementType] = mapped_column(
        sa.Enum(MovementType, name="movement_type", native_enum=False, length=16),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(sa.String(128), nullable=True)
    created_by: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        sa.CheckConstraint("quantity > 0", name="ck_stock_movements_qty_pos"),
        sa.Index("ix_stock_movements_tenant_product_time", "tenant_id", "product_id", "created_at"),
        sa.Index("ix_stock_movements_tenant_location_time", "tenant_id", "location_id", "created_at"),
        sa.Index("ix_stock_movements_tenant_type_time", "tenant_id", "movement_type", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Movement {self.movement_type} product={self.product_id} qty={self.quantity} "
            f"loc={self.location_id} from={self.from_location_id} to={self.to_location_id}>"
        )

# stockledger/models/location.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from stockledger.db.base import Base
from stockledger.utils.time import utc_now


class Location(Base):
    """
    库位主档（租户内 code 唯一）：

    - code：大写字母数字 + '-'/'_'，≤20；一旦存在库存行即不可改
    - is_active：仅通过显式 activate / deactivate 切换
    - allow_negative_stock：允许数量为负（预售 / 欠货库位）
    """

    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(sa.String(64), nullable=False, index=True)

    code: Mapped[str] = mapped_column(sa.String(20), nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(sa.String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=True, server_default=sa.true()
    )
    allow_negative_stock: Mapped[bool] = mapped_column(
        sa.Boolean, nullable=False, default=False, server_default=sa.false()
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        onupdate=utc_now,
        nullable=False,
    )

    __table_args__ = (
        sa.UniqueConstraint("tenant_id", "code", name="uq_locations_tenant_code"),
        sa.Index("ix_locations_tenant_active", "tenant_id", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Location id={self.id} tenant={self.tenant_id} code={self.code!r} active={self.is_active}>"

# stockledger/services/movement_repo.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.enums import MovementType
from stockledger.models.stock_movement import StockMovement
from stockledger.services.ledger_types import MovementFilters
from stockledger.services.stock_rules import validate_movement_shape
from stockledger.utils.time import utc_now


class MovementRepo:
    """台账仓储：只有 append 与查询，没有 update / delete。"""

    def __init__(self, session: AsyncSession, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.session = session
        self._clock = clock

    async def append(
        self,
        *,
        tenant_id: str,
        product_id: int,
        movement_type: MovementType,
        quantity: int,
        reason: str,
        created_by: str,
        location_id: Optional[int] = None,
        from_location_id: Optional[int] = None,
        to_location_id: Optional[int] = None,
        reference: Optional[str] = None,
    ) -> StockMovement:
        validate_movement_shape(
            movement_type,
            quantity,
            location_id=location_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
        )
        rec = StockMovement(
            tenant_id=tenant_id,
            product_id=int(product_id),
            movement_type=movement_type,
            quantity=int(quantity),
            reason=reason,
            reference=reference,
            created_by=created_by,
            location_id=location_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            created_at=self._clock(),
        )
        self.session.add(rec)
        await self.session.flush()
        return rec

    async def query(
        self, tenant_id: str, filters: MovementFilters
    ) -> Tuple[List[StockMovement], int]:
        conditions = [StockMovement.tenant_id == tenant_id]

        if filters.product_id is not None:
            conditions.append(StockMovement.product_id == int(filters.product_id))
        if filters.location_id is not None:
            conditions.append(StockMovement.location_id == int(filters.location_id))
        if filters.from_location_id is not None:
            conditions.append(StockMovement.from_location_id == int(filters.from_location_id))
        if filters.to_location_id is not None:
            conditions.append(StockMovement.to_location_id == int(filters.to_location_id))
        if filters.movement_type is not None:
            conditions.append(StockMovement.movement_type == MovementType(filters.movement_type))
        if filters.from_date is not None:
            conditions.append(StockMovement.created_at >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(StockMovement.created_at <= filters.to_date)

        total = (
            await self.session.execute(select(func.count(StockMovement.id)).where(*conditions))
        ).scalar_one()

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(StockMovement)
            .where(*conditions)
            .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
            .offset(offset)
            .limit(filters.page_size)
        )
        rows = list((await self.session.execute(stmt)).scalars().all())
        return rows, int(total)

# stockledger/services/location_repo.py
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.location import Location


def like_pattern(raw: str) -> str:
    """子串匹配模式：转义 LIKE 通配符（查询端 escape 用反斜杠）。"""
    esc = raw.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{esc}%"


class LocationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(
        self, tenant_id: str, location_id: int, *, lock: Optional[str] = None
    ) -> Optional[Location]:
        """lock: None | "share"（库存写入时）| "update"（停用 / 改策略时）"""
        stmt = select(Location).where(
            Location.tenant_id == tenant_id,
            Location.id == int(location_id),
        )
        if lock == "share":
            stmt = stmt.with_for_update(read=True)
        elif lock == "update":
            stmt = stmt.with_for_update()
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def get_by_code(self, tenant_id: str, code: str) -> Optional[Location]:
        stmt = select(Location).where(
            Location.tenant_id == tenant_id,
            Location.code == code.strip().upper(),
        )
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def code_taken(self, tenant_id: str, code: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Location.id).where(Location.tenant_id == tenant_id, Location.code == code)
        if exclude_id is not None:
            stmt = stmt.where(Location.id != int(exclude_id))
        return (await self.session.execute(stmt.limit(1))).first() is not None

    async def add(self, location: Location) -> Location:
        self.session.add(location)
        await self.session.flush()
        return location

    async def list(
        self,
        tenant_id: str,
        *,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Location], int]:
        conditions = [Location.tenant_id == tenant_id]
        if is_active is not None:
            conditions.append(Location.is_active.is_(bool(is_active)))

        kw = (search or "").strip()
        if kw:
            pattern = like_pattern(kw)
            conditions.append(
                or_(
                    Location.name.ilike(pattern, escape="\\"),
                    Location.code.ilike(pattern, escape="\\"),
                )
            )

        total = (
            await self.session.execute(select(func.count(Location.id)).where(*conditions))
        ).scalar_one()

        stmt = (
            select(Location)
            .where(*conditions)
            .order_by(Location.name.asc(), Location.id.asc())
            .offset(offset)
            .limit(limit)
        )
        rows = list((await self.session.execute(stmt)).scalars().all())
        return rows, int(total)

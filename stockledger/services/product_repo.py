# stockledger/services/product_repo.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stockledger.models.product import Product


class ProductRepo:
    """商品目录只读端口（商品主档由外部维护；add 仅供种子 / 测试）。"""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, tenant_id: str, product_id: int) -> Optional[Product]:
        stmt = select(Product).where(Product.tenant_id == tenant_id, Product.id == int(product_id))
        return (await self.session.execute(stmt)).scalar_one_or_none()

    async def find_by_key(self, tenant_id: str, key: str) -> Optional[Product]:
        """按 key 解析商品：先精确匹配 sku，再精确匹配商品名（兼容旧导入文件）。"""
        key = (key or "").strip()
        if not key:
            return None

        by_sku = (
            await self.session.execute(
                select(Product).where(Product.tenant_id == tenant_id, Product.sku == key)
            )
        ).scalar_one_or_none()
        if by_sku is not None:
            return by_sku

        stmt = (
            select(Product)
            .where(Product.tenant_id == tenant_id, Product.name == key)
            .order_by(Product.id.asc())
            .limit(1)
        )
        return (await self.session.execute(stmt)).scalars().first()

    async def add(self, product: Product) -> Product:
        self.session.add(product)
        await self.session.flush()
        return product

    async def list_ids(self, tenant_id: str) -> List[int]:
        stmt = select(Product.id).where(Product.tenant_id == tenant_id).order_by(Product.id.asc())
        return [int(x) for x in (await self.session.execute(stmt)).scalars().all()]

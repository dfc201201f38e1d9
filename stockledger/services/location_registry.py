# stockledger/services/location_registry.py
"""
库位主档服务（Location Registry）

- create / update / deactivate / activate / get / list
- 编码：去空格 + 大写，租户内唯一；存在任何库存行后不可改
- 停用：只看 quantity > 0 的库存行，预留量不参与判断
- 允许负库存 true -> false：存在负数量行时拒绝
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from stockledger.core.errors import ConflictError, NotFoundError, ValidationError
from stockledger.models.location import Location
from stockledger.services.ledger_tx import LedgerRuntime
from stockledger.services.ledger_types import LocationPatch, Page
from stockledger.services.stock_rules import (
    normalize_address,
    normalize_location_code,
    normalize_location_name,
)

logger = logging.getLogger("stockledger.locations")


def _not_found(location_id: Any) -> NotFoundError:
    return NotFoundError("location not found", context={"location_id": location_id})


class LocationRegistry:
    def __init__(
        self,
        runtime: LedgerRuntime,
        *,
        default_page_size: int = 20,
        max_page_size: int = 500,
    ) -> None:
        self._rt = runtime
        self.default_page_size = int(default_page_size)
        self.max_page_size = int(max_page_size)

    async def create_location(
        self,
        tenant_id: str,
        code: str,
        name: str,
        address: Optional[str] = None,
        allow_negative_stock: bool = False,
    ) -> Location:
        norm_code = normalize_location_code(code)
        norm_name = normalize_location_name(name)
        norm_address = normalize_address(address)

        try:
            async with self._rt.uow_factory() as uow:
                if await uow.locations.code_taken(tenant_id, norm_code):
                    raise ConflictError(
                        f"location code {norm_code} already exists",
                        code="LOCATION_CODE_EXISTS",
                        context={"code": norm_code},
                    )
                loc = await uow.locations.add(
                    Location(
                        tenant_id=tenant_id,
                        code=norm_code,
                        name=norm_name,
                        address=norm_address,
                        is_active=True,
                        allow_negative_stock=bool(allow_negative_stock),
                    )
                )
        except IntegrityError as e:
            # 并发创建同一编码：唯一约束兜底
            raise ConflictError(
                f"location code {norm_code} already exists",
                code="LOCATION_CODE_EXISTS",
                context={"code": norm_code},
            ) from e

        logger.info("location created tenant=%s id=%s code=%s", tenant_id, loc.id, loc.code)
        return loc

    async def update_location(
        self, tenant_id: str, location_id: int, patch: LocationPatch
    ) -> Location:
        new_code = normalize_location_code(patch.code) if patch.code is not None else None
        new_name = normalize_location_name(patch.name) if patch.name is not None else None

        try:
            async with self._rt.uow_factory() as uow:
                loc = await uow.locations.get(tenant_id, location_id, lock="update")
                if loc is None:
                    raise _not_found(location_id)

                if new_code is not None and new_code != loc.code:
                    if await uow.stocks.exists_at_location(tenant_id, loc.id):
                        raise ConflictError(
                            "location code is locked once stock exists at the location",
                            code="LOCATION_CODE_LOCKED",
                            context={"location_id": loc.id, "code": loc.code},
                        )
                    if await uow.locations.code_taken(tenant_id, new_code, exclude_id=loc.id):
                        raise ConflictError(
                            f"location code {new_code} already exists",
                            code="LOCATION_CODE_EXISTS",
                            context={"code": new_code},
                        )
                    loc.code = new_code

                if new_name is not None:
                    loc.name = new_name
                if patch.address is not None:
                    loc.address = normalize_address(patch.address)

                if patch.allow_negative_stock is not None:
                    allow = bool(patch.allow_negative_stock)
                    if loc.allow_negative_stock and not allow:
                        if await uow.stocks.exists_at_location(tenant_id, loc.id, negative_only=True):
                            raise ConflictError(
                                "negative stock exists at the location",
                                code="NEGATIVE_STOCK_PRESENT",
                                context={"location_id": loc.id},
                            )
                    loc.allow_negative_stock = allow

                await uow.session.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"location code {new_code} already exists",
                code="LOCATION_CODE_EXISTS",
                context={"code": new_code},
            ) from e

        return loc

    async def deactivate_location(self, tenant_id: str, location_id: int) -> Location:
        async with self._rt.uow_factory() as uow:
            loc = await uow.locations.get(tenant_id, location_id, lock="update")
            if loc is None:
                raise _not_found(location_id)
            if await uow.stocks.exists_at_location(tenant_id, loc.id, positive_only=True):
                raise ConflictError(
                    "cannot deactivate a location that still holds stock",
                    code="LOCATION_HAS_STOCK",
                    context={"location_id": loc.id, "code": loc.code},
                )
            loc.is_active = False
            await uow.session.flush()

        logger.info("location deactivated tenant=%s id=%s code=%s", tenant_id, loc.id, loc.code)
        return loc

    async def activate_location(self, tenant_id: str, location_id: int) -> Location:
        async with self._rt.uow_factory() as uow:
            loc = await uow.locations.get(tenant_id, location_id, lock="update")
            if loc is None:
                raise _not_found(location_id)
            loc.is_active = True
            await uow.session.flush()

        logger.info("location activated tenant=%s id=%s code=%s", tenant_id, loc.id, loc.code)
        return loc

    async def get_location(self, tenant_id: str, location_id: int) -> Location:
        async with self._rt.uow_factory() as uow:
            loc = await uow.locations.get(tenant_id, location_id)
        if loc is None:
            raise _not_found(location_id)
        return loc

    async def list_locations(
        self,
        tenant_id: str,
        *,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Page[Location]:
        if page < 1:
            raise ValidationError("page must be >= 1", context={"field": "page"})
        size = self.default_page_size if page_size is None else int(page_size)
        if size < 1:
            raise ValidationError("page_size must be >= 1", context={"field": "page_size"})
        size = min(size, self.max_page_size)

        async with self._rt.uow_factory() as uow:
            rows, total = await uow.locations.list(
                tenant_id,
                is_active=is_active,
                search=search,
                offset=(page - 1) * size,
                limit=size,
            )
        return Page(items=rows, page=page, page_size=size, total=total)

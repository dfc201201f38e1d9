# stockledger/api/routers/locations.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from stockledger.api.deps import get_services, get_tenant_id
from stockledger.schemas.common import Pagination
from stockledger.schemas.locations import (
    LocationCreateIn,
    LocationEnvelope,
    LocationListEnvelope,
    LocationOut,
    LocationUpdateIn,
)
from stockledger.services.container import LedgerServices
from stockledger.services.ledger_types import LocationPatch

router = APIRouter(prefix="/locations", tags=["locations"])


@router.get("", response_model=LocationListEnvelope)
async def list_locations(
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100, description="名称 / 编码子串，大小写不敏感"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationListEnvelope:
    result = await services.locations.list_locations(
        tenant_id, is_active=is_active, search=search, page=page, page_size=limit
    )
    return LocationListEnvelope(
        data=[LocationOut.model_validate(loc) for loc in result.items],
        pagination=Pagination.of(result),
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=LocationEnvelope)
async def create_location(
    payload: LocationCreateIn,
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationEnvelope:
    loc = await services.locations.create_location(
        tenant_id,
        payload.code,
        payload.name,
        address=payload.address,
        allow_negative_stock=payload.allow_negative_stock,
    )
    return LocationEnvelope(data=LocationOut.model_validate(loc))


@router.get("/{location_id}", response_model=LocationEnvelope)
async def get_location(
    location_id: int = Path(..., ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationEnvelope:
    loc = await services.locations.get_location(tenant_id, location_id)
    return LocationEnvelope(data=LocationOut.model_validate(loc))


@router.put("/{location_id}", response_model=LocationEnvelope)
async def update_location(
    payload: LocationUpdateIn,
    location_id: int = Path(..., ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationEnvelope:
    patch = LocationPatch(
        code=payload.code,
        name=payload.name,
        address=payload.address,
        allow_negative_stock=payload.allow_negative_stock,
    )
    loc = await services.locations.update_location(tenant_id, location_id, patch)
    return LocationEnvelope(data=LocationOut.model_validate(loc))


@router.delete("/{location_id}", response_model=LocationEnvelope)
async def deactivate_location(
    location_id: int = Path(..., ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationEnvelope:
    """停用（软删除）：库位仍有正库存时 409。"""
    loc = await services.locations.deactivate_location(tenant_id, location_id)
    return LocationEnvelope(data=LocationOut.model_validate(loc))


@router.post("/{location_id}/activate", response_model=LocationEnvelope)
async def activate_location(
    location_id: int = Path(..., ge=1),
    tenant_id: str = Depends(get_tenant_id),
    services: LedgerServices = Depends(get_services),
) -> LocationEnvelope:
    loc = await services.locations.activate_location(tenant_id, location_id)
    return LocationEnvelope(data=LocationOut.model_validate(loc))

# stockledger/api/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from stockledger.services.container import LedgerServices

TENANT_HEADER = "X-Tenant-Id"
USER_HEADER = "X-User-Id"


def get_services(request: Request) -> LedgerServices:
    """服务容器在 lifespan 中装配到 app.state.services。"""
    return request.app.state.services


async def get_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias=TENANT_HEADER),
) -> str:
    """
    租户来自上游网关已鉴权的请求头：

    - 缺失 / 空白 → 401
    - 超过 64 字符 → 401（与存储长度一致）
    """
    tenant = (x_tenant_id or "").strip()
    if not tenant or len(tenant) > 64:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "TENANT_REQUIRED", "message": f"{TENANT_HEADER} header is required"},
        )
    return tenant


async def get_actor(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
    x_tenant_id: Optional[str] = Header(None, alias=TENANT_HEADER),
) -> str:
    actor = (x_user_id or "").strip() or (x_tenant_id or "").strip()
    return actor[:64]

# stockledger/api/routers/health.py
from __future__ import annotations

import os

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest, multiprocess

from stockledger import __version__

router = APIRouter(tags=["ops"])


@router.get("/healthz")
async def healthz() -> dict:
    return {"success": True, "data": {"status": "ok", "version": __version__}}


@router.get("/metrics")
def metrics() -> Response:
    """
    单进程直接导出默认 REGISTRY；
    多进程（设置了 PROMETHEUS_MULTIPROC_DIR）时合并各分片。
    """
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

# stockledger/http_handlers.py
"""
统一错误包装：

    {"success": false, "error": "<message>", "error_code": "<CODE>", "context": {...}}

- LedgerError 按自身 status / code 输出（InvariantViolation = 500，记 ERROR）
- 请求体校验失败 → 422 VALIDATION_ERROR，附 details
- HTTPException → 原状态码；detail 支持 str 或 {"code","message"}
- 其它未处理异常 → 500 INTERNAL_ERROR（logger.exception）
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from stockledger.core.errors import InvariantViolation, LedgerError

logger = logging.getLogger("stockledger.http")


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def error_body(
    message: str,
    error_code: str,
    *,
    context: Optional[Dict[str, Any]] = None,
    details: Optional[List[Dict[str, Any]]] = None,
    trace_id: Optional[str] = None,
) -> Dict[str, Any]:
    out: Dict[str, Any] = {"success": False, "error": message, "error_code": error_code}
    if context:
        out["context"] = context
    if details:
        out["details"] = details
    if trace_id:
        out["trace_id"] = trace_id
    return out


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(LedgerError)
    async def _ledger_exc(req: Request, exc: LedgerError):
        trace_id = None
        if isinstance(exc, InvariantViolation):
            trace_id = _new_trace_id()
            logger.error(
                "INVARIANT_VIOLATION[%s] %s %s: %s context=%s",
                trace_id,
                req.method,
                req.url.path,
                exc.message,
                exc.context,
            )
        return JSONResponse(
            status_code=int(exc.status),
            content=error_body(
                exc.message, exc.code, context=exc.context or None, trace_id=trace_id
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details: List[Dict[str, Any]] = []
        for e in exc.errors():
            if not isinstance(e, dict):
                continue
            loc = e.get("loc") or ()
            details.append(
                {
                    "path": ".".join(str(p) for p in loc),
                    "reason": str(e.get("msg") or e.get("type") or "invalid"),
                }
            )
        return JSONResponse(
            status_code=422,
            content=error_body("request validation failed", "VALIDATION_ERROR", details=details),
        )

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        d = exc.detail
        if isinstance(d, dict) and "message" in d:
            body = error_body(str(d["message"]), str(d.get("code") or "HTTP_ERROR"))
        else:
            body = error_body(str(d) if d is not None else "request rejected", "HTTP_ERROR")
        return JSONResponse(status_code=int(exc.status_code), content=body, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s] %s %s: %s", trace_id, req.method, req.url.path, exc)
        return JSONResponse(
            status_code=500,
            content=error_body("internal error, please retry later", "INTERNAL_ERROR", trace_id=trace_id),
        )

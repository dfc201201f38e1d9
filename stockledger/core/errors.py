# stockledger/core/errors.py
"""
库存台账错误体系：

- LedgerError            基类（code / status / retryable / context）
- ValidationError        入参不合法（422，不重试）
- NotFoundError          库位 / 库存行 / 商品不存在（404）
- ConflictError          编码重复、编码锁定、并发冲突（409；仅并发冲突 retryable=True）
- NegativeStockError     调整后为负且库位不允许负库存
- InsufficientStockError 调拨可用量不足
- OverReservationError   预留超过现存
- InvariantViolation     仓储层不变量被破坏（按 500 处理，视为缺陷信号）

StaleStockError 只在事务执行器内部流转，耗尽重试后转为 ConflictError。
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status = 400
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status: int | None = None,
        retryable: bool | None = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status:
            self.status = status
        if retryable is not None:
            self.retryable = retryable
        self.context: Dict[str, Any] = dict(context or {})


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status = 422


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status = 404


class ConflictError(LedgerError):
    code = "CONFLICT"
    status = 409


class NegativeStockError(LedgerError):
    code = "NEGATIVE_STOCK"
    status = 409

    def __init__(self, message: str, *, available: int, delta: int, **kw: Any):
        ctx = dict(kw.pop("context", None) or {})
        ctx.update({"available": int(available), "delta": int(delta)})
        super().__init__(message, context=ctx, **kw)
        self.available = int(available)
        self.delta = int(delta)


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"
    status = 409

    def __init__(self, message: str, *, available: int, requested: int, **kw: Any):
        ctx = dict(kw.pop("context", None) or {})
        ctx.update({"available": int(available), "requested": int(requested)})
        super().__init__(message, context=ctx, **kw)
        self.available = int(available)
        self.requested = int(requested)


class OverReservationError(LedgerError):
    code = "OVER_RESERVATION"
    status = 409


class InvariantViolation(LedgerError):
    code = "INVARIANT_VIOLATION"
    status = 500


class StaleStockError(Exception):
    """乐观版本校验失败：行在读取后被其他事务改写（事务执行器内部重试用）。"""

# stockledger/services/stock_rules.py
"""
库存规则（纯函数，不依赖存储）：

- available_quantity：可用量 = 现存 - 预留（永不落库）
- check_stock_invariants：每次写库存行之前显式调用的不变量校验
- validate_movement_shape：台账记录的库位字段形状校验
- 入参规范化：库位编码 / 名称 / 地址 / 原因 / 整数
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional

from stockledger.core.errors import InvariantViolation, ValidationError
from stockledger.models.enums import SINGLE_LOCATION_TYPES, MovementType

LOCATION_CODE_RE = re.compile(r"^[A-Z0-9_-]{1,20}$")

REASON_MIN_LEN = 3
REASON_MAX_LEN = 500
NAME_MAX_LEN = 100
ADDRESS_MAX_LEN = 500
REFERENCE_MAX_LEN = 128


def available_quantity(quantity: int, reserved_quantity: int) -> int:
    return int(quantity) - int(reserved_quantity)


def check_stock_invariants(
    quantity: int,
    reserved_quantity: int,
    *,
    allow_negative: bool,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    """
    库存行不变量：
      - reserved >= 0
      - quantity >= 0，除非库位允许负库存
      - reserved <= max(quantity, 0)：负库存行不允许挂预留
    """
    ctx = dict(context or {})
    ctx.update(
        {
            "quantity": int(quantity),
            "reserved_quantity": int(reserved_quantity),
            "allow_negative": bool(allow_negative),
        }
    )
    if reserved_quantity < 0:
        raise InvariantViolation("reserved quantity below zero", context=ctx)
    if quantity < 0 and not allow_negative:
        raise InvariantViolation("quantity below zero at a location without negative stock", context=ctx)
    if reserved_quantity > max(quantity, 0):
        raise InvariantViolation("reserved quantity exceeds quantity", context=ctx)


def validate_movement_shape(
    movement_type: MovementType,
    quantity: int,
    *,
    location_id: Optional[int],
    from_location_id: Optional[int],
    to_location_id: Optional[int],
) -> None:
    ctx = {
        "movement_type": getattr(movement_type, "value", movement_type),
        "quantity": quantity,
        "location_id": location_id,
        "from_location_id": from_location_id,
        "to_location_id": to_location_id,
    }
    if quantity is None or int(quantity) <= 0:
        raise InvariantViolation("movement quantity must be positive", context=ctx)

    if movement_type == MovementType.TRANSFER:
        if from_location_id is None or to_location_id is None:
            raise InvariantViolation("TRANSFER requires from_location_id and to_location_id", context=ctx)
        if location_id is not None:
            raise InvariantViolation("TRANSFER must not carry location_id", context=ctx)
    elif movement_type in SINGLE_LOCATION_TYPES:
        if location_id is None:
            raise InvariantViolation(f"{movement_type.value} requires location_id", context=ctx)
        if from_location_id is not None or to_location_id is not None:
            raise InvariantViolation(
                f"{movement_type.value} must not carry from_location_id / to_location_id", context=ctx
            )
    else:
        raise InvariantViolation("unknown movement type", context=ctx)


# ---------------------------------------------------------------------------
# 入参规范化
# ---------------------------------------------------------------------------


def normalize_location_code(code: Any) -> str:
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("location code is required", context={"field": "code"})
    norm = code.strip().upper()
    if not LOCATION_CODE_RE.match(norm):
        raise ValidationError(
            "location code must be 1-20 chars of uppercase letters, digits, '-' or '_'",
            context={"field": "code", "value": code},
        )
    return norm


def normalize_location_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("location name is required", context={"field": "name"})
    norm = name.strip()
    if len(norm) > NAME_MAX_LEN:
        raise ValidationError(f"location name exceeds {NAME_MAX_LEN} chars", context={"field": "name"})
    return norm


def normalize_address(address: Any) -> Optional[str]:
    if address is None:
        return None
    if not isinstance(address, str):
        raise ValidationError("address must be a string", context={"field": "address"})
    norm = address.strip()
    if len(norm) > ADDRESS_MAX_LEN:
        raise ValidationError(f"address exceeds {ADDRESS_MAX_LEN} chars", context={"field": "address"})
    return norm or None


def normalize_reason(reason: Any) -> str:
    if not isinstance(reason, str):
        raise ValidationError("reason is required", context={"field": "reason"})
    norm = reason.strip()
    if not (REASON_MIN_LEN <= len(norm) <= REASON_MAX_LEN):
        raise ValidationError(
            f"reason must be {REASON_MIN_LEN}-{REASON_MAX_LEN} chars", context={"field": "reason"}
        )
    return norm


def normalize_reference(reference: Any) -> Optional[str]:
    if reference is None:
        return None
    norm = str(reference).strip()
    if len(norm) > REFERENCE_MAX_LEN:
        raise ValidationError(
            f"reference exceeds {REFERENCE_MAX_LEN} chars", context={"field": "reference"}
        )
    return norm or None


def require_int(value: Any, field: str, *, minimum: Optional[int] = None) -> int:
    # bool 是 int 子类，这里显式排除
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", context={"field": field, "value": value})
    if minimum is not None and value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", context={"field": field, "value": value})
    return int(value)

# stockledger/models/enums.py
from __future__ import annotations

from enum import Enum


class MovementType(str, Enum):
    """台账动作类型"""

    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"


# IN / OUT / ADJUSTMENT 只挂单库位；TRANSFER 挂 from/to 两个库位
SINGLE_LOCATION_TYPES = frozenset({MovementType.IN, MovementType.OUT, MovementType.ADJUSTMENT})

# stockledger/adapters/stock_csv.py
"""
盘点 CSV 适配：

- parse_stock_csv：表头 sku | product_key, location_code, quantity（大小写 / 空格不敏感）
  行号从表头 = 第 1 行起算，便于导入结果回指原文件
- render_stock_csv：导出列固定，带表头
"""

from __future__ import annotations

import csv
from datetime import datetime
from io import StringIO
from typing import Iterable, List, Optional

from stockledger.core.errors import ValidationError
from stockledger.services.ledger_types import ImportRow, StockExportRow

PRODUCT_KEY_COLUMNS = ("sku", "product_key")
LOCATION_COLUMN = "location_code"
QUANTITY_COLUMN = "quantity"

EXPORT_HEADER = [
    "sku",
    "product_name",
    "location_code",
    "location_name",
    "quantity",
    "reserved_quantity",
    "available_quantity",
]


def _norm_header(name: Optional[str]) -> str:
    return (name or "").strip().lower().lstrip("\ufeff")


def parse_stock_csv(text: str) -> List[ImportRow]:
    if text is None or not text.strip():
        raise ValidationError("CSV content is empty", context={"field": "file"})

    reader = csv.reader(StringIO(text))
    try:
        header = next(reader)
    except StopIteration:
        raise ValidationError("CSV content is empty", context={"field": "file"}) from None

    columns = [_norm_header(h) for h in header]
    product_idx = next((columns.index(c) for c in PRODUCT_KEY_COLUMNS if c in columns), None)
    missing = []
    if product_idx is None:
        missing.append("sku")
    for col in (LOCATION_COLUMN, QUANTITY_COLUMN):
        if col not in columns:
            missing.append(col)
    if missing:
        raise ValidationError(
            f"CSV header is missing column(s): {', '.join(missing)}",
            context={"field": "header", "missing": missing},
        )
    location_idx = columns.index(LOCATION_COLUMN)
    quantity_idx = columns.index(QUANTITY_COLUMN)

    def cell(values: List[str], idx: int) -> Optional[str]:
        if idx >= len(values):
            return None
        v = values[idx].strip()
        return v or None

    rows: List[ImportRow] = []
    for values in reader:
        if not any(v.strip() for v in values):
            continue
        rows.append(
            ImportRow(
                product_key=cell(values, product_idx),
                location_code=cell(values, location_idx),
                quantity=cell(values, quantity_idx),
                row_number=reader.line_num,
            )
        )
    return rows


def render_stock_csv(rows: Iterable[StockExportRow]) -> str:
    buf = StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(EXPORT_HEADER)
    for r in rows:
        writer.writerow(
            [
                r.sku,
                r.product_name,
                r.location_code,
                r.location_name,
                r.quantity,
                r.reserved_quantity,
                r.available_quantity,
            ]
        )
    return buf.getvalue()


def export_filename(now: Optional[datetime] = None) -> str:
    ts = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"stocks_{ts}.csv"


# stockledger/core/logging.py
"""
库存台账日志：只配置 "stockledger" 命名空间，不动根 logger。

- stockledger.tx / stockledger.http / stockledger.ledger 等子 logger 共用一个 stdout handler
- 重复调用只替换本模块挂上的 handler，不叠加输出
- 仍向上传播，宿主（uvicorn、测试框架）挂在根上的 handler 照常收到记录
- SQL 日志跟随 SQL_ECHO，而不是跟随 LOG_LEVEL
"""

from __future__ import annotations

import logging
import sys

LEDGER_LOGGER = "stockledger"
LEDGER_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class _LedgerHandler(logging.StreamHandler):
    """标记类：用来识别并替换本模块安装的 handler。"""


def setup_logging(level: str = "INFO", *, sql_echo: bool = False) -> logging.Logger:
    ledger = logging.getLogger(LEDGER_LOGGER)
    ledger.setLevel(level.upper())

    for h in list(ledger.handlers):
        if isinstance(h, _LedgerHandler):
            ledger.removeHandler(h)

    handler = _LedgerHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LEDGER_FORMAT))
    ledger.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if sql_echo else logging.WARNING)
    return ledger

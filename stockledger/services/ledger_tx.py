# stockledger/services/ledger_tx.py
"""
库存事务执行器：

    await run_ledger_tx(uow_factory, fn, op="adjust", keys=[key], locks=locks, policy=policy)

- 先按排序获取进程内 key 锁（同 key 串行，调拨两把锁按序获取）
- 每次尝试新开一个 UoW（新事务）；fn(uow) 正常返回即提交
- 可重试失败（版本冲突 / 数据库锁等待超时 / 序列化失败）按指数退避 + 抖动重试
- 超过 max_attempts 仍失败：抛 ConflictError(retryable=True)，不无限阻塞
- 业务错误（LedgerError）原样上抛；InvariantViolation 带完整上下文记 ERROR 日志
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, Iterable, Optional, TypeVar

from sqlalchemy.exc import OperationalError

from stockledger.core.config import AppSettings
from stockledger.core.errors import ConflictError, InvariantViolation, LedgerError, StaleStockError
from stockledger.core.keyed_lock import KeyedLockRegistry
from stockledger.db.uow import LedgerUnitOfWork, UnitOfWorkFactory
from stockledger.obs.metrics import (
    ledger_invariant_violations_total,
    ledger_op_duration,
    ledger_ops_total,
    ledger_retries_total,
)

logger = logging.getLogger("stockledger.tx")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 0.02
    max_delay: float = 0.5
    lock_timeout: Optional[float] = 10.0

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.LEDGER_MAX_RETRIES,
            base_delay=settings.LEDGER_RETRY_BASE_DELAY,
            max_delay=settings.LEDGER_RETRY_MAX_DELAY,
            lock_timeout=settings.LEDGER_LOCK_TIMEOUT,
        )

    def delay_for(self, attempt: int) -> float:
        ceiling = min(self.max_delay, self.base_delay * (2 ** max(attempt - 1, 0)))
        return ceiling * (0.5 + random.random() / 2)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, StaleStockError):
        return True
    if isinstance(exc, ConflictError):
        return bool(exc.retryable)
    # database is locked / could not serialize / deadlock detected
    if isinstance(exc, OperationalError):
        return True
    return False


async def run_ledger_tx(
    uow_factory: UnitOfWorkFactory,
    fn: Callable[[LedgerUnitOfWork], Awaitable[T]],
    *,
    op: str,
    keys: Iterable[Hashable],
    locks: KeyedLockRegistry,
    policy: RetryPolicy,
) -> T:
    started = time.perf_counter()
    key_list = list(keys)
    try:
        try:
            async with locks.hold(key_list, timeout=policy.lock_timeout):
                attempt = 0
                while True:
                    attempt += 1
                    try:
                        async with uow_factory() as uow:
                            result = await fn(uow)
                        ledger_ops_total.labels(op, "ok").inc()
                        return result
                    except Exception as e:
                        if not is_retryable(e):
                            raise
                        if attempt >= policy.max_attempts:
                            logger.warning(
                                "ledger tx gave up op=%s keys=%s attempts=%d last=%r",
                                op,
                                key_list,
                                attempt,
                                e,
                            )
                            raise ConflictError(
                                "concurrent update conflict, please retry",
                                code="CONCURRENCY_CONFLICT",
                                retryable=True,
                                context={"op": op, "attempts": attempt},
                            ) from e
                        ledger_retries_total.labels(op).inc()
                        delay = policy.delay_for(attempt)
                        logger.info(
                            "ledger tx retry op=%s attempt=%d delay=%.3fs cause=%r",
                            op,
                            attempt,
                            delay,
                            e,
                        )
                        await asyncio.sleep(delay)
        except asyncio.TimeoutError as e:
            raise ConflictError(
                "timed out waiting for a concurrent update on the same stock row",
                code="CONCURRENCY_CONFLICT",
                retryable=True,
                context={"op": op},
            ) from e
    except InvariantViolation as e:
        ledger_invariant_violations_total.labels(op).inc()
        ledger_ops_total.labels(op, "invariant_violation").inc()
        logger.error("INVARIANT_VIOLATION op=%s keys=%s %s context=%s", op, key_list, e, e.context)
        raise
    except ConflictError as e:
        ledger_ops_total.labels(op, "conflict" if e.retryable else "rejected").inc()
        raise
    except LedgerError:
        ledger_ops_total.labels(op, "rejected").inc()
        raise
    finally:
        ledger_op_duration.labels(op).observe(time.perf_counter() - started)


@dataclass
class LedgerRuntime:
    """服务共享的运行时：UoW 工厂 + 进程内 key 锁 + 重试策略（显式注入，无全局句柄）。"""

    uow_factory: UnitOfWorkFactory
    locks: KeyedLockRegistry
    policy: RetryPolicy

    async def run(
        self,
        op: str,
        keys: Iterable[Hashable],
        fn: Callable[[LedgerUnitOfWork], Awaitable[T]],
    ) -> T:
        return await run_ledger_tx(
            self.uow_factory, fn, op=op, keys=keys, locks=self.locks, policy=self.policy
        )

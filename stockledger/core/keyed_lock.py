# stockledger/core/keyed_lock.py
"""
进程内按 key 互斥（库存行维度：tenant + product + location）。

- 同一 key 的操作串行；不同 key 并行
- 多 key（调拨）按排序后的顺序加锁，避免交叉死锁
- 引用计数归零即回收，锁表不会无限增长

跨进程的串行化由数据库行锁 + 版本号兜底，这里只负责把同进程内的
并发请求排队，减少无谓的乐观冲突重试。
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Iterable, List, Optional, Tuple


class KeyedLockRegistry:
    def __init__(self) -> None:
        self._locks: Dict[Hashable, Tuple[asyncio.Lock, int]] = {}

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock, refs = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, refs + 1)
        return lock

    def _checkin(self, key: Hashable) -> None:
        lock, refs = self._locks[key]
        if refs <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, refs - 1)

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(
        self, keys: Iterable[Hashable], *, timeout: Optional[float] = None
    ) -> AsyncIterator[None]:
        """按序获取全部 key 的锁；timeout 为单把锁的等待上限（超时抛 asyncio.TimeoutError）。"""
        ordered: List[Hashable] = sorted(set(keys), key=repr)
        acquired: List[Hashable] = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                try:
                    await _acquire(lock, timeout)
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                lock, _ = self._locks[key]
                lock.release()
                self._checkin(key)


async def _acquire(lock: asyncio.Lock, timeout: Optional[float]) -> None:
    """
    带超时的加锁。

    不用 wait_for(lock.acquire())：旧版本解释器上 acquire 已成功、wait_for 仍可能
    抛超时，锁就此无人释放。这里自己等待 acquire 任务，放弃时再核对一次结果。
    """
    if timeout is None:
        await lock.acquire()
        return

    waiter = asyncio.ensure_future(lock.acquire())
    try:
        done, _ = await asyncio.wait({waiter}, timeout=timeout)
    except BaseException:
        _abandon(lock, waiter)
        raise
    if not done:
        _abandon(lock, waiter)
        raise asyncio.TimeoutError()


def _abandon(lock: asyncio.Lock, waiter: "asyncio.Future[bool]") -> None:
    # 已经拿到的锁要还回去；还在排队的取消即可（Lock.acquire 被取消时不会占锁）
    if waiter.done():
        if not waiter.cancelled() and waiter.exception() is None:
            lock.release()
    else:
        waiter.cancel()

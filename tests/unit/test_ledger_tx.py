# tests/unit/test_ledger_tx.py
import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from stockledger.core.errors import ConflictError, NegativeStockError, StaleStockError
from stockledger.core.keyed_lock import KeyedLockRegistry
from stockledger.services.ledger_tx import RetryPolicy, is_retryable, run_ledger_tx

class FakeUow:
    """只记录 commit / rollback 的替身 UoW。"""

    def __init__(self, log):
        self.log = log

    async def __aenter__(self):
        self.log.append("begin")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.log.append("rollback" if exc_type else "commit")
        return False


POLICY = RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, lock_timeout=1.0)


@pytest.mark.asyncio
async def test_retries_stale_then_commits():
    log = []
    attempts = {"n": 0}

    async def fn(uow):
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise StaleStockError("version moved")
        return "ok"

    res = await run_ledger_tx(
        lambda: FakeUow(log), fn, op="adjust", keys=["k"], locks=KeyedLockRegistry(), policy=POLICY
    )
    assert res == "ok"
    assert attempts["n"] == 3
    assert log == ["begin", "rollback", "begin", "rollback", "begin", "commit"]


@pytest.mark.asyncio
async def test_gives_up_with_retryable_conflict():
    async def fn(uow):
        raise StaleStockError("version moved")

    with pytest.raises(ConflictError) as ei:
        await run_ledger_tx(
            lambda: FakeUow([]), fn, op="reserve", keys=["k"], locks=KeyedLockRegistry(), policy=POLICY
        )
    assert ei.value.retryable is True
    assert ei.value.code == "CONCURRENCY_CONFLICT"
    assert ei.value.context["attempts"] == 3


@pytest.mark.asyncio
async def test_business_errors_are_not_retried():
    calls = {"n": 0}

    async def fn(uow):
        calls["n"] += 1
        raise NegativeStockError("no stock", available=0, delta=-1)

    with pytest.raises(NegativeStockError):
        await run_ledger_tx(
            lambda: FakeUow([]), fn, op="adjust", keys=["k"], locks=KeyedLockRegistry(), policy=POLICY
        )
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_lock_wait_timeout_becomes_conflict():
    locks = KeyedLockRegistry()
    entered = asyncio.Event()
    release = asyncio.Event()

    async def holder():
        async with locks.hold(["k"]):
            entered.set()
            await release.wait()

    task = asyncio.create_task(holder())
    await entered.wait()

    async def fn(uow):
        return None

    policy = RetryPolicy(max_attempts=1, base_delay=0.0, max_delay=0.0, lock_timeout=0.01)
    with pytest.raises(ConflictError) as ei:
        await run_ledger_tx(lambda: FakeUow([]), fn, op="adjust", keys=["k"], locks=locks, policy=policy)
    assert ei.value.retryable is True

    release.set()
    await task


def test_retryable_classification():
    assert is_retryable(StaleStockError("x"))
    assert is_retryable(OperationalError("UPDATE", {}, Exception("database is locked")))
    assert is_retryable(ConflictError("busy", retryable=True))
    assert not is_retryable(ConflictError("duplicate code"))
    assert not is_retryable(ValueError("boom"))


def test_backoff_is_bounded():
    policy = RetryPolicy(max_attempts=10, base_delay=0.02, max_delay=0.1)
    for attempt in range(1, 10):
        d = policy.delay_for(attempt)
        assert 0 <= d <= 0.1

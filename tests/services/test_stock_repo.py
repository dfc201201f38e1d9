import logging

import pytest
import pytest_asyncio
from prometheus_client import REGISTRY

from stockledger.core.errors import InvariantViolation
from stockledger.services.ledger_types import MovementFilters, StockKey
from tests.factories import TENANT

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def key(factory):
    p = await factory.product(TENANT, sku="CAT-FOOD")
    wh = await factory.location(TENANT, "WH-MAIN", "Main Warehouse")
    return StockKey(TENANT, p.id, wh.id)


def _violations(op: str) -> float:
    return REGISTRY.get_sample_value("ledger_invariant_violations_total", {"op": op}) or 0.0


async def test_unguarded_decrement_trips_invariant(services, factory, key):
    with pytest.raises(InvariantViolation) as ei:
        async with services.runtime.uow_factory() as uow:
            await uow.stocks.compare_and_apply(key, quantity_delta=-1)

    assert ei.value.status == 500
    assert ei.value.code == "INVARIANT_VIOLATION"
    assert ei.value.context["quantity"] == -1
    assert ei.value.context["location_id"] == key.location_id
    # 物化出来的 0 行随事务一起回滚
    assert await factory.state(TENANT, key.product_id, key.location_id) is None


async def test_unguarded_over_reservation_trips_invariant(services, factory, key):
    await factory.stock(TENANT, key.product_id, key.location_id, 3)
    before = await factory.state(TENANT, key.product_id, key.location_id)

    with pytest.raises(InvariantViolation):
        async with services.runtime.uow_factory() as uow:
            await uow.stocks.compare_and_apply(key, reserved_delta=4)

    assert await factory.state(TENANT, key.product_id, key.location_id) == before


async def test_ledger_tx_counts_and_logs_invariant_violation(services, factory, key, caplog):
    seen = _violations("adjust")

    async def _tx(uow):
        return await uow.stocks.compare_and_apply(key, quantity_delta=-1)

    with caplog.at_level(logging.ERROR, logger="stockledger.tx"):
        with pytest.raises(InvariantViolation):
            await services.runtime.run("adjust", [key], _tx)

    assert _violations("adjust") == seen + 1
    errors = [r for r in caplog.records if r.name == "stockledger.tx" and r.levelno == logging.ERROR]
    assert len(errors) == 1
    msg = errors[0].getMessage()
    assert "INVARIANT_VIOLATION" in msg
    assert "op=adjust" in msg
    assert "'quantity': -1" in msg

    # 不变量失败不重试，也不留下任何台账
    page = await services.journal.query_movements(TENANT, MovementFilters())
    assert page.total == 0
    assert await factory.state(TENANT, key.product_id, key.location_id) is None

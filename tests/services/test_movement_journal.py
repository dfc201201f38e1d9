# tests/services/test_movement_journal.py
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from stockledger.core.errors import ValidationError
from stockledger.models.enums import MovementType
from stockledger.services.ledger_types import MovementFilters
from tests.factories import OTHER_TENANT, TENANT

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def history(services, factory):
    """WH-MAIN 收货 10 -> 调拨 3 到 STORE-A -> STORE-A 出库 1；另一个商品在 STORE-A 收货 5。"""
    p1 = await factory.product(TENANT, sku="P-1")
    p2 = await factory.product(TENANT, sku="P-2")
    wh = await factory.location(TENANT, "WH-MAIN")
    store = await factory.location(TENANT, "STORE-A")

    await services.ledger.adjust_stock(TENANT, p1.id, wh.id, 10, "receiving")
    await services.transfers.transfer_stock(TENANT, p1.id, wh.id, store.id, 3, "restock")
    await services.ledger.adjust_stock(TENANT, p1.id, store.id, -1, "sold")
    await services.ledger.adjust_stock(TENANT, p2.id, store.id, 5, "receiving")
    return p1, p2, wh, store


async def test_newest_first(services, history):
    page = await services.journal.query_movements(TENANT)

    assert page.total == 4
    types = [m.movement_type for m in page.items]
    assert types == [MovementType.IN, MovementType.OUT, MovementType.TRANSFER, MovementType.IN]
    ids = [m.id for m in page.items]
    assert ids == sorted(ids, reverse=True)


async def test_filters(services, history):
    p1, p2, wh, store = history

    by_product = await services.journal.query_movements(TENANT, MovementFilters(product_id=p1.id))
    assert by_product.total == 3

    at_store = await services.journal.query_movements(TENANT, MovementFilters(location_id=store.id))
    assert {m.product_id for m in at_store.items} == {p1.id, p2.id}
    assert at_store.total == 2

    out_of_wh = await services.journal.query_movements(TENANT, MovementFilters(from_location_id=wh.id))
    assert [m.movement_type for m in out_of_wh.items] == [MovementType.TRANSFER]

    into_store = await services.journal.query_movements(TENANT, MovementFilters(to_location_id=store.id))
    assert into_store.total == 1

    outs = await services.journal.query_movements(TENANT, MovementFilters(movement_type="out"))
    assert [m.quantity for m in outs.items] == [1]


async def test_tenant_isolation(services, history):
    page = await services.journal.query_movements(OTHER_TENANT)
    assert page.total == 0
    assert page.items == []


async def test_date_range_filters(services, history):
    now = datetime.now(timezone.utc)
    everything = await services.journal.query_movements(
        TENANT,
        MovementFilters(from_date=now - timedelta(hours=1), to_date=now + timedelta(hours=1)),
    )
    assert everything.total == 4

    future = await services.journal.query_movements(
        TENANT, MovementFilters(from_date=now + timedelta(hours=1))
    )
    assert future.total == 0

    past = await services.journal.query_movements(
        TENANT, MovementFilters(to_date=now - timedelta(hours=1))
    )
    assert past.total == 0


async def test_pagination(services, history):
    first = await services.journal.query_movements(TENANT, MovementFilters(page=1, page_size=3))
    second = await services.journal.query_movements(TENANT, MovementFilters(page=2, page_size=3))

    assert first.total == second.total == 4
    assert first.pages == 2
    assert len(first.items) == 3
    assert len(second.items) == 1
    assert second.items[0].id not in {m.id for m in first.items}


async def test_invalid_filters(services):
    with pytest.raises(ValidationError):
        await services.journal.query_movements(TENANT, MovementFilters(page=0))
    with pytest.raises(ValidationError):
        await services.journal.query_movements(TENANT, MovementFilters(movement_type="MOVE"))

    now = datetime.now(timezone.utc)
    with pytest.raises(ValidationError):
        await services.journal.query_movements(
            TENANT, MovementFilters(from_date=now, to_date=now - timedelta(days=1))
        )


async def test_page_size_is_capped(services, history):
    page = await services.journal.query_movements(TENANT, MovementFilters(page_size=10_000))
    assert page.page_size == services.journal.max_page_size

# tests/services/test_stock_bulk_service.py
import pytest
import pytest_asyncio

from stockledger.core.errors import ConflictError
from stockledger.models.enums import MovementType
from stockledger.services.ledger_types import ImportRow, MovementFilters
from stockledger.services.movement_repo import MovementRepo
from stockledger.services.stock_bulk_service import MISSING_FIELDS_MSG
from tests.factories import OTHER_TENANT, TENANT

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def catalog(factory):
    cat = await factory.product(TENANT, sku="CAT-FOOD", name="Cat Food")
    dog = await factory.product(TENANT, sku="DOG-FOOD", name="Dog Food")
    wh = await factory.location(TENANT, "WH-MAIN", "Main Warehouse")
    store = await factory.location(TENANT, "STORE-A", "Retail Store A")
    return cat, dog, wh, store


async def _adjustments(services):
    page = await services.journal.query_movements(
        TENANT, MovementFilters(movement_type=MovementType.ADJUSTMENT)
    )
    return page.items


async def test_import_sets_target_quantity(services, factory, catalog):
    cat, dog, wh, store = catalog
    await factory.stock(TENANT, cat.id, wh.id, 4)

    result = await services.bulk.bulk_import_stocks(
        TENANT,
        [
            ImportRow("CAT-FOOD", "wh-main", "10"),
            ImportRow("Dog Food", "STORE-A", 3),
        ],
        actor="importer",
    )

    assert (result.succeeded, result.failed, result.errors) == (2, 0, [])
    assert (await factory.state(TENANT, cat.id, wh.id)).quantity == 10
    assert (await factory.state(TENANT, dog.id, store.id)).quantity == 3

    reasons = sorted(m.reason for m in await _adjustments(services))
    assert reasons == ["Bulk import: increased by 3", "Bulk import: increased by 6"]
    assert {m.created_by for m in await _adjustments(services)} == {"importer"}


async def test_import_decrease_and_no_op(services, factory, catalog):
    cat, _, wh, _ = catalog
    await factory.stock(TENANT, cat.id, wh.id, 10)

    result = await services.bulk.bulk_import_stocks(
        TENANT, [ImportRow("CAT-FOOD", "WH-MAIN", 7), ImportRow("CAT-FOOD", "WH-MAIN", 7)]
    )
    assert result.succeeded == 2

    adjustments = await _adjustments(services)
    # 第二行 delta == 0，不落账
    assert len(adjustments) == 1
    assert adjustments[0].quantity == 3
    assert adjustments[0].reason == "Bulk import: decreased by 3"


async def test_import_zero_creates_row_without_movement(services, factory, catalog):
    cat, _, wh, _ = catalog

    result = await services.bulk.bulk_import_stocks(TENANT, [ImportRow("CAT-FOOD", "WH-MAIN", 0)])

    assert result.succeeded == 1
    state = await factory.state(TENANT, cat.id, wh.id)
    assert state is not None and state.quantity == 0
    assert await _adjustments(services) == []


async def test_row_errors_do_not_stop_the_batch(services, factory, catalog):
    cat, dog, wh, _ = catalog

    result = await services.bulk.bulk_import_stocks(
        TENANT,
        [
            ImportRow("CAT-FOOD", "WH-MAIN", 5, row_number=2),
            ImportRow(None, "WH-MAIN", 5, row_number=3),
            ImportRow("NOPE", "WH-MAIN", 5, row_number=4),
            ImportRow("DOG-FOOD", "NOWHERE", 5, row_number=5),
            ImportRow("DOG-FOOD", "WH-MAIN", "-1", row_number=6),
            ImportRow("DOG-FOOD", "WH-MAIN", "2.5", row_number=7),
            ImportRow("DOG-FOOD", "WH-MAIN", 8, row_number=8),
        ],
    )

    assert result.succeeded == 2
    assert result.failed == 5
    assert [(e.row, e.key, e.message) for e in result.errors] == [
        (3, "Unknown", MISSING_FIELDS_MSG),
        (4, "NOPE", "Product not found"),
        (5, "DOG-FOOD", "Location code 'NOWHERE' not found"),
        (6, "DOG-FOOD", "Invalid quantity: -1"),
        (7, "DOG-FOOD", "Invalid quantity: 2.5"),
    ]
    assert (await factory.state(TENANT, cat.id, wh.id)).quantity == 5
    assert (await factory.state(TENANT, dog.id, wh.id)).quantity == 8


async def test_row_number_defaults_to_sheet_position(services, catalog):
    result = await services.bulk.bulk_import_stocks(
        TENANT, [ImportRow("CAT-FOOD", "WH-MAIN", 1), ImportRow("", "WH-MAIN", 1)]
    )
    assert result.errors[0].row == 3


async def test_import_below_reserved_is_row_error(services, factory, catalog):
    cat, _, wh, _ = catalog
    await factory.stock(TENANT, cat.id, wh.id, 10, reserved=6)

    result = await services.bulk.bulk_import_stocks(TENANT, [ImportRow("CAT-FOOD", "WH-MAIN", 5)])

    assert result.failed == 1
    assert "reserved" in result.errors[0].message
    assert (await factory.state(TENANT, cat.id, wh.id)).quantity == 10


async def test_import_resolves_within_tenant(services, factory, catalog):
    result = await services.bulk.bulk_import_stocks(OTHER_TENANT, [ImportRow("CAT-FOOD", "WH-MAIN", 1)])
    assert result.failed == 1
    assert result.errors[0].message == "Product not found"


async def test_export_rows(services, factory, catalog):
    cat, dog, wh, store = catalog
    await factory.stock(TENANT, cat.id, wh.id, 10, reserved=2)
    await factory.stock(TENANT, dog.id, store.id, 3)

    rows = await services.bulk.export_stocks(TENANT)

    # 按库位编码 + sku 排序：STORE-A 在 WH-MAIN 之前
    assert [(r.location_code, r.sku) for r in rows] == [("STORE-A", "DOG-FOOD"), ("WH-MAIN", "CAT-FOOD")]
    assert rows[1].available_quantity == 8
    assert rows[1].product_name == "Cat Food"
    assert rows[1].location_name == "Main Warehouse"

    only_wh = await services.bulk.export_stocks(TENANT, location_id=wh.id)
    assert [r.sku for r in only_wh] == ["CAT-FOOD"]
    assert await services.bulk.export_stocks(OTHER_TENANT) == []



async def test_journal_failure_rolls_back_only_that_row(services, factory, catalog, monkeypatch):
    cat, dog, wh, store = catalog
    await factory.stock(TENANT, cat.id, store.id, 2)
    store_before = await factory.state(TENANT, cat.id, store.id)
    real_append = MovementRepo.append

    async def flaky_append(self, **kw):
        if kw.get("location_id") == store.id:
            raise ConflictError("journal unavailable")
        return await real_append(self, **kw)

    monkeypatch.setattr(MovementRepo, "append", flaky_append)
    result = await services.bulk.bulk_import_stocks(
        TENANT,
        [
            ImportRow("CAT-FOOD", "WH-MAIN", 10),
            ImportRow("CAT-FOOD", "STORE-A", 5),
            ImportRow("DOG-FOOD", "WH-MAIN", 3),
        ],
    )
    monkeypatch.undo()

    assert (result.succeeded, result.failed) == (2, 1)
    assert [(e.row, e.key, e.message) for e in result.errors] == [(3, "CAT-FOOD", "journal unavailable")]

    # 数量与版本都停在导入前
    assert await factory.state(TENANT, cat.id, store.id) == store_before
    adjustments = await _adjustments(services)
    assert len(adjustments) == 2
    assert store.id not in {m.location_id for m in adjustments}


async def test_non_text_product_key_is_handled_per_row(services, factory, catalog):
    _, _, wh, _ = catalog
    numbered = await factory.product(TENANT, sku="123", name="Numbered Item")

    result = await services.bulk.bulk_import_stocks(
        TENANT,
        [
            ImportRow(123, "WH-MAIN", 4),
            ImportRow(456, "WH-MAIN", 4),
            ImportRow("CAT-FOOD", "WH-MAIN", 1),
        ],
    )

    assert (result.succeeded, result.failed) == (2, 1)
    assert [(e.row, e.key, e.message) for e in result.errors] == [(3, "456", "Product not found")]
    assert (await factory.state(TENANT, numbered.id, wh.id)).quantity == 4

# tests/services/test_location_registry.py
import asyncio

import pytest

from stockledger.core.errors import ConflictError, NotFoundError, ValidationError
from stockledger.services.ledger_types import LocationPatch
from tests.factories import OTHER_TENANT, TENANT

pytestmark = pytest.mark.asyncio


async def test_create_normalizes_and_defaults(services):
    loc = await services.locations.create_location(TENANT, " wh-main ", "  Main Warehouse ", address="  ")

    assert loc.id is not None
    assert loc.code == "WH-MAIN"
    assert loc.name == "Main Warehouse"
    assert loc.address is None
    assert loc.is_active is True
    assert loc.allow_negative_stock is False


async def test_duplicate_code_conflicts_case_insensitively(services):
    await services.locations.create_location(TENANT, "WH-MAIN", "Main")

    with pytest.raises(ConflictError) as ei:
        await services.locations.create_location(TENANT, "wh-main", "Another")
    assert ei.value.retryable is False

    # 其它租户可以用同一编码
    other = await services.locations.create_location(OTHER_TENANT, "WH-MAIN", "Main")
    assert other.tenant_id == OTHER_TENANT


async def test_concurrent_duplicate_create_yields_one_location(services):
    results = await asyncio.gather(
        services.locations.create_location(TENANT, "DUP", "One"),
        services.locations.create_location(TENANT, "DUP", "Two"),
        return_exceptions=True,
    )
    ok = [r for r in results if not isinstance(r, Exception)]
    errors = [r for r in results if isinstance(r, Exception)]

    assert len(ok) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)


async def test_invalid_code_is_validation_error(services):
    with pytest.raises(ValidationError):
        await services.locations.create_location(TENANT, "WH MAIN", "Main")


async def test_get_is_tenant_scoped(services):
    loc = await services.locations.create_location(TENANT, "WH-MAIN", "Main")

    assert (await services.locations.get_location(TENANT, loc.id)).code == "WH-MAIN"
    with pytest.raises(NotFoundError):
        await services.locations.get_location(OTHER_TENANT, loc.id)


async def test_update_fields(services):
    loc = await services.locations.create_location(TENANT, "WH-MAIN", "Main")

    updated = await services.locations.update_location(
        TENANT,
        loc.id,
        LocationPatch(code="wh-central", name="Central", address="1 Dock Rd", allow_negative_stock=True),
    )
    assert updated.code == "WH-CENTRAL"
    assert updated.name == "Central"
    assert updated.address == "1 Dock Rd"
    assert updated.allow_negative_stock is True


async def test_code_locked_once_stock_exists(services, factory):
    loc = await services.locations.create_location(TENANT, "WH-MAIN", "Main")
    p = await factory.product(TENANT)
    await factory.stock(TENANT, p.id, loc.id, 5)

    with pytest.raises(ConflictError) as ei:
        await services.locations.update_location(TENANT, loc.id, LocationPatch(code="WH-NEW"))
    assert ei.value.code == "LOCATION_CODE_LOCKED"

    # 同编码（大小写不同）不算修改
    same = await services.locations.update_location(TENANT, loc.id, LocationPatch(code="wh-main", name="Renamed"))
    assert same.code == "WH-MAIN"
    assert same.name == "Renamed"


async def test_code_lock_applies_to_zero_quantity_rows(services, factory):
    loc = await services.locations.create_location(TENANT, "WH-MAIN", "Main")
    p = await factory.product(TENANT)
    await factory.stock(TENANT, p.id, loc.id, 5)
    await services.ledger.adjust_stock(TENANT, p.id, loc.id, -5, "empty the bin")

    with pytest.raises(ConflictError):
        await services.locations.update_location(TENANT, loc.id, LocationPatch(code="WH-NEW"))


async def test_update_code_collision(services):
    await services.locations.create_location(TENANT, "WH-A", "A")
    b = await services.locations.create_location(TENANT, "WH-B", "B")

    with pytest.raises(ConflictError) as ei:
        await services.locations.update_location(TENANT, b.id, LocationPatch(code="wh-a"))
    assert ei.value.code == "LOCATION_CODE_EXISTS"


async def test_disable_negative_policy_blocked_by_negative_rows(services, factory):
    loc = await services.locations.create_location(TENANT, "BACKORDER", "Backorder", allow_negative_stock=True)
    p = await factory.product(TENANT)
    await services.ledger.adjust_stock(TENANT, p.id, loc.id, -3, "presale order")

    with pytest.raises(ConflictError) as ei:
        await services.locations.update_location(TENANT, loc.id, LocationPatch(allow_negative_stock=False))
    assert ei.value.code == "NEGATIVE_STOCK_PRESENT"


async def test_deactivation_scenario(services, factory):
    loc = await services.locations.create_location(TENANT, "STORE-B", "Store B")
    p = await factory.product(TENANT)
    await factory.stock(TENANT, p.id, loc.id, 1)

    with pytest.raises(ConflictError):
        await services.locations.deactivate_location(TENANT, loc.id)
    assert (await services.locations.get_location(TENANT, loc.id)).is_active is True

    await services.ledger.adjust_stock(TENANT, p.id, loc.id, -1, "move out")
    done = await services.locations.deactivate_location(TENANT, loc.id)
    assert done.is_active is False


async def test_deactivation_blocked_while_reserved_stock_on_hand(services, factory):
    loc = await services.locations.create_location(TENANT, "STORE-B", "Store B")
    p = await factory.product(TENANT)
    await factory.stock(TENANT, p.id, loc.id, 2, reserved=2)

    with pytest.raises(ConflictError):
        await services.locations.deactivate_location(TENANT, loc.id)


async def test_activate_round_trip(services):
    loc = await services.locations.create_location(TENANT, "WH-X", "X")
    await services.locations.deactivate_location(TENANT, loc.id)
    again = await services.locations.activate_location(TENANT, loc.id)
    assert again.is_active is True


async def test_list_orders_by_name_and_filters(services):
    await services.locations.create_location(TENANT, "C-1", "Charlie")
    await services.locations.create_location(TENANT, "A-1", "Alpha Dock")
    b = await services.locations.create_location(TENANT, "B-1", "Bravo")
    await services.locations.create_location(OTHER_TENANT, "Z-1", "Zulu")
    await services.locations.deactivate_location(TENANT, b.id)

    page = await services.locations.list_locations(TENANT)
    assert [loc.code for loc in page.items] == ["A-1", "B-1", "C-1"]
    assert page.total == 3

    active = await services.locations.list_locations(TENANT, is_active=True)
    assert {loc.code for loc in active.items} == {"A-1", "C-1"}

    found = await services.locations.list_locations(TENANT, search="DOCK")
    assert [loc.code for loc in found.items] == ["A-1"]

    by_code = await services.locations.list_locations(TENANT, search="c-")
    assert [loc.code for loc in by_code.items] == ["C-1"]


async def test_list_search_treats_wildcards_literally(services):
    await services.locations.create_location(TENANT, "A-1", "100% cotton")
    await services.locations.create_location(TENANT, "A-2", "cotton")

    found = await services.locations.list_locations(TENANT, search="%")
    assert [loc.code for loc in found.items] == ["A-1"]


async def test_list_pagination(services):
    for i in range(5):
        await services.locations.create_location(TENANT, f"L-{i}", f"Loc {i}")

    page2 = await services.locations.list_locations(TENANT, page=2, page_size=2)
    assert page2.total == 5
    assert page2.pages == 3
    assert [loc.code for loc in page2.items] == ["L-2", "L-3"]

    with pytest.raises(ValidationError):
        await services.locations.list_locations(TENANT, page=0)

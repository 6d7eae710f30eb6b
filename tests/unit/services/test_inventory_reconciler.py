# tests/unit/services/test_inventory_reconciler.py
import pytest

from catalog_sync.core.enums import ReconcileAction
from catalog_sync.core.utils import parse_quantity
from catalog_sync.schemas.webhook import parse_webhook_event
from catalog_sync.services.inventory_reconciler import InventoryReconciler
from tests.mocks import InMemoryProductStore, make_product


def inventory_event(*counts):
    return parse_webhook_event({
        "type": "inventory.count.updated",
        "event_id": "evt-inv",
        "data": {"type": "inventory", "id": "x", "object": {"inventory_counts": list(counts)}},
    })


def count(variation_id, quantity="9", state="IN_STOCK"):
    entry = {"catalog_object_id": variation_id, "location_id": "LOC_1", "state": state}
    if quantity is not None:
        entry["quantity"] = quantity
    return entry


@pytest.mark.parametrize("raw, expected", [
    ("9", 9),
    ("2.0", 2),
    (None, 0),
    ("", 0),
    ("lots", 0),
    (7, 7),
])
def test_parse_quantity(raw, expected):
    assert parse_quantity(raw) == expected


@pytest.mark.asyncio
async def test_count_overwrites_cached_quantity():
    store = InMemoryProductStore([make_product(1, item_id="A", quantity=5)])

    result = await InventoryReconciler(store).handle_event(inventory_event(count("VAR_A", "9")))

    assert result.action == ReconcileAction.UPDATED
    assert store.products[1].quantity == 9


@pytest.mark.asyncio
async def test_missing_quantity_counts_as_zero():
    store = InMemoryProductStore([make_product(1, item_id="A", quantity=5)])

    await InventoryReconciler(store).handle_event(inventory_event(count("VAR_A", quantity=None)))

    assert store.products[1].quantity == 0


@pytest.mark.asyncio
async def test_unknown_variation_is_skipped_without_writes():
    store = InMemoryProductStore([make_product(1, item_id="A", quantity=5)])

    result = await InventoryReconciler(store).handle_event(inventory_event(count("VAR_999")))

    assert result.action == ReconcileAction.SKIPPED
    assert "No product found" in result.details
    assert store.writes == []


@pytest.mark.asyncio
async def test_non_in_stock_counts_are_ignored():
    store = InMemoryProductStore([make_product(1, item_id="A", quantity=5)])

    result = await InventoryReconciler(store).handle_event(inventory_event(count("VAR_A", "1", state="SOLD")))

    assert result.action == ReconcileAction.SKIPPED
    assert store.products[1].quantity == 5


@pytest.mark.asyncio
async def test_multiple_counts_in_one_notification():
    store = InMemoryProductStore([make_product(1, item_id="A"), make_product(2, item_id="B")])

    result = await InventoryReconciler(store).handle_event(
        inventory_event(count("VAR_A", "1"), count("VAR_B", "2"), count("VAR_Z", "3"))
    )

    assert result.action == ReconcileAction.UPDATED
    assert store.products[1].quantity == 1
    assert store.products[2].quantity == 2


@pytest.mark.asyncio
async def test_replaying_a_count_is_idempotent():
    store = InMemoryProductStore([make_product(1, item_id="A", quantity=5)])
    reconciler = InventoryReconciler(store)
    event = inventory_event(count("VAR_A", "3"))

    await reconciler.handle_event(event)
    await reconciler.handle_event(event)

    assert store.products[1].quantity == 3


@pytest.mark.asyncio
async def test_empty_payload_is_skipped():
    store = InMemoryProductStore()
    result = await InventoryReconciler(store).handle_event(inventory_event())
    assert result.action == ReconcileAction.SKIPPED

# tests/unit/services/test_conflict_resolver.py
import pytest

from catalog_sync.core.enums import ConflictResolution, ConflictStatus, ConflictType, ExternalSystem
from catalog_sync.core.exceptions import (
    CatalogVersionMismatchError,
    ConflictNotFoundError,
    FailedPreconditionError,
    SquareAPIError,
    ValidationError,
)
from catalog_sync.schemas.sync_conflict import (
    ExternalOnlySubject,
    ExternalStateSnapshot,
    LocalSubject,
    SyncConflictCreate,
    SyncStateSnapshot,
)
from catalog_sync.services.conflict_resolver import ConflictResolver
from tests.mocks import InMemoryConflictStore, InMemoryProductStore, MockSquareClient, make_item, make_product


@pytest.fixture
def products():
    return InMemoryProductStore([make_product(1, item_id="A", quantity=5, price_cents=2500, version=7)])


@pytest.fixture
def conflicts():
    return InMemoryConflictStore()


@pytest.fixture
def client():
    return MockSquareClient([make_item("A", price_cents=3000, version=7)], {"VAR_A": 3})


@pytest.fixture
def resolver(products, conflicts, client):
    return ConflictResolver(products, conflicts, client)


async def add_conflict(conflicts, conflict_type, subject=None, local=(5, 2500), external=(3, 3000)):
    return await conflicts.create(SyncConflictCreate(
        subject=subject or LocalSubject(product_id=1),
        conflict_type=conflict_type,
        system=ExternalSystem.SQUARE,
        local_state=SyncStateSnapshot(quantity=local[0], price=local[1], name="Local name"),
        external_state=ExternalStateSnapshot(
            system=ExternalSystem.SQUARE, quantity=external[0], price=external[1], name="Square name"
        ),
    ))


# --- use_local ---

@pytest.mark.asyncio
async def test_use_local_price_pushes_with_current_version(resolver, products, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)

    resolved = await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert client.calls_to("update_catalog_item") == [
        {"item_id": "A", "variation_id": "VAR_A", "version": 7, "price_cents": 2500}
    ]
    assert resolved.status == ConflictStatus.RESOLVED
    assert resolved.resolution == ConflictResolution.USE_LOCAL
    assert resolved.resolved_by == "admin"
    assert resolved.resolved_at is not None
    assert client.items["A"].price_cents == 2500
    assert products.products[1].external_catalog_version == 8


@pytest.mark.asyncio
async def test_use_local_price_with_stale_version_keeps_conflict_pending(resolver, products, conflicts, client):
    client.items["A"] = client.items["A"].model_copy(update={"version": 9})
    conflict = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)

    with pytest.raises(CatalogVersionMismatchError):
        await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert conflicts.conflicts[conflict.id].status == ConflictStatus.PENDING
    assert products.products[1].external_catalog_version == 7


@pytest.mark.asyncio
async def test_use_local_quantity_sets_square_inventory(resolver, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)

    await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert client.calls_to("set_inventory_quantity") == [
        {"variation_id": "VAR_A", "location_id": "LOC_1", "quantity": 5}
    ]
    assert client.inventory["VAR_A"] == 5


@pytest.mark.asyncio
async def test_use_local_for_missing_external_is_refused(resolver, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.MISSING_EXTERNAL)

    with pytest.raises(FailedPreconditionError, match="manual recreation"):
        await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert conflicts.conflicts[conflict.id].status == ConflictStatus.PENDING
    assert client.calls == []


@pytest.mark.asyncio
async def test_use_local_for_missing_local_is_a_noop(resolver, conflicts, client):
    conflict = await add_conflict(
        conflicts, ConflictType.MISSING_LOCAL, subject=ExternalOnlySubject(external_item_id="X")
    )

    resolved = await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert resolved.status == ConflictStatus.RESOLVED
    assert client.calls == []


@pytest.mark.asyncio
async def test_external_failure_leaves_conflict_pending(resolver, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)
    client.should_fail = True

    with pytest.raises(SquareAPIError):
        await resolver.resolve(conflict.id, ConflictResolution.USE_LOCAL, "admin")

    assert conflicts.conflicts[conflict.id].status == ConflictStatus.PENDING


# --- use_external ---

@pytest.mark.asyncio
async def test_use_external_quantity_updates_cache(resolver, products, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)

    await resolver.resolve(conflict.id, ConflictResolution.USE_EXTERNAL, "admin")

    assert products.products[1].quantity == 3
    assert client.calls == []


@pytest.mark.asyncio
async def test_use_external_price_updates_cache(resolver, products, conflicts):
    conflict = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)

    await resolver.resolve(conflict.id, ConflictResolution.USE_EXTERNAL, "admin")

    assert products.products[1].price_cents == 3000
    assert products.products[1].quantity == 5


@pytest.mark.asyncio
async def test_use_external_for_other_types_copies_whole_snapshot(resolver, products, conflicts):
    conflict = await add_conflict(conflicts, ConflictType.MISSING_EXTERNAL)

    await resolver.resolve(conflict.id, ConflictResolution.USE_EXTERNAL, "admin")

    product = products.products[1]
    assert (product.name, product.price_cents, product.quantity) == ("Square name", 3000, 3)


@pytest.mark.asyncio
async def test_use_external_for_missing_local_is_refused(resolver, conflicts):
    conflict = await add_conflict(
        conflicts, ConflictType.MISSING_LOCAL, subject=ExternalOnlySubject(external_item_id="X")
    )

    with pytest.raises(FailedPreconditionError, match="manual local creation"):
        await resolver.resolve(conflict.id, ConflictResolution.USE_EXTERNAL, "admin")


# --- manual / ignored ---

@pytest.mark.asyncio
@pytest.mark.parametrize("notes", [None, "", "   "])
async def test_manual_requires_notes(resolver, conflicts, notes):
    conflict = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)

    with pytest.raises(ValidationError) as exc_info:
        await resolver.resolve(conflict.id, ConflictResolution.MANUAL, "admin", notes=notes)

    assert exc_info.value.field == "notes"
    assert conflicts.conflicts[conflict.id].status == ConflictStatus.PENDING


@pytest.mark.asyncio
async def test_manual_with_notes_resolves_without_touching_data(resolver, products, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)

    resolved = await resolver.resolve(conflict.id, ConflictResolution.MANUAL, "admin", notes="Recounted shelf")

    assert resolved.notes == "Recounted shelf"
    assert resolved.resolution == ConflictResolution.MANUAL
    assert products.writes == []
    assert client.calls == []


@pytest.mark.asyncio
async def test_ignored_resolves_without_touching_data(resolver, products, conflicts, client):
    conflict = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)

    resolved = await resolver.resolve(conflict.id, ConflictResolution.IGNORED, "admin")

    assert resolved.resolution == ConflictResolution.IGNORED
    assert products.writes == []
    assert client.calls == []


# --- preconditions ---

@pytest.mark.asyncio
async def test_unknown_conflict_is_not_found(resolver):
    with pytest.raises(ConflictNotFoundError):
        await resolver.resolve(404, ConflictResolution.IGNORED, "admin")


@pytest.mark.asyncio
async def test_resolving_twice_is_rejected_and_record_unchanged(resolver, conflicts):
    conflict = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)
    await resolver.resolve(conflict.id, ConflictResolution.IGNORED, "admin")
    before = conflicts.conflicts[conflict.id].model_dump()

    with pytest.raises(FailedPreconditionError, match="already resolved"):
        await resolver.resolve(conflict.id, ConflictResolution.USE_EXTERNAL, "someone-else")

    assert conflicts.conflicts[conflict.id].model_dump() == before


@pytest.mark.asyncio
async def test_resolving_one_conflict_leaves_others_untouched(resolver, conflicts):
    price = await add_conflict(conflicts, ConflictType.PRICE_MISMATCH)
    quantity = await add_conflict(conflicts, ConflictType.QUANTITY_MISMATCH)
    before = conflicts.conflicts[quantity.id].model_dump()

    await resolver.resolve(price.id, ConflictResolution.IGNORED, "admin")

    assert conflicts.conflicts[quantity.id].model_dump() == before

from typing import Dict, List, Optional

from catalog_sync.core.enums import ExternalSystem
from catalog_sync.core.exceptions import CatalogVersionMismatchError, SquareAPIError
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.schemas.square import CatalogItem, CatalogVariation, InventoryCountResult


def make_item(item_id: str, price_cents: Optional[int] = 2500, version: int = 1, name: str = None,
              variation_id: str = None, sku: str = None, type: str = "ITEM", variations: bool = True) -> CatalogItem:
    return CatalogItem(
        id=item_id,
        type=type,
        version=version,
        name=name or f"Item {item_id}",
        description=f"Description of {item_id}",
        variations=[CatalogVariation(
            id=variation_id or f"VAR_{item_id}",
            sku=sku or f"SKU-{item_id}",
            price_cents=price_cents,
        )] if variations else [],
        image_url=f"https://images.example.com/{item_id}.jpg",
    )


class MockSquareClient(ExternalCatalogClient):
    system = ExternalSystem.SQUARE

    def __init__(self, items: List[CatalogItem] = (), inventory: Dict[str, int] = None, location_id: str = "LOC_1"):
        super().__init__(location_id)
        self.items: Dict[str, CatalogItem] = {item.id: item for item in items}
        self.inventory: Dict[str, int] = dict(inventory or {})
        self.calls: list = []  # Track calls for testing
        self.should_fail = False  # Toggle to test error scenarios

    def _record(self, name, **kwargs):
        self.calls.append((name, kwargs))
        if self.should_fail:
            raise SquareAPIError(f"{name} failed", status_code=503)

    def calls_to(self, name) -> list:
        return [kwargs for call, kwargs in self.calls if call == name]

    async def list_catalog_items(self, exhaustive: bool = False) -> List[CatalogItem]:
        self._record("list_catalog_items", exhaustive=exhaustive)
        return list(self.items.values())

    async def get_catalog_item(self, item_id: str) -> Optional[CatalogItem]:
        self._record("get_catalog_item", item_id=item_id)
        return self.items.get(item_id)

    async def update_catalog_item(self, item_id: str, variation_id: str, version: int, price_cents: int) -> int:
        self._record("update_catalog_item", item_id=item_id, variation_id=variation_id,
                     version=version, price_cents=price_cents)
        item = self.items.get(item_id)
        if item is None:
            raise SquareAPIError(f"Catalog item not found: {item_id}", status_code=404)
        if item.version != version:
            raise CatalogVersionMismatchError(
                f"Catalog version mismatch: expected {version}, got {item.version}", status_code=409
            )
        variations = [
            v.model_copy(update={"price_cents": price_cents}) if v.id == variation_id else v
            for v in item.variations
        ]
        self.items[item_id] = item.model_copy(update={"variations": variations, "version": item.version + 1})
        return item.version + 1

    async def get_inventory_counts(self, variation_ids: List[str], location_id: str) -> List[InventoryCountResult]:
        self._record("get_inventory_counts", variation_ids=list(variation_ids), location_id=location_id)
        return [
            InventoryCountResult(catalog_object_id=vid, location_id=location_id, state="IN_STOCK",
                                 quantity=self.inventory[vid])
            for vid in variation_ids if vid in self.inventory
        ]

    async def set_inventory_quantity(self, variation_id: str, location_id: str, quantity: int) -> None:
        self._record("set_inventory_quantity", variation_id=variation_id, location_id=location_id,
                     quantity=quantity)
        self.inventory[variation_id] = quantity

    async def upload_item_image(self, item_id: str, image: bytes, filename: str = "image.jpg") -> Optional[str]:
        self._record("upload_item_image", item_id=item_id, filename=filename)
        return f"https://images.example.com/{item_id}/{filename}"

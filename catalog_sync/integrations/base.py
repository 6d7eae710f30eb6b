from abc import ABC, abstractmethod
from typing import List, Optional

from catalog_sync.core.enums import ExternalSystem
from catalog_sync.schemas.square import CatalogItem, InventoryCountResult


class ExternalCatalogClient(ABC):
    """
    What the reconcilers, detector and resolver need from an external
    commerce system. Failures surface as ``ExternalSystemError`` subclasses.
    """

    system: ExternalSystem

    def __init__(self, location_id: str):
        self.location_id = location_id

    @abstractmethod
    async def list_catalog_items(self, exhaustive: bool = False) -> List[CatalogItem]:
        """
        ITEMs in the external catalog. Bounded by the client's page limit
        unless ``exhaustive`` is set, in which case the listing is complete.
        """
        pass

    @abstractmethod
    async def get_catalog_item(self, item_id: str) -> Optional[CatalogItem]:
        """A single catalog object, or None when it does not exist"""
        pass

    @abstractmethod
    async def update_catalog_item(
        self,
        item_id: str,
        variation_id: str,
        version: int,
        price_cents: int,
    ) -> int:
        """Push a new price guarded by ``version``; returns the new version"""
        pass

    @abstractmethod
    async def get_inventory_counts(self, variation_ids: List[str], location_id: str) -> List[InventoryCountResult]:
        """In-stock counts for the given variations at one location"""
        pass

    @abstractmethod
    async def set_inventory_quantity(self, variation_id: str, location_id: str, quantity: int) -> None:
        """Set the absolute in-stock quantity"""
        pass

    @abstractmethod
    async def upload_item_image(self, item_id: str, image: bytes, filename: str = "image.jpg") -> Optional[str]:
        """Attach an image to an item; returns the hosted image URL"""
        pass

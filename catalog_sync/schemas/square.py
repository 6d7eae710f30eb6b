"""
Normalised views of Square catalog and inventory objects.

Square returns deeply nested ``item_data`` / ``item_variation_data``
dictionaries. The client flattens them into these models so the
reconcilers never touch raw API payloads.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class CatalogVariation(BaseModel):
    id: str
    sku: Optional[str] = None
    price_cents: Optional[int] = None


class CatalogItem(BaseModel):
    id: str
    type: str = "ITEM"
    version: Optional[int] = None
    name: Optional[str] = None
    description: Optional[str] = None
    variations: List[CatalogVariation] = Field(default_factory=list)
    image_url: Optional[str] = None
    is_deleted: bool = False

    @property
    def first_variation(self) -> Optional[CatalogVariation]:
        return self.variations[0] if self.variations else None

    @property
    def price_cents(self) -> Optional[int]:
        variation = self.first_variation
        return variation.price_cents if variation else None


class InventoryCountResult(BaseModel):
    catalog_object_id: str
    location_id: Optional[str] = None
    state: Optional[str] = None
    quantity: int = 0

# catalog_sync/schemas/product.py
from datetime import datetime
from typing import Optional

from pydantic import Field, model_validator

from catalog_sync.core.enums import ProductStatus
from catalog_sync.schemas.base import BaseSchema


class CatalogCache(BaseSchema):
    """The locally cached copy of the externally editable catalog fields."""
    name: str = ""
    description: Optional[str] = None
    price_cents: int = Field(default=0, ge=0)
    quantity: int = 0
    sku: Optional[str] = None
    image_url: Optional[str] = None


class CacheUpdate(BaseSchema):
    """
    Partial cache overwrite. ``None`` means "keep the cached value", so a
    field Square omits never blanks the local copy.
    """
    name: Optional[str] = None
    description: Optional[str] = None
    price_cents: Optional[int] = Field(default=None, ge=0)
    quantity: Optional[int] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


class ExternalLink(BaseSchema):
    item_id: str = Field(min_length=1)
    variation_id: str = Field(min_length=1)
    catalog_version: Optional[int] = None
    location_id: Optional[str] = None


class ProductDraft(CatalogCache):
    """Input for creating a product. Drafts created from Square items have no owner yet."""
    artist_id: Optional[str] = None
    status: ProductStatus = ProductStatus.DRAFT


class ProductRead(BaseSchema):
    id: int
    artist_id: Optional[str] = None
    status: ProductStatus

    external_item_id: Optional[str] = None
    external_variation_id: Optional[str] = None
    external_catalog_version: Optional[int] = None
    external_location_id: Optional[str] = None

    name: str = ""
    description: Optional[str] = None
    price_cents: int = 0
    quantity: int = 0
    sku: Optional[str] = None
    image_url: Optional[str] = None
    synced_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_external_link_pair(self):
        if (self.external_item_id is None) != (self.external_variation_id is None):
            raise ValueError("external_item_id and external_variation_id must be set together")
        return self

    @property
    def is_linked(self) -> bool:
        return self.external_item_id is not None and self.external_variation_id is not None

# catalog_sync/services/conflict_resolver.py
"""
Resolution of sync conflicts.

A conflict moves ``pending -> resolved`` exactly once. Resolving an already
resolved conflict is rejected so an operator acting on a stale screen finds
out. Actions:

- ``use_local``: push the local snapshot to the external system
- ``use_external``: pull the external snapshot into the local cache
- ``manual``: the operator fixed it elsewhere (notes required)
- ``ignored``: the divergence is accepted as is

If the data push or pull fails, the conflict stays pending.
"""

import logging
from typing import Optional

from catalog_sync.core.enums import ConflictResolution, ConflictStatus, ConflictType
from catalog_sync.core.exceptions import (
    ConflictNotFoundError,
    FailedPreconditionError,
    ProductNotFoundError,
    ValidationError,
)
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.repositories.base import ConflictStore, ProductStore
from catalog_sync.schemas.product import CacheUpdate, ProductRead
from catalog_sync.schemas.sync_conflict import LocalSubject, SyncConflictRead

logger = logging.getLogger(__name__)


class ConflictResolver:

    def __init__(self, products: ProductStore, conflicts: ConflictStore, client: ExternalCatalogClient):
        self.products = products
        self.conflicts = conflicts
        self.client = client

    async def resolve(
        self,
        conflict_id: int,
        resolution: ConflictResolution,
        resolved_by: str,
        notes: Optional[str] = None,
    ) -> SyncConflictRead:
        if resolution == ConflictResolution.MANUAL and not (notes and notes.strip()):
            raise ValidationError("notes", "Notes are required when resolution is 'manual'")

        conflict = await self.conflicts.find_by_id(conflict_id)
        if conflict is None:
            raise ConflictNotFoundError(conflict_id)

        if conflict.status != ConflictStatus.PENDING:
            raise FailedPreconditionError(
                f"Conflict {conflict_id} is already {conflict.status.value}. Cannot resolve again."
            )

        if resolution == ConflictResolution.USE_LOCAL:
            await self._apply_use_local(conflict)
        elif resolution == ConflictResolution.USE_EXTERNAL:
            await self._apply_use_external(conflict)

        resolved = await self.conflicts.resolve(conflict_id, resolution, resolved_by, notes)
        logger.info(
            f"Conflict {conflict_id} ({conflict.conflict_type.value}, {conflict.subject.key}) "
            f"resolved as {resolution.value} by {resolved_by}"
        )
        return resolved

    async def _get_product(self, conflict: SyncConflictRead) -> ProductRead:
        if not isinstance(conflict.subject, LocalSubject):
            raise FailedPreconditionError(
                f"Conflict {conflict.id} has no local product ({conflict.subject.key})"
            )
        product = await self.products.find_by_id(conflict.subject.product_id)
        if product is None:
            raise ProductNotFoundError(conflict.subject.product_id)
        return product

    async def _apply_use_local(self, conflict: SyncConflictRead) -> None:
        """Push the captured local state to the external system."""
        if conflict.system != self.client.system:
            raise FailedPreconditionError(f"{conflict.system.value} sync is not supported")

        conflict_type = conflict.conflict_type
        if conflict_type == ConflictType.MISSING_EXTERNAL:
            raise FailedPreconditionError(
                f"Cannot automatically restore a deleted {self.client.system.display_name} item. "
                "The item needs manual recreation."
            )
        if conflict_type not in (ConflictType.QUANTITY_MISMATCH, ConflictType.PRICE_MISMATCH):
            return

        product = await self._get_product(conflict)
        if not product.is_linked:
            raise FailedPreconditionError(f"Product {product.id} is no longer linked to an external item")

        if conflict_type == ConflictType.QUANTITY_MISMATCH:
            location_id = product.external_location_id or self.client.location_id
            await self.client.set_inventory_quantity(
                product.external_variation_id,
                location_id,
                conflict.local_state.quantity,
            )
            return

        if product.external_catalog_version is None:
            raise FailedPreconditionError(
                f"Product {product.id} has no external_catalog_version; refresh it from the catalog first"
            )
        new_version = await self.client.update_catalog_item(
            item_id=product.external_item_id,
            variation_id=product.external_variation_id,
            version=product.external_catalog_version,
            price_cents=conflict.local_state.price,
        )
        await self.products.update_cache(
            product.id,
            CacheUpdate(price_cents=conflict.local_state.price),
            new_version=new_version,
        )

    async def _apply_use_external(self, conflict: SyncConflictRead) -> None:
        """Pull the captured external state into the local cache."""
        conflict_type = conflict.conflict_type
        if conflict_type == ConflictType.MISSING_LOCAL:
            raise FailedPreconditionError(
                f"Cannot automatically import external item {conflict.subject.key}. "
                "The product needs manual local creation."
            )

        product = await self._get_product(conflict)
        external = conflict.external_state

        if conflict_type == ConflictType.QUANTITY_MISMATCH:
            await self.products.update_quantity(product.id, external.quantity)
        elif conflict_type == ConflictType.PRICE_MISMATCH:
            await self.products.update_cache(product.id, CacheUpdate(price_cents=external.price))
        else:
            await self.products.update_cache(
                product.id,
                CacheUpdate(name=external.name, price_cents=external.price, quantity=external.quantity),
            )

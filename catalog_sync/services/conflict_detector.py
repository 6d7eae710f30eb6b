# catalog_sync/services/conflict_detector.py
"""
Point-in-time sweep comparing the local cache against the external catalog.

This is the safety net for notifications that were dropped or failed: any
divergence the webhook path missed shows up here as a pending conflict.
External data is fetched with one catalog listing and one batched inventory
call per sweep, never per product.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from catalog_sync.core.enums import ConflictType, ExternalSystem
from catalog_sync.core.exceptions import DuplicatePendingConflictError, ValidationError
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.repositories.base import ConflictStore, ProductStore
from catalog_sync.schemas.product import ProductRead
from catalog_sync.schemas.square import CatalogItem
from catalog_sync.schemas.sync_conflict import (
    ExternalOnlySubject,
    ExternalStateSnapshot,
    LocalSubject,
    SyncConflictCreate,
    SyncConflictRead,
    SyncStateSnapshot,
)

logger = logging.getLogger(__name__)

DELETED_EXTERNALLY_NAME = "(deleted from Square)"
NOT_TRACKED_LOCALLY_NAME = "(not tracked locally)"


@dataclass
class DetectionResult:
    detected: int = 0
    skipped: int = 0  # already pending
    conflicts: List[SyncConflictRead] = field(default_factory=list)


class ConflictDetector:

    def __init__(self, products: ProductStore, conflicts: ConflictStore, client: ExternalCatalogClient):
        self.products = products
        self.conflicts = conflicts
        self.client = client

    async def detect(
        self,
        system: ExternalSystem = ExternalSystem.SQUARE,
        product_ids: Optional[Iterable[int]] = None,
    ) -> DetectionResult:
        """
        Record a pending conflict for every divergence not already pending.

        ``product_ids`` narrows the sweep to those products; external items
        with no local product are only reported on a full sweep.
        """
        if system != self.client.system:
            raise ValidationError("system", f"{system.value} sync is not supported")

        full_sweep = product_ids is None
        products = await self.products.find_all(None if full_sweep else list(product_ids))
        linked = [p for p in products if p.is_linked]

        # A truncated listing would turn every unlisted item into missing_external
        items = await self.client.list_catalog_items(exhaustive=True)
        catalog: Dict[str, CatalogItem] = {item.id: item for item in items}

        variation_ids = [p.external_variation_id for p in linked]
        counts = await self.client.get_inventory_counts(variation_ids, self.client.location_id)
        inventory: Dict[str, int] = {}
        for count in counts:
            inventory[count.catalog_object_id] = inventory.get(count.catalog_object_id, 0) + count.quantity

        logger.info(
            f"Conflict sweep ({system.value}): {len(linked)} linked products, "
            f"{len(catalog)} catalog items, {len(counts)} inventory counts"
        )

        candidates: List[SyncConflictCreate] = []
        for product in linked:
            candidates.extend(self._compare_product(product, catalog.get(product.external_item_id), inventory, system))

        if full_sweep:
            tracked_ids = {p.external_item_id for p in linked}
            for item in items:
                if item.id not in tracked_ids:
                    candidates.append(self._missing_local(item, inventory, system))

        result = DetectionResult()
        for candidate in candidates:
            if await self._record(candidate):
                result.detected += 1
            else:
                result.skipped += 1

        result.conflicts = await self.conflicts.find_pending()
        logger.info(f"Conflict sweep finished: {result.detected} detected, {result.skipped} already pending")
        return result

    def _compare_product(
        self,
        product: ProductRead,
        item: Optional[CatalogItem],
        inventory: Dict[str, int],
        system: ExternalSystem,
    ) -> List[SyncConflictCreate]:
        subject = LocalSubject(product_id=product.id)
        local_state = SyncStateSnapshot(quantity=product.quantity, price=product.price_cents, name=product.name)

        if item is None:
            return [SyncConflictCreate(
                subject=subject,
                conflict_type=ConflictType.MISSING_EXTERNAL,
                system=system,
                local_state=local_state,
                external_state=ExternalStateSnapshot(system=system, quantity=0, price=0, name=DELETED_EXTERNALLY_NAME),
            )]

        external_state = ExternalStateSnapshot(
            system=system,
            quantity=inventory.get(product.external_variation_id, 0),
            price=item.price_cents or 0,
            name=item.name or "",
        )

        found = []
        if local_state.quantity != external_state.quantity:
            found.append(ConflictType.QUANTITY_MISMATCH)
        if local_state.price != external_state.price:
            found.append(ConflictType.PRICE_MISMATCH)

        return [
            SyncConflictCreate(
                subject=subject,
                conflict_type=conflict_type,
                system=system,
                local_state=local_state,
                external_state=external_state,
            )
            for conflict_type in found
        ]

    @staticmethod
    def _missing_local(item: CatalogItem, inventory: Dict[str, int], system: ExternalSystem) -> SyncConflictCreate:
        variation = item.first_variation
        return SyncConflictCreate(
            subject=ExternalOnlySubject(external_item_id=item.id),
            conflict_type=ConflictType.MISSING_LOCAL,
            system=system,
            local_state=SyncStateSnapshot(quantity=0, price=0, name=NOT_TRACKED_LOCALLY_NAME),
            external_state=ExternalStateSnapshot(
                system=system,
                quantity=inventory.get(variation.id, 0) if variation else 0,
                price=item.price_cents or 0,
                name=item.name or "",
            ),
        )

    async def _record(self, candidate: SyncConflictCreate) -> bool:
        """Create the conflict unless one is already pending. Returns True when created."""
        existing = await self.conflicts.find_existing(candidate.subject, candidate.conflict_type, candidate.system)
        if existing is not None:
            return False

        try:
            await self.conflicts.create(candidate)
        except DuplicatePendingConflictError:
            # Lost a race with a concurrent sweep
            logger.warning(f"{candidate.conflict_type.value} for {candidate.subject.key} was recorded concurrently")
            return False
        return True

# catalog_sync/services/catalog_reconciler.py
"""
Folds Square catalog changes into the local product cache.

Two entry points:

- ``sync_item``: a notification named one catalog object. Fetch it fresh and
  apply it to the matching product, or create a draft product when nothing
  local links to it yet.
- ``rescan``: ``catalog.version.updated`` normally says only that *something*
  changed. List the whole catalog and apply every item.

Every apply re-reads Square rather than diffing the notification payload, so
replaying a notification, or receiving them out of order, converges on the
same cache state.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from catalog_sync.core.enums import ProductStatus, ReconcileAction
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.repositories.base import ProductStore
from catalog_sync.schemas.product import CacheUpdate, ExternalLink, ProductDraft, ProductRead
from catalog_sync.schemas.square import CatalogItem
from catalog_sync.schemas.webhook import CatalogVersionUpdatedEvent, WebhookResult

logger = logging.getLogger(__name__)

TRACKED_OBJECT_TYPE = "ITEM"
UNNAMED_PRODUCT_NAME = "Unnamed Product"


@dataclass
class CatalogSyncReport:
    """Tally of a full catalog rescan."""
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def as_details(self) -> str:
        return (f"Catalog rescan: {self.created} created, {self.updated} updated, "
                f"{self.skipped} skipped, {self.failed} failed")

    def to_dict(self) -> Dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": list(self.errors),
        }


class CatalogReconciler:

    def __init__(self, products: ProductStore, client: ExternalCatalogClient):
        self.products = products
        self.client = client

    async def handle_event(self, event: CatalogVersionUpdatedEvent) -> WebhookResult:
        if event.item_id:
            return await self.sync_item(event.item_id)

        report = await self.rescan()
        return WebhookResult(action=ReconcileAction.SYNCED, details=report.as_details())

    async def sync_item(self, item_id: str) -> WebhookResult:
        """Fetch one catalog object and fold it into the local store."""
        item = await self.client.get_catalog_item(item_id)
        if item is None:
            logger.info(f"Catalog object {item_id} not found in {self.client.system.value}; skipping")
            return WebhookResult(action=ReconcileAction.SKIPPED, details=f"Catalog object {item_id} not found")

        existing = await self.products.find_by_external_item_id(item.id)
        return await self.apply_item(item, existing)

    async def apply_item(self, item: CatalogItem, existing: Optional[ProductRead]) -> WebhookResult:
        if item.type != TRACKED_OBJECT_TYPE:
            return WebhookResult(
                action=ReconcileAction.SKIPPED,
                details=f"Catalog object {item.id} is {item.type}, not {TRACKED_OBJECT_TYPE}",
            )

        if existing is None:
            return await self._create_draft(item)

        updated = await self.products.update_cache(existing.id, self._cache_update(item), new_version=item.version)
        logger.info(f"Refreshed cache of product {updated.id} from catalog item {item.id} (version {item.version})")
        return WebhookResult(
            action=ReconcileAction.UPDATED,
            details=f"Updated product {updated.id} from catalog item {item.id}",
        )

    async def _create_draft(self, item: CatalogItem) -> WebhookResult:
        variation = item.first_variation
        if variation is None:
            return WebhookResult(
                action=ReconcileAction.SKIPPED,
                details=f"Catalog item {item.id} has no variations",
            )

        # No owner: a person has to assign the artist before it goes live
        draft = ProductDraft(
            name=item.name or UNNAMED_PRODUCT_NAME,
            description=item.description,
            price_cents=variation.price_cents or 0,
            quantity=0,
            sku=variation.sku,
            image_url=item.image_url,
            status=ProductStatus.DRAFT,
        )
        link = ExternalLink(
            item_id=item.id,
            variation_id=variation.id,
            catalog_version=item.version,
            location_id=self.client.location_id or None,
        )
        product = await self.products.create(draft, link)
        logger.info(f"Created draft product {product.id} for unlinked catalog item {item.id} ('{item.name}')")
        return WebhookResult(
            action=ReconcileAction.CREATED,
            details=f"Created draft product {product.id} from catalog item {item.id}",
        )

    @staticmethod
    def _cache_update(item: CatalogItem) -> CacheUpdate:
        variation = item.first_variation
        return CacheUpdate(
            name=item.name,
            description=item.description,
            price_cents=item.price_cents,
            sku=variation.sku if variation else None,
            image_url=item.image_url,
        )

    async def rescan(self) -> CatalogSyncReport:
        """
        Apply every catalog item to the local store.

        A failure on one item is logged and counted and the rest still run.
        Failing to list the catalog at all propagates.
        """
        items = await self.client.list_catalog_items()

        tracked: Dict[str, ProductRead] = {
            p.external_item_id: p for p in await self.products.find_all() if p.is_linked
        }
        new_count = sum(1 for item in items if item.id not in tracked)
        logger.info(f"Catalog rescan: {len(items)} items, {len(items) - new_count} tracked, {new_count} new")

        report = CatalogSyncReport()
        for item in items:
            try:
                result = await self.apply_item(item, tracked.get(item.id))
            except Exception as e:
                report.failed += 1
                report.errors.append(f"{item.id}: {e}")
                logger.exception(f"Failed to reconcile catalog item {item.id}: {e}")
                continue

            if result.action == ReconcileAction.CREATED:
                report.created += 1
            elif result.action == ReconcileAction.UPDATED:
                report.updated += 1
            else:
                report.skipped += 1

        logger.info(report.as_details())
        return report

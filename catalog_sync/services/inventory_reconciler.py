# catalog_sync/services/inventory_reconciler.py
"""
Applies ``inventory.count.updated`` notifications to the cached quantity.

Counts carry no version token, so the newest delivery simply wins. Variations
we don't track are skipped rather than treated as errors.
"""

import logging
from typing import List

from catalog_sync.core.enums import InventoryState, ReconcileAction
from catalog_sync.core.utils import parse_quantity
from catalog_sync.repositories.base import ProductStore
from catalog_sync.schemas.webhook import InventoryCount, InventoryCountUpdatedEvent, WebhookResult

logger = logging.getLogger(__name__)


class InventoryReconciler:

    def __init__(self, products: ProductStore):
        self.products = products

    async def handle_event(self, event: InventoryCountUpdatedEvent) -> WebhookResult:
        counts = event.counts
        if not counts:
            return WebhookResult(action=ReconcileAction.SKIPPED, details="No inventory counts in payload")

        results: List[WebhookResult] = [await self.apply_count(count) for count in counts]
        if len(results) == 1:
            return results[0]

        updated = sum(1 for r in results if r.action == ReconcileAction.UPDATED)
        action = ReconcileAction.UPDATED if updated else ReconcileAction.SKIPPED
        return WebhookResult(action=action, details="; ".join(r.details for r in results))

    async def apply_count(self, count: InventoryCount) -> WebhookResult:
        variation_id = count.catalog_object_id
        if not variation_id:
            return WebhookResult(action=ReconcileAction.SKIPPED, details="Inventory count has no catalog_object_id")

        # Only the IN_STOCK bucket mirrors the cached quantity. Keep in line with
        # SquareClient.get_inventory_counts, which the conflict detector reads and
        # which requests IN_STOCK counts only.
        if count.state and count.state != InventoryState.IN_STOCK.value:
            return WebhookResult(
                action=ReconcileAction.SKIPPED,
                details=f"Ignoring {count.state} count for variation {variation_id}",
            )

        product = await self.products.find_by_external_variation_id(variation_id)
        if product is None:
            logger.info(f"No product found for variation {variation_id}; skipping inventory update")
            return WebhookResult(
                action=ReconcileAction.SKIPPED,
                details=f"No product found for variation {variation_id}",
            )

        quantity = parse_quantity(count.quantity)
        await self.products.update_quantity(product.id, quantity)
        logger.info(f"Product {product.id} quantity {product.quantity} -> {quantity} (variation {variation_id})")
        return WebhookResult(
            action=ReconcileAction.UPDATED,
            details=f"Updated product {product.id} quantity to {quantity}",
        )

"""
Dispatches authenticated Square notifications to the reconcilers.

Signature checks happen in the route before anything gets here. Once an event
is authenticated the sender always gets a 200: skipped events, unknown event
types and external-system failures all come back as a ``WebhookResult`` so
Square does not retry into a storm. The periodic conflict sweep catches
whatever a failed delivery missed. Only unexpected errors propagate.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from catalog_sync.core.enums import ReconcileAction
from catalog_sync.core.exceptions import ExternalSystemError
from catalog_sync.schemas.webhook import (
    CatalogVersionUpdatedEvent,
    InventoryCountUpdatedEvent,
    SquareWebhookEvent,
    WebhookResult,
    parse_webhook_event,
)
from catalog_sync.services.catalog_reconciler import CatalogReconciler
from catalog_sync.services.inventory_reconciler import InventoryReconciler

logger = logging.getLogger(__name__)


class WebhookProcessor:

    def __init__(self, catalog: CatalogReconciler, inventory: InventoryReconciler):
        self.catalog = catalog
        self.inventory = inventory

    async def process_payload(self, payload: Dict[str, Any]) -> Tuple[Optional[SquareWebhookEvent], WebhookResult]:
        """Parse a decoded body and process it. Malformed envelopes are skipped, not rejected."""
        try:
            event = parse_webhook_event(payload)
        except PydanticValidationError as e:
            logger.warning(f"Malformed webhook payload: {e}")
            return None, WebhookResult(action=ReconcileAction.SKIPPED, details="Malformed webhook payload")

        return event, await self.process(event)

    async def process(self, event: SquareWebhookEvent) -> WebhookResult:
        logger.info(f"Processing Square webhook {event.event_id} ({event.type})")

        try:
            if isinstance(event, CatalogVersionUpdatedEvent):
                result = await self.catalog.handle_event(event)
            elif isinstance(event, InventoryCountUpdatedEvent):
                result = await self.inventory.handle_event(event)
            else:
                result = WebhookResult(
                    action=ReconcileAction.SKIPPED,
                    details=f"Unhandled event type: {event.type}",
                )
        except ExternalSystemError as e:
            logger.error(f"External system error while processing webhook {event.event_id}: {e}")
            result = WebhookResult(action=ReconcileAction.FAILED, details=str(e))

        logger.info(f"Webhook {event.event_id}: {result.action.value} - {result.details}")
        return result

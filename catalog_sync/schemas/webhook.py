"""
Square webhook envelopes.

Every notification shares the same envelope; ``type`` decides which model
the payload is parsed into. Types we don't act on become ``UnhandledEvent``.
"""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from catalog_sync.core.enums import ReconcileAction, SquareEventType


class WebhookData(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    id: Optional[str] = None
    object: Optional[Dict[str, Any]] = None


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    merchant_id: Optional[str] = None
    type: str
    event_id: Optional[str] = None
    created_at: Optional[str] = None
    data: WebhookData = Field(default_factory=WebhookData)


class InventoryCount(BaseModel):
    model_config = ConfigDict(extra="allow")

    catalog_object_id: Optional[str] = None
    quantity: Optional[str] = None  # decimal string, e.g. "9"
    location_id: Optional[str] = None
    state: Optional[str] = None


class CatalogVersionUpdatedEvent(WebhookEnvelope):
    type: Literal["catalog.version.updated"]

    @property
    def item_id(self) -> Optional[str]:
        # Square usually omits the id and only says "the catalog changed"
        return self.data.id or None


class InventoryCountUpdatedEvent(WebhookEnvelope):
    type: Literal["inventory.count.updated"]

    @property
    def counts(self) -> List[InventoryCount]:
        obj = self.data.object or {}
        raw_counts = obj.get("inventory_counts")
        if raw_counts is None and "catalog_object_id" in obj:
            # Single count sent inline
            raw_counts = [obj]
        return [InventoryCount.model_validate(c) for c in (raw_counts or []) if isinstance(c, dict)]


class UnhandledEvent(WebhookEnvelope):
    pass


SquareWebhookEvent = Union[CatalogVersionUpdatedEvent, InventoryCountUpdatedEvent, UnhandledEvent]

EVENT_MODELS = {
    SquareEventType.CATALOG_VERSION_UPDATED.value: CatalogVersionUpdatedEvent,
    SquareEventType.INVENTORY_COUNT_UPDATED.value: InventoryCountUpdatedEvent,
}


def parse_webhook_event(payload: Dict[str, Any]) -> SquareWebhookEvent:
    """
    Parse a decoded webhook body into its event model.

    Raises pydantic.ValidationError when the envelope itself is malformed.
    """
    event_type = payload.get("type") if isinstance(payload, dict) else None
    # Non-string types fall through to UnhandledEvent, which rejects them
    model = EVENT_MODELS.get(event_type, UnhandledEvent) if isinstance(event_type, str) else UnhandledEvent
    return model.model_validate(payload)


class WebhookResult(BaseModel):
    action: ReconcileAction
    details: str


class WebhookResponse(BaseModel):
    received: bool = True
    event_id: Optional[str] = None
    action: ReconcileAction
    details: str

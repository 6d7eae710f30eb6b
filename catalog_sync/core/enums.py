"""
Shared enums and constants used across the application.
"""

from enum import Enum


class ProductStatus(str, Enum):
    """Product status values used in both models and schemas"""
    DRAFT = "draft"
    ACTIVE = "active"
    DISCONTINUED = "discontinued"


class ExternalSystem(str, Enum):
    SQUARE = "square"

    @property
    def display_name(self):
        return self.value.capitalize()


class ConflictType(str, Enum):
    QUANTITY_MISMATCH = "quantity_mismatch"
    PRICE_MISMATCH = "price_mismatch"
    MISSING_EXTERNAL = "missing_external"   # linked locally, gone from the external catalog
    MISSING_LOCAL = "missing_local"         # external item nobody tracks locally


class ConflictStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class ConflictResolution(str, Enum):
    USE_LOCAL = "use_local"
    USE_EXTERNAL = "use_external"
    MANUAL = "manual"
    IGNORED = "ignored"


class ReconcileAction(str, Enum):
    """Outcome reported back for each webhook delivery"""
    CREATED = "created"
    UPDATED = "updated"
    SYNCED = "synced"
    SKIPPED = "skipped"
    FAILED = "failed"


class SquareEventType(str, Enum):
    CATALOG_VERSION_UPDATED = "catalog.version.updated"
    INVENTORY_COUNT_UPDATED = "inventory.count.updated"


class InventoryState(str, Enum):
    IN_STOCK = "IN_STOCK"
    SOLD = "SOLD"
    WASTE = "WASTE"
    NONE = "NONE"

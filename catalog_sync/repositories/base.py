"""
Store interfaces used by the reconciliation services.

The SQLAlchemy repositories implement these against Postgres; tests swap in
in-memory versions.
"""
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from catalog_sync.core.enums import ConflictResolution, ConflictType, ExternalSystem
from catalog_sync.schemas.product import CacheUpdate, ExternalLink, ProductDraft, ProductRead
from catalog_sync.schemas.sync_conflict import (
    ConflictSubject,
    SyncConflictCreate,
    SyncConflictFilters,
    SyncConflictRead,
    SyncConflictSummary,
)


class ProductStore(ABC):

    @abstractmethod
    async def find_all(self, product_ids: Optional[Iterable[int]] = None) -> List[ProductRead]:
        pass

    @abstractmethod
    async def find_by_id(self, product_id: int) -> Optional[ProductRead]:
        pass

    @abstractmethod
    async def find_by_external_item_id(self, item_id: str) -> Optional[ProductRead]:
        pass

    @abstractmethod
    async def find_by_external_variation_id(self, variation_id: str) -> Optional[ProductRead]:
        pass

    @abstractmethod
    async def create(self, draft: ProductDraft, link: ExternalLink) -> ProductRead:
        pass

    @abstractmethod
    async def update_cache(
        self,
        product_id: int,
        cache: CacheUpdate,
        new_version: Optional[int] = None,
    ) -> ProductRead:
        """Overwrite the given cache fields and stamp ``synced_at``. Never touches owner or status."""
        pass

    @abstractmethod
    async def update_quantity(self, product_id: int, quantity: int) -> ProductRead:
        pass


class ConflictStore(ABC):

    @abstractmethod
    async def find_all(self, filters: Optional[SyncConflictFilters] = None) -> List[SyncConflictRead]:
        pass

    @abstractmethod
    async def find_pending(self) -> List[SyncConflictRead]:
        pass

    @abstractmethod
    async def find_by_id(self, conflict_id: int) -> Optional[SyncConflictRead]:
        pass

    @abstractmethod
    async def find_existing(
        self,
        subject: ConflictSubject,
        conflict_type: ConflictType,
        system: ExternalSystem,
    ) -> Optional[SyncConflictRead]:
        """The pending conflict for this triple, if any"""
        pass

    @abstractmethod
    async def create(self, data: SyncConflictCreate) -> SyncConflictRead:
        """Raises DuplicatePendingConflictError if a pending conflict already exists for the triple"""
        pass

    @abstractmethod
    async def resolve(
        self,
        conflict_id: int,
        resolution: ConflictResolution,
        resolved_by: str,
        notes: Optional[str] = None,
    ) -> SyncConflictRead:
        """
        Close a pending conflict.

        Raises ConflictNotFoundError, or FailedPreconditionError if it is no longer pending.
        """
        pass

    @abstractmethod
    async def get_summary(self) -> SyncConflictSummary:
        pass

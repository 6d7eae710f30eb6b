"""
Schemas for sync conflicts.

A conflict's subject is either a local product or, for ``missing_local``,
an external item that has no local counterpart. The two are kept as a tagged
union so neither case has to pretend to carry an id it doesn't have.
"""
from datetime import datetime
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from catalog_sync.core.enums import (
    ConflictResolution,
    ConflictStatus,
    ConflictType,
    ExternalSystem,
)


class LocalSubject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    product_id: int

    @property
    def key(self) -> str:
        return f"product:{self.product_id}"


class ExternalOnlySubject(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["external_only"] = "external_only"
    external_item_id: str

    @property
    def key(self) -> str:
        return f"external:{self.external_item_id}"


ConflictSubject = Annotated[Union[LocalSubject, ExternalOnlySubject], Field(discriminator="kind")]


class SyncStateSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    quantity: int
    price: int  # cents
    name: str


class ExternalStateSnapshot(SyncStateSnapshot):
    system: ExternalSystem


class SyncConflictCreate(BaseModel):
    subject: ConflictSubject
    conflict_type: ConflictType
    system: ExternalSystem
    local_state: SyncStateSnapshot
    external_state: ExternalStateSnapshot


class SyncConflictRead(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    subject: ConflictSubject
    conflict_type: ConflictType
    system: ExternalSystem
    status: ConflictStatus
    detected_at: datetime
    local_state: SyncStateSnapshot
    external_state: ExternalStateSnapshot
    resolution: Optional[ConflictResolution] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def product_id(self) -> Optional[int]:
        return self.subject.product_id if isinstance(self.subject, LocalSubject) else None

    @property
    def external_item_id(self) -> Optional[str]:
        return self.subject.external_item_id if isinstance(self.subject, ExternalOnlySubject) else None


class SyncConflictFilters(BaseModel):
    status: Optional[ConflictStatus] = None
    conflict_type: Optional[ConflictType] = None
    system: Optional[ExternalSystem] = None
    product_id: Optional[int] = None
    external_item_id: Optional[str] = None


class SyncConflictSummary(BaseModel):
    pending: int = 0
    resolved: int = 0   # resolved with anything other than "ignored"
    ignored: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)     # pending only
    by_system: Dict[str, int] = Field(default_factory=dict)   # pending only

    @classmethod
    def empty(cls) -> "SyncConflictSummary":
        return cls(
            by_type={t.value: 0 for t in ConflictType},
            by_system={s.value: 0 for s in ExternalSystem},
        )


# --- API payloads ---

class DetectSyncConflictsRequest(BaseModel):
    system: ExternalSystem = ExternalSystem.SQUARE
    product_ids: Optional[List[int]] = None


class DetectSyncConflictsResponse(BaseModel):
    detected: int
    updated: int
    conflicts: List[SyncConflictRead]


class ResolveSyncConflictRequest(BaseModel):
    conflict_id: int
    resolution: ConflictResolution
    notes: Optional[str] = None


class ResolveSyncConflictResponse(BaseModel):
    conflict: SyncConflictRead


class SyncConflictListResponse(BaseModel):
    conflicts: List[SyncConflictRead]


class SyncConflictSummaryResponse(BaseModel):
    summary: SyncConflictSummary

# catalog_sync/routes/sync_conflicts.py
"""
Admin endpoints for the conflict sweep and conflict resolution.

Errors carry the exact field or precondition that failed; an operator reads
them straight off the screen.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from catalog_sync.core.enums import ConflictStatus, ConflictType, ExternalSystem
from catalog_sync.core.exceptions import (
    BaseServiceError,
    ExternalSystemError,
    FailedPreconditionError,
    NotFoundError,
    ValidationError,
)
from catalog_sync.core.security import get_current_username
from catalog_sync.dependencies import (
    get_catalog_reconciler,
    get_conflict_detector,
    get_conflict_resolver,
    get_conflict_store,
)
from catalog_sync.repositories.base import ConflictStore
from catalog_sync.schemas.sync_conflict import (
    DetectSyncConflictsRequest,
    DetectSyncConflictsResponse,
    ResolveSyncConflictRequest,
    ResolveSyncConflictResponse,
    SyncConflictFilters,
    SyncConflictListResponse,
    SyncConflictSummaryResponse,
)
from catalog_sync.services.catalog_reconciler import CatalogReconciler
from catalog_sync.services.conflict_detector import ConflictDetector
from catalog_sync.services.conflict_resolver import ConflictResolver

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync-conflicts", tags=["sync-conflicts"])


def to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, FailedPreconditionError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ExternalSystemError):
        return HTTPException(status_code=502, detail=f"External system error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@router.get("", response_model=SyncConflictListResponse)
async def get_sync_conflicts(
    status: Optional[ConflictStatus] = Query(None),
    conflict_type: Optional[ConflictType] = Query(None, alias="type"),
    system: Optional[ExternalSystem] = Query(None),
    product_id: Optional[int] = Query(None),
    external_item_id: Optional[str] = Query(None),
    conflicts: ConflictStore = Depends(get_conflict_store),
    _: str = Depends(get_current_username),
):
    filters = SyncConflictFilters(
        status=status,
        conflict_type=conflict_type,
        system=system,
        product_id=product_id,
        external_item_id=external_item_id,
    )
    return SyncConflictListResponse(conflicts=await conflicts.find_all(filters))


@router.get("/summary", response_model=SyncConflictSummaryResponse)
async def get_sync_conflict_summary(
    conflicts: ConflictStore = Depends(get_conflict_store),
    _: str = Depends(get_current_username),
):
    return SyncConflictSummaryResponse(summary=await conflicts.get_summary())


@router.post("/detect", response_model=DetectSyncConflictsResponse)
async def detect_sync_conflicts(
    request: DetectSyncConflictsRequest,
    detector: ConflictDetector = Depends(get_conflict_detector),
    username: str = Depends(get_current_username),
):
    """Sweep linked products against the external catalog"""
    logger.info(f"Conflict sweep requested by {username}")
    try:
        result = await detector.detect(system=request.system, product_ids=request.product_ids)
    except (BaseServiceError, ExternalSystemError) as e:
        logger.error(f"Conflict sweep failed: {e}")
        raise to_http_error(e)

    return DetectSyncConflictsResponse(
        detected=result.detected,
        updated=result.skipped,
        conflicts=result.conflicts,
    )


@router.post("/resolve", response_model=ResolveSyncConflictResponse)
async def resolve_sync_conflict(
    request: ResolveSyncConflictRequest,
    resolver: ConflictResolver = Depends(get_conflict_resolver),
    username: str = Depends(get_current_username),
):
    try:
        conflict = await resolver.resolve(
            conflict_id=request.conflict_id,
            resolution=request.resolution,
            resolved_by=username,
            notes=request.notes,
        )
    except (BaseServiceError, ExternalSystemError) as e:
        logger.warning(f"Could not resolve conflict {request.conflict_id}: {e}")
        raise to_http_error(e)

    return ResolveSyncConflictResponse(conflict=conflict)


@router.post("/rescan")
async def rescan_catalog(
    reconciler: CatalogReconciler = Depends(get_catalog_reconciler),
    username: str = Depends(get_current_username),
):
    """Run the full catalog rescan that catalog.version.updated triggers"""
    logger.info(f"Catalog rescan requested by {username}")
    try:
        report = await reconciler.rescan()
    except ExternalSystemError as e:
        raise to_http_error(e)
    return report.to_dict()

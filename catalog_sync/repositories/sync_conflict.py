"""
Postgres-backed ConflictStore.

Resolved rows are never updated again: ``resolve`` only matches rows that are
still pending, so a second resolution of the same conflict changes nothing.
"""
import logging
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.enums import ConflictResolution, ConflictStatus, ConflictType, ExternalSystem
from catalog_sync.core.exceptions import (
    ConflictNotFoundError,
    DuplicatePendingConflictError,
    FailedPreconditionError,
)
from catalog_sync.core.utils import utc_now
from catalog_sync.models.sync_conflict import SyncConflict
from catalog_sync.repositories.base import ConflictStore
from catalog_sync.schemas.sync_conflict import (
    ConflictSubject,
    ExternalOnlySubject,
    LocalSubject,
    SyncConflictCreate,
    SyncConflictFilters,
    SyncConflictRead,
    SyncConflictSummary,
)

logger = logging.getLogger(__name__)


def conflict_to_schema(row: SyncConflict) -> SyncConflictRead:
    if row.product_id is not None:
        subject = LocalSubject(product_id=row.product_id)
    else:
        subject = ExternalOnlySubject(external_item_id=row.external_item_id)

    return SyncConflictRead(
        id=row.id,
        subject=subject,
        conflict_type=row.conflict_type,
        system=row.system,
        status=row.status,
        detected_at=row.detected_at,
        local_state=row.local_state,
        external_state=row.external_state,
        resolution=row.resolution,
        resolved_by=row.resolved_by,
        resolved_at=row.resolved_at,
        notes=row.notes,
    )


class SyncConflictRepository(ConflictStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self, filters: Optional[SyncConflictFilters] = None) -> List[SyncConflictRead]:
        query = select(SyncConflict).order_by(SyncConflict.detected_at.desc(), SyncConflict.id.desc())

        if filters:
            if filters.status:
                query = query.where(SyncConflict.status == filters.status.value)
            if filters.conflict_type:
                query = query.where(SyncConflict.conflict_type == filters.conflict_type.value)
            if filters.system:
                query = query.where(SyncConflict.system == filters.system.value)
            if filters.product_id is not None:
                query = query.where(SyncConflict.product_id == filters.product_id)
            if filters.external_item_id:
                query = query.where(SyncConflict.external_item_id == filters.external_item_id)

        result = await self.db.execute(query)
        return [conflict_to_schema(row) for row in result.scalars().all()]

    async def find_pending(self) -> List[SyncConflictRead]:
        return await self.find_all(SyncConflictFilters(status=ConflictStatus.PENDING))

    async def find_by_id(self, conflict_id: int) -> Optional[SyncConflictRead]:
        row = await self.db.get(SyncConflict, conflict_id)
        return conflict_to_schema(row) if row else None

    async def find_existing(
        self,
        subject: ConflictSubject,
        conflict_type: ConflictType,
        system: ExternalSystem,
    ) -> Optional[SyncConflictRead]:
        query = (
            select(SyncConflict)
            .where(
                SyncConflict.subject_key == subject.key,
                SyncConflict.conflict_type == conflict_type.value,
                SyncConflict.system == system.value,
                SyncConflict.status == ConflictStatus.PENDING.value,
            )
            .limit(1)
        )
        result = await self.db.execute(query)
        row = result.scalar_one_or_none()
        return conflict_to_schema(row) if row else None

    async def create(self, data: SyncConflictCreate) -> SyncConflictRead:
        subject = data.subject
        row = SyncConflict(
            subject_key=subject.key,
            product_id=subject.product_id if isinstance(subject, LocalSubject) else None,
            external_item_id=subject.external_item_id if isinstance(subject, ExternalOnlySubject) else None,
            conflict_type=data.conflict_type.value,
            system=data.system.value,
            status=ConflictStatus.PENDING.value,
            local_state=data.local_state.model_dump(mode="json"),
            external_state=data.external_state.model_dump(mode="json"),
            detected_at=utc_now(),
        )
        self.db.add(row)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Partial unique index on pending (subject, type, system)
            await self.db.rollback()
            raise DuplicatePendingConflictError(
                f"A pending {data.conflict_type.value} conflict already exists for {subject.key} "
                f"on {data.system.value}"
            ) from e

        await self.db.refresh(row)
        logger.info(f"Recorded {row.conflict_type} conflict {row.id} for {row.subject_key}")
        return conflict_to_schema(row)

    async def resolve(
        self,
        conflict_id: int,
        resolution: ConflictResolution,
        resolved_by: str,
        notes: Optional[str] = None,
    ) -> SyncConflictRead:
        stmt = (
            update(SyncConflict)
            .where(
                SyncConflict.id == conflict_id,
                SyncConflict.status == ConflictStatus.PENDING.value,
            )
            .values(
                status=ConflictStatus.RESOLVED.value,
                resolution=resolution.value,
                resolved_by=resolved_by,
                resolved_at=utc_now(),
                notes=notes,
            )
            .returning(SyncConflict)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()

        if row is None:
            await self.db.rollback()
            existing = await self.db.get(SyncConflict, conflict_id)
            if existing is None:
                raise ConflictNotFoundError(conflict_id)
            raise FailedPreconditionError(
                f"Conflict {conflict_id} is already {existing.status}. Cannot resolve again."
            )

        await self.db.commit()
        return conflict_to_schema(row)

    async def get_summary(self) -> SyncConflictSummary:
        summary = SyncConflictSummary.empty()

        status_rows = await self.db.execute(
            select(SyncConflict.status, SyncConflict.resolution, func.count(SyncConflict.id))
            .group_by(SyncConflict.status, SyncConflict.resolution)
        )
        for status, resolution, count in status_rows.all():
            if status == ConflictStatus.PENDING.value:
                summary.pending += count
            elif resolution == ConflictResolution.IGNORED.value:
                summary.ignored += count
            else:
                summary.resolved += count

        pending_rows = await self.db.execute(
            select(SyncConflict.conflict_type, SyncConflict.system, func.count(SyncConflict.id))
            .where(SyncConflict.status == ConflictStatus.PENDING.value)
            .group_by(SyncConflict.conflict_type, SyncConflict.system)
        )
        for conflict_type, system, count in pending_rows.all():
            summary.by_type[conflict_type] = summary.by_type.get(conflict_type, 0) + count
            summary.by_system[system] = summary.by_system.get(system, 0) + count

        return summary

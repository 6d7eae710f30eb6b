# catalog_sync/models/sync_conflict.py
from sqlalchemy import Column, Integer, String, Text, JSON, TIMESTAMP, Index, text

from catalog_sync.database import Base


class SyncConflict(Base):
    """
    A divergence between a local product and the external catalog.

    Rows are an audit trail: once resolved they are never changed, and a
    recurrence of the same divergence creates a new row. There is no foreign
    key to ``products`` so conflicts survive product deletion.
    """
    __tablename__ = "sync_conflicts"
    __table_args__ = (
        # One pending conflict per (subject, type, system)
        Index(
            "uq_sync_conflicts_pending_subject",
            "subject_key", "conflict_type", "system",
            unique=True,
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)

    # --- Subject ---
    # "product:<id>" or "external:<item id>"
    subject_key = Column(String, nullable=False, index=True)
    product_id = Column(Integer, nullable=True, index=True)
    external_item_id = Column(String, nullable=True, index=True)

    conflict_type = Column(String, nullable=False, index=True)
    system = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)

    # --- Snapshots taken at detection ---
    local_state = Column(JSON, nullable=False)     # {"quantity", "price", "name"}
    external_state = Column(JSON, nullable=False)  # {"system", "quantity", "price", "name"}
    detected_at = Column(TIMESTAMP(timezone=True), server_default=text("timezone('utc', now())"), nullable=False)

    # --- Resolution ---
    resolution = Column(String, nullable=True)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(TIMESTAMP(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    def __repr__(self):
        return (f"<SyncConflict(id={self.id}, subject='{self.subject_key}', "
                f"type='{self.conflict_type}', system='{self.system}', status='{self.status}')>")

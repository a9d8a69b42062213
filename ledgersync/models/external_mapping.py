# ledgersync/models/external_mapping.py
from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint, Index
from sqlalchemy.sql import func

from ledgersync.database import Base
from ledgersync.core.enums import SyncStatus


class ExternalMapping(Base):
    """
    Links an internal record to its counterpart in an external provider.

    Within one (provider, entity_type) partition the mapping is a bijection:
    each internal id appears at most once and each external id appears at most
    once. Both halves are enforced by unique constraints so that the webhook
    and polling paths can race safely. Rows are never deleted; a provider-side
    deletion moves the mapping to the 'deleted' status.
    """
    __tablename__ = "external_mappings"

    id = Column(Integer, primary_key=True, index=True)

    provider = Column(String, nullable=False)
    entity_type = Column(String, nullable=False)
    internal_id = Column(String, nullable=False)
    external_id = Column(String, nullable=False)

    # --- Sync state ---
    sync_status = Column(String, default=SyncStatus.SYNCED.value, nullable=False, index=True)
    sync_error = Column(Text, nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('provider', 'entity_type', 'internal_id', name='uq_mapping_internal'),
        UniqueConstraint('provider', 'entity_type', 'external_id', name='uq_mapping_external'),
        Index('ix_mapping_partition', 'provider', 'entity_type'),
    )

    def __repr__(self):
        return (f"<ExternalMapping(provider='{self.provider}', entity_type='{self.entity_type}', "
                f"internal_id='{self.internal_id}', external_id='{self.external_id}', "
                f"status='{self.sync_status}')>")

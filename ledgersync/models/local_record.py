# ledgersync/models/local_record.py
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, JSON, Text
from sqlalchemy.sql import func

from ledgersync.database import Base
from ledgersync.core.enums import SyncStatus


def _new_id() -> str:
    return uuid.uuid4().hex


class LocalRecord(Base):
    """
    Internal business record (customer, product, invoice) as seen by the sync engine.
    The payload is kept opaque; field-level schemas belong to the owning CRUD surface.
    """
    __tablename__ = "local_records"

    id = Column(String, primary_key=True, default=_new_id)
    entity_type = Column(String, nullable=False, index=True)

    # Opaque entity body
    payload = Column(JSON, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)
    sync_status = Column(String, nullable=False, default=SyncStatus.PENDING.value, index=True)
    sync_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<LocalRecord(id='{self.id}', entity_type='{self.entity_type}', status='{self.sync_status}')>"

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ledgersync.core.enums import SyncStatus


class ExternalMappingRead(BaseModel):
    """Immutable snapshot of an external_mappings row."""
    id: int
    provider: str
    entity_type: str
    internal_id: str
    external_id: str
    sync_status: str = SyncStatus.SYNCED.value
    sync_error: Optional[str] = None
    last_sync_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class ExternalMappingCreate(BaseModel):
    provider: str
    entity_type: str
    internal_id: str
    external_id: str
    sync_status: str = SyncStatus.SYNCED.value
    last_sync_at: Optional[datetime] = None


class LocalRecordRead(BaseModel):
    id: str
    entity_type: str
    payload: Dict[str, Any] = {}
    is_active: bool = True
    sync_status: str = SyncStatus.PENDING.value
    sync_error: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class RemoteRecord(BaseModel):
    """A record as returned by a provider: its external id plus the opaque body."""
    external_id: str
    payload: Dict[str, Any] = {}


class SyncError(BaseModel):
    internal_id: Optional[str] = None
    external_id: Optional[str] = None
    error: str


class SyncResult(BaseModel):
    records_processed: int = 0
    errors: List[SyncError] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def merge(self, other: "SyncResult") -> "SyncResult":
        return SyncResult(
            records_processed=self.records_processed + other.records_processed,
            errors=[*self.errors, *other.errors],
        )

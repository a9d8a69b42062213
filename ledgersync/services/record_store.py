"""
Local Record Store

The internal side of a sync. Records are handed out as snapshots and updated by id.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.core.enums import SyncStatus
from ledgersync.models import LocalRecord
from ledgersync.schemas.sync import LocalRecordRead

logger = logging.getLogger(__name__)


class RecordStore:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, record_id: str) -> Optional[LocalRecordRead]:
        row = await self.db.get(LocalRecord, record_id, populate_existing=True)
        return LocalRecordRead.model_validate(row) if row else None

    async def create(
        self,
        entity_type: str,
        payload: Dict[str, Any],
        sync_status: str = SyncStatus.PENDING.value,
        is_active: bool = True,
    ) -> LocalRecordRead:
        row = LocalRecord(
            entity_type=entity_type,
            payload=dict(payload),
            sync_status=sync_status,
            sync_error=None,
            is_active=is_active,
        )
        self.db.add(row)
        await self.db.flush()
        return LocalRecordRead.model_validate(row)

    async def overwrite(self, record_id: str, payload: Dict[str, Any]) -> None:
        """Replace the payload with the remote version and mark the record synced and active."""
        await self._update(
            record_id,
            payload=dict(payload),
            is_active=True,
            sync_status=SyncStatus.SYNCED.value,
            sync_error=None,
        )

    async def mark_synced(self, record_id: str) -> None:
        await self._update(record_id, sync_status=SyncStatus.SYNCED.value, sync_error=None)

    async def mark_error(self, record_id: str, error: str) -> None:
        await self._update(record_id, sync_status=SyncStatus.ERROR.value, sync_error=error)

    async def deactivate(self, record_id: str) -> None:
        await self._update(record_id, is_active=False)

    async def list_pending_push(self, entity_type: str) -> List[LocalRecordRead]:
        """Active records of a type, oldest first. The executor narrows these by mapping state."""
        stmt = (
            select(LocalRecord)
            .where(LocalRecord.entity_type == entity_type, LocalRecord.is_active.is_(True))
            .order_by(LocalRecord.created_at, LocalRecord.id)
        )
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return [LocalRecordRead.model_validate(row) for row in result.scalars().all()]

    async def _update(self, record_id: str, **values) -> None:
        await self.db.execute(update(LocalRecord).where(LocalRecord.id == record_id).values(**values))

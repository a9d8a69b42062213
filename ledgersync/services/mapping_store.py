"""
Mapping Store

Persists the link between internal records and their provider counterparts.
Callers own the transaction: the store flushes but never commits.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.core.enums import SyncStatus
from ledgersync.core.exceptions import DuplicateMappingError
from ledgersync.core.utils import Clock, utc_now
from ledgersync.models import ExternalMapping
from ledgersync.schemas.sync import ExternalMappingCreate, ExternalMappingRead

logger = logging.getLogger(__name__)


class MappingStore:
    """Repository over the external_mappings table."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock

    async def find_by_external_id(self, provider: str, entity_type: str, external_id: str) -> Optional[ExternalMappingRead]:
        stmt = select(ExternalMapping).where(
            ExternalMapping.provider == provider,
            ExternalMapping.entity_type == entity_type,
            ExternalMapping.external_id == external_id,
        )
        return await self._one(stmt)

    async def find_by_internal_id(self, provider: str, entity_type: str, internal_id: str) -> Optional[ExternalMappingRead]:
        stmt = select(ExternalMapping).where(
            ExternalMapping.provider == provider,
            ExternalMapping.entity_type == entity_type,
            ExternalMapping.internal_id == internal_id,
        )
        return await self._one(stmt)

    async def list_for(self, provider: str, entity_type: str) -> List[ExternalMappingRead]:
        stmt = (
            select(ExternalMapping)
            .where(ExternalMapping.provider == provider, ExternalMapping.entity_type == entity_type)
            .order_by(ExternalMapping.id)
        )
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        return [ExternalMappingRead.model_validate(row) for row in result.scalars().all()]

    async def create(self, mapping: ExternalMappingCreate) -> ExternalMappingRead:
        """
        Insert a new mapping.

        The unique constraints on (provider, entity_type, internal_id) and
        (provider, entity_type, external_id) decide races between concurrent
        writers. On a violation the session is rolled back, which also discards
        anything else pending in the caller's transaction, and
        DuplicateMappingError is raised.
        """
        row = ExternalMapping(
            provider=mapping.provider,
            entity_type=mapping.entity_type,
            internal_id=mapping.internal_id,
            external_id=mapping.external_id,
            sync_status=mapping.sync_status,
            sync_error=None,
            last_sync_at=mapping.last_sync_at or self.clock(),
        )
        self.db.add(row)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                f"Duplicate mapping rejected for {mapping.provider}/{mapping.entity_type} "
                f"internal={mapping.internal_id} external={mapping.external_id}"
            )
            raise DuplicateMappingError(
                mapping.provider,
                mapping.entity_type,
                internal_id=mapping.internal_id,
                external_id=mapping.external_id,
            ) from e

        return ExternalMappingRead.model_validate(row)

    async def update_sync_state(
        self,
        mapping: ExternalMappingRead,
        status: str,
        error: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> ExternalMappingRead:
        """Set status/error and refresh last_sync_at. Error text is cleared on success."""
        status = SyncStatus(status).value
        values = {
            "sync_status": status,
            "sync_error": error if status != SyncStatus.SYNCED.value else None,
            "last_sync_at": timestamp or self.clock(),
        }
        await self.db.execute(
            update(ExternalMapping).where(ExternalMapping.id == mapping.id).values(**values)
        )
        return mapping.model_copy(update=values)

    async def _one(self, stmt) -> Optional[ExternalMappingRead]:
        result = await self.db.execute(stmt.execution_options(populate_existing=True))
        row = result.scalar_one_or_none()
        return ExternalMappingRead.model_validate(row) if row else None

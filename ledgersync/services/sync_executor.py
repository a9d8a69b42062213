"""
Sync Executor

Moves records between the local store and a provider for one
(provider, entity_type) pair.

Pull: remote always wins. Each remote record is matched by external id and
either overwrites the local payload or creates a local record plus mapping.
Push: active local records that are unmapped, or whose record or mapping is
not 'synced', are sent to the provider; mappings in 'deleted' state are left
alone. Each record is committed on its own so that one failure never undoes
the rest of the batch.
"""

import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledgersync.core.enums import SyncDirection, SyncStatus, WebhookOperation
from ledgersync.core.exceptions import (
    DuplicateMappingError,
    LedgerSyncError,
    ProviderError,
)
from ledgersync.core.utils import Clock, utc_now
from ledgersync.integrations.base import ProviderClient
from ledgersync.integrations.registry import ProviderRegistry
from ledgersync.schemas.sync import (
    ExternalMappingCreate,
    ExternalMappingRead,
    RemoteRecord,
    SyncError,
    SyncResult,
)
from ledgersync.services.error_tracking import ErrorTracker
from ledgersync.services.mapping_store import MappingStore
from ledgersync.services.monitoring import MonitoringService
from ledgersync.services.record_store import RecordStore

logger = logging.getLogger(__name__)


class SyncExecutor:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        registry: ProviderRegistry,
        monitoring: Optional[MonitoringService] = None,
        error_tracker: Optional[ErrorTracker] = None,
        clock: Clock = utc_now,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.monitoring = monitoring
        self.error_tracker = error_tracker or ErrorTracker(clock=clock)
        self.clock = clock

    async def sync(self, provider: str, entity_type: str, direction=SyncDirection.BIDIRECTIONAL, report: bool = True) -> SyncResult:
        """
        Run one pass. Whole-pass failures (e.g. fetch_all unavailable) propagate.

        With report=True the pass is recorded to monitoring; the scheduler
        passes report=False and records the run as a whole instead.
        """
        direction = SyncDirection(direction)
        client = self.registry.get(provider)
        started = time.monotonic()
        result = SyncResult()

        logger.info(f"Starting {direction.value} sync for {provider}/{entity_type}")
        try:
            if direction in (SyncDirection.PULL, SyncDirection.BIDIRECTIONAL):
                result = result.merge(await self._pull(client, provider, entity_type))
            if direction in (SyncDirection.PUSH, SyncDirection.BIDIRECTIONAL):
                result = result.merge(await self._push(client, provider, entity_type))
        except LedgerSyncError as e:
            if report and self.monitoring:
                self.monitoring.record_sync_job(provider, False, self._elapsed_ms(started), error=str(e))
            raise

        logger.info(
            f"Finished {direction.value} sync for {provider}/{entity_type}: "
            f"{result.records_processed} processed, {len(result.errors)} errors"
        )
        if report and self.monitoring:
            self.monitoring.record_sync_job(
                provider,
                not result.errors,
                self._elapsed_ms(started),
                records_processed=result.records_processed,
                error=result.errors[0].error if result.errors else None,
            )
        return result

    async def sync_entity(self, provider: str, entity_type: str, external_id: str, operation: str) -> SyncResult:
        """Single-record pull driven by a webhook. Delete deactivates instead of fetching."""
        client = self.registry.get(provider)
        operation = (operation or "").strip().lower()

        async with self.session_factory() as session:
            mappings = MappingStore(session, clock=self.clock)
            store = RecordStore(session)

            if operation == WebhookOperation.DELETE.value:
                mapping = await mappings.find_by_external_id(provider, entity_type, external_id)
                if mapping is None:
                    logger.info(f"Delete for unmapped {provider}/{entity_type} {external_id}; nothing to deactivate")
                    return SyncResult()
                await store.deactivate(mapping.internal_id)
                await mappings.update_sync_state(mapping, SyncStatus.DELETED)
                await session.commit()
                logger.info(f"Deactivated {entity_type} {mapping.internal_id} (deleted in {provider} as {external_id})")
                return SyncResult(records_processed=1)

            remote = await client.fetch_one(entity_type, external_id)
            if remote is None:
                return SyncResult(errors=[SyncError(
                    external_id=external_id, error=f"{entity_type} {external_id} not found in {provider}",
                )])

            await self._apply_remote(session, mappings, store, provider, entity_type, remote)
            await session.commit()
            return SyncResult(records_processed=1)

    # Pull

    async def _pull(self, client: ProviderClient, provider: str, entity_type: str) -> SyncResult:
        remote_records = await client.fetch_all(entity_type)
        result = SyncResult()

        async with self.session_factory() as session:
            mappings = MappingStore(session, clock=self.clock)
            store = RecordStore(session)

            for remote in remote_records:
                try:
                    await self._apply_remote(session, mappings, store, provider, entity_type, remote)
                    await session.commit()
                    result.records_processed += 1
                except (LedgerSyncError, SQLAlchemyError) as e:
                    await session.rollback()
                    result.errors.append(SyncError(external_id=remote.external_id, error=str(e)))
                    self.error_tracker.track_provider_operation(
                        provider, "pull", False, error=e,
                        context={"entity_type": entity_type, "external_id": remote.external_id},
                    )

        return result

    async def _apply_remote(
        self,
        session: AsyncSession,
        mappings: MappingStore,
        store: RecordStore,
        provider: str,
        entity_type: str,
        remote: RemoteRecord,
    ) -> None:
        mapping = await mappings.find_by_external_id(provider, entity_type, remote.external_id)
        if mapping is not None:
            await self._refresh_local(mappings, store, mapping, remote)
            return

        record = await store.create(entity_type, remote.payload, sync_status=SyncStatus.SYNCED.value)
        try:
            await mappings.create(ExternalMappingCreate(
                provider=provider,
                entity_type=entity_type,
                internal_id=record.id,
                external_id=remote.external_id,
                last_sync_at=self.clock(),
            ))
        except DuplicateMappingError as e:
            # The rollback in MappingStore.create already dropped the new local record
            if self.monitoring:
                self.monitoring.record_duplicate_mapping(provider, entity_type, record.id, remote.external_id)
            winner = await mappings.find_by_external_id(provider, entity_type, remote.external_id)
            if winner is None:
                raise
            logger.info(f"Lost mapping race for {provider}/{entity_type} {remote.external_id}; updating winner ({e})")
            await self._refresh_local(mappings, store, winner, remote)

    async def _refresh_local(
        self,
        mappings: MappingStore,
        store: RecordStore,
        mapping: ExternalMappingRead,
        remote: RemoteRecord,
    ) -> None:
        await store.overwrite(mapping.internal_id, remote.payload)
        await mappings.update_sync_state(mapping, SyncStatus.SYNCED, timestamp=self.clock())

    # Push

    async def _push(self, client: ProviderClient, provider: str, entity_type: str) -> SyncResult:
        result = SyncResult()

        async with self.session_factory() as session:
            mappings = MappingStore(session, clock=self.clock)
            store = RecordStore(session)

            by_internal_id = {m.internal_id: m for m in await mappings.list_for(provider, entity_type)}
            candidates = []
            for record in await store.list_pending_push(entity_type):
                mapping = by_internal_id.get(record.id)
                if mapping is not None and mapping.sync_status == SyncStatus.DELETED.value:
                    continue
                if (
                    mapping is None
                    or mapping.sync_status != SyncStatus.SYNCED.value
                    or record.sync_status != SyncStatus.SYNCED.value
                ):
                    candidates.append((record, mapping))

            logger.info(f"Pushing {len(candidates)} {entity_type} records to {provider}")

            for record, mapping in candidates:
                try:
                    if mapping is not None:
                        await client.update(entity_type, mapping.external_id, record.payload)
                        await mappings.update_sync_state(mapping, SyncStatus.SYNCED, timestamp=self.clock())
                    else:
                        remote = await client.create(entity_type, record.payload)
                        await mappings.create(ExternalMappingCreate(
                            provider=provider,
                            entity_type=entity_type,
                            internal_id=record.id,
                            external_id=remote.external_id,
                            last_sync_at=self.clock(),
                        ))
                    await store.mark_synced(record.id)
                    await session.commit()
                    result.records_processed += 1

                except DuplicateMappingError as e:
                    # The provider record was created; only the local link lost the race
                    winner = await mappings.find_by_internal_id(provider, entity_type, record.id)
                    if self.monitoring:
                        self.monitoring.record_duplicate_mapping(
                            provider, entity_type, record.id,
                            winner.external_id if winner else None,
                            orphan_external_id=e.external_id,
                        )
                    if winner is not None:
                        logger.warning(
                            f"Lost push mapping race for {provider}/{entity_type} {record.id}: keeping "
                            f"{winner.external_id}, orphaned {provider} record {e.external_id}"
                        )
                        await store.mark_synced(record.id)
                        await session.commit()
                        result.records_processed += 1
                        continue

                    await store.mark_error(record.id, str(e))
                    await session.commit()
                    result.errors.append(SyncError(internal_id=record.id, external_id=e.external_id, error=str(e)))
                    self.error_tracker.track_provider_operation(
                        provider, "push", False, error=e,
                        context={"entity_type": entity_type, "internal_id": record.id},
                    )

                except (ProviderError, SQLAlchemyError) as e:
                    await session.rollback()
                    await store.mark_error(record.id, str(e))
                    if mapping is not None:
                        await mappings.update_sync_state(mapping, SyncStatus.ERROR, error=str(e), timestamp=self.clock())
                    await session.commit()
                    result.errors.append(SyncError(
                        internal_id=record.id,
                        external_id=mapping.external_id if mapping else None,
                        error=str(e),
                    ))
                    self.error_tracker.track_provider_operation(
                        provider, "push", False, error=e,
                        context={
                            "entity_type": entity_type,
                            "internal_id": record.id,
                            "external_id": mapping.external_id if mapping else None,
                        },
                    )

        return result

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

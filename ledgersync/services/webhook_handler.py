"""
QuickBooks webhook processing.

verify signature -> validate structure -> acknowledge test notifications ->
per entity: idempotency check, single-entity sync, remember the key.

Keys are stored only after the entity synced successfully, so a failed entity
is retried on redelivery. Boundary failures raise InvalidSignatureError or
InvalidPayloadError before anything touches the stores.
"""

import json
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from ledgersync.core.enums import QUICKBOOKS_ENTITY_TYPES, Provider
from ledgersync.core.exceptions import InvalidPayloadError, InvalidSignatureError, LedgerSyncError
from ledgersync.models import ProcessedWebhookEntity
from ledgersync.schemas.webhook import WebhookEntity, WebhookEvent, WebhookResult
from ledgersync.services.error_tracking import ErrorTracker
from ledgersync.services.sync_executor import SyncExecutor
from ledgersync.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)


class WebhookHandler:

    def __init__(
        self,
        verifier: WebhookVerifier,
        executor: SyncExecutor,
        session_factory: async_sessionmaker,
        error_tracker: Optional[ErrorTracker] = None,
        provider: str = Provider.QUICKBOOKS.value,
    ):
        self.verifier = verifier
        self.executor = executor
        self.session_factory = session_factory
        self.error_tracker = error_tracker or ErrorTracker()
        self.provider = provider

    async def handle(self, raw_body: bytes, signature: Optional[str]) -> WebhookResult:
        logger.info("QuickBooks webhook received")

        if not self.verifier.verify_signature(raw_body, signature or ""):
            self.error_tracker.capture_message(
                "QuickBooks webhook signature verification failed",
                "error",
                {"signature": (signature or "")[:20] + "...", "payload_length": len(raw_body)},
            )
            raise InvalidSignatureError("Invalid signature")

        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise InvalidPayloadError("Invalid payload structure") from e

        if not self.verifier.validate_webhook_payload(payload):
            self.error_tracker.capture_message("QuickBooks webhook invalid payload", "error", {"payload_length": len(raw_body)})
            raise InvalidPayloadError("Invalid payload structure")

        if self.verifier.is_test_webhook(payload):
            logger.info("QuickBooks test webhook received and verified")
            return WebhookResult(message="Test webhook received")

        events = self.verifier.extract_webhook_events(payload)
        logger.info(f"Processing {len(events)} webhook events")

        result = WebhookResult(message="Webhook processed successfully", events_processed=len(events))
        for event in events:
            for entity in event.entities:
                await self._process_entity(event, entity, result)

        logger.info(
            f"Webhook processed: {result.entities_processed} entities, "
            f"{result.duplicates_skipped} duplicates, {len(result.errors)} errors"
        )
        return result

    async def _process_entity(self, event: WebhookEvent, entity: WebhookEntity, result: WebhookResult) -> None:
        entity_type = QUICKBOOKS_ENTITY_TYPES.get(entity.name.lower())
        if entity_type is None:
            logger.info(f"Ignoring {entity.name} entity - not configured for sync")
            return

        # Entity ids are only unique per entity name, so the name is part of the key
        key = self.verifier.generate_idempotency_key(event.realm_id, event.event_id, f"{entity.name}:{entity.id}")
        if await self._already_processed(key):
            logger.info(f"Skipping duplicate webhook entity {entity.name} {entity.id} ({key[:12]})")
            result.duplicates_skipped += 1
            return

        logger.info(f"Processing {entity.operation} operation for {entity.name} {entity.id}")
        try:
            sync_result = await self.executor.sync_entity(self.provider, entity_type.value, entity.id, entity.operation)
        except (LedgerSyncError, SQLAlchemyError) as e:
            result.errors.append(f"{entity.name} {entity.id}: {str(e)}")
            self.error_tracker.capture_exception(e, {
                "provider": self.provider,
                "operation": entity.operation,
                "entity_type": entity_type.value,
                "external_id": entity.id,
                "event_id": event.event_id,
            })
            return

        if sync_result.errors:
            result.errors.extend(f"{entity.name} {entity.id}: {e.error}" for e in sync_result.errors)
            return

        if await self._remember(key, event, entity):
            result.entities_processed += 1
        else:
            result.duplicates_skipped += 1

    async def _already_processed(self, key: str) -> bool:
        async with self.session_factory() as session:
            found = await session.execute(
                select(ProcessedWebhookEntity.id).where(ProcessedWebhookEntity.idempotency_key == key)
            )
            return found.scalar_one_or_none() is not None

    async def _remember(self, key: str, event: WebhookEvent, entity: WebhookEntity) -> bool:
        """Store the key. False when a concurrent delivery stored it first."""
        async with self.session_factory() as session:
            session.add(ProcessedWebhookEntity(
                idempotency_key=key,
                realm_id=event.realm_id,
                event_id=event.event_id,
                entity_name=entity.name,
                entity_id=entity.id,
                operation=entity.operation,
            ))
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(f"Webhook entity {entity.name} {entity.id} recorded concurrently")
                return False
        return True

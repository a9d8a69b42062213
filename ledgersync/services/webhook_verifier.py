"""
QuickBooks webhook verification.

Intuit signs each webhook body with HMAC-SHA256 keyed by the verifier token
from the developer portal and sends the digest base64-encoded in the
``intuit-signature`` header. Hex digests (optionally prefixed ``sha256=``) are
accepted as well.
"""

import base64
import hashlib
import hmac
import logging
from typing import Any, List, Optional

from ledgersync.schemas.webhook import WebhookEntity, WebhookEvent

logger = logging.getLogger(__name__)

TEST_EVENT_NAME = "Test"
TEST_EVENT_ID = "test-event"


class WebhookVerifier:

    def __init__(self, verifier_token: str = ""):
        self.verifier_token = verifier_token or ""
        if not self.verifier_token:
            logger.warning("QBO_WEBHOOK_VERIFIER not configured - webhook verification disabled")

    def verify_signature(self, raw_payload: bytes, provided_signature: Optional[str]) -> bool:
        """
        Check the signature over the raw request body.

        Passes (with a warning) when no verifier token is configured.
        """
        if not self.verifier_token:
            logger.warning("Webhook verification skipped - no verifier token configured")
            return True

        if not provided_signature:
            return False

        if isinstance(raw_payload, str):
            raw_payload = raw_payload.encode("utf-8")

        signature = provided_signature.strip()
        if signature.startswith("sha256="):
            signature = signature[len("sha256="):]

        digest = hmac.new(self.verifier_token.encode("utf-8"), raw_payload, hashlib.sha256).digest()
        expected_hex = digest.hex()
        expected_b64 = base64.b64encode(digest).decode("ascii")

        # compare_digest is constant time for equal-length inputs
        return (
            hmac.compare_digest(signature.encode("utf-8"), expected_hex.encode("ascii"))
            or hmac.compare_digest(signature.encode("utf-8"), expected_b64.encode("ascii"))
        )

    def validate_webhook_payload(self, payload: Any) -> bool:
        """Structural check of an eventNotifications payload."""
        if not isinstance(payload, dict):
            logger.warning("Invalid webhook payload - not a JSON object")
            return False

        notifications = payload.get("eventNotifications")
        if not isinstance(notifications, list):
            logger.warning("Invalid webhook payload structure - missing eventNotifications array")
            return False

        for notification in notifications:
            if not isinstance(notification, dict):
                return False
            if not all(notification.get(key) for key in ("realmId", "name", "id")):
                logger.warning(f"Invalid event notification structure: {notification}")
                return False

            change_event = notification.get("dataChangeEvent")
            if change_event is None:
                continue

            entities = change_event.get("entities") if isinstance(change_event, dict) else None
            if not isinstance(entities, list):
                logger.warning(f"Invalid dataChangeEvent structure: {change_event}")
                return False
            for entity in entities:
                if not isinstance(entity, dict) or not all(entity.get(k) for k in ("name", "id", "operation")):
                    logger.warning(f"Invalid entity structure: {entity}")
                    return False

        return True

    def extract_webhook_events(self, payload: Any) -> List[WebhookEvent]:
        """Flatten notifications into events. Malformed parts are skipped rather than raised."""
        events: List[WebhookEvent] = []
        if not isinstance(payload, dict):
            return events

        for notification in payload.get("eventNotifications") or []:
            if not isinstance(notification, dict):
                continue

            entities = []
            change_event = notification.get("dataChangeEvent") or {}
            for entity in (change_event.get("entities") or []) if isinstance(change_event, dict) else []:
                if not isinstance(entity, dict) or not entity.get("name") or not entity.get("id"):
                    continue
                entities.append(WebhookEntity(
                    name=str(entity["name"]),
                    id=str(entity["id"]),
                    operation=str(entity.get("operation") or ""),
                    last_updated=entity.get("lastUpdated"),
                ))

            events.append(WebhookEvent(
                realm_id=str(notification.get("realmId") or ""),
                event_name=str(notification.get("name") or ""),
                event_id=str(notification.get("id") or ""),
                entities=entities,
            ))

        return events

    @staticmethod
    def generate_idempotency_key(realm_id: str, event_id: str, entity_id: Optional[str] = None) -> str:
        parts = [realm_id, event_id]
        if entity_id:
            parts.append(entity_id)
        return hashlib.sha256(":".join(parts).encode("utf-8")).hexdigest()

    @staticmethod
    def is_test_webhook(payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        for notification in payload.get("eventNotifications") or []:
            if isinstance(notification, dict) and (
                notification.get("name") == TEST_EVENT_NAME or notification.get("id") == TEST_EVENT_ID
            ):
                return True
        return False

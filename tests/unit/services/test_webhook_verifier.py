import hashlib
import hmac
import json

import pytest

from ledgersync.services.webhook_verifier import WebhookVerifier
from tests.conftest import WEBHOOK_VERIFIER, sign

BODY = json.dumps({
    "eventNotifications": [{
        "realmId": "123",
        "name": "Customer",
        "id": "evt-1",
        "dataChangeEvent": {"entities": [
            {"name": "Customer", "id": "1", "operation": "Create", "lastUpdated": "2026-10-14T10:00:00.000Z"},
        ]},
    }]
}).encode()


@pytest.fixture
def verifier():
    return WebhookVerifier(WEBHOOK_VERIFIER)


"""
1. Signatures
"""

def test_base64_signature_verifies(verifier):
    assert verifier.verify_signature(BODY, sign(BODY)) is True


def test_hex_signature_with_prefix_verifies(verifier):
    digest = hmac.new(WEBHOOK_VERIFIER.encode(), BODY, hashlib.sha256).hexdigest()
    assert verifier.verify_signature(BODY, digest) is True
    assert verifier.verify_signature(BODY, f"sha256={digest}") is True


def test_single_flipped_byte_fails(verifier):
    signature = sign(BODY)
    tampered = bytearray(BODY)
    tampered[10] ^= 0x01

    assert verifier.verify_signature(bytes(tampered), signature) is False


def test_wrong_token_and_missing_signature_fail(verifier):
    assert verifier.verify_signature(BODY, sign(BODY, token="other")) is False
    assert verifier.verify_signature(BODY, "") is False
    assert verifier.verify_signature(BODY, None) is False


def test_no_token_configured_passes(caplog):
    verifier = WebhookVerifier("")
    assert verifier.verify_signature(BODY, "anything") is True
    assert "verification skipped" in caplog.text


"""
2. Payload validation and extraction
"""

def test_validate_accepts_well_formed_payload(verifier):
    assert verifier.validate_webhook_payload(json.loads(BODY)) is True
    assert verifier.validate_webhook_payload({"eventNotifications": []}) is True


@pytest.mark.parametrize("payload", [
    None,
    [],
    {},
    {"eventNotifications": "nope"},
    {"eventNotifications": [{"name": "Customer", "id": "evt-1"}]},
    {"eventNotifications": [{"realmId": "1", "name": "Customer", "id": "e", "dataChangeEvent": {}}]},
    {"eventNotifications": [{"realmId": "1", "name": "Customer", "id": "e",
                             "dataChangeEvent": {"entities": [{"name": "Customer", "id": "1"}]}}]},
])
def test_validate_rejects_malformed_payloads(verifier, payload):
    assert verifier.validate_webhook_payload(payload) is False


def test_extract_webhook_events(verifier):
    events = verifier.extract_webhook_events(json.loads(BODY))

    assert len(events) == 1
    event = events[0]
    assert (event.realm_id, event.event_name, event.event_id) == ("123", "Customer", "evt-1")
    assert event.entities[0].name == "Customer"
    assert event.entities[0].operation == "Create"
    assert event.entities[0].last_updated == "2026-10-14T10:00:00.000Z"


def test_extract_is_tolerant(verifier):
    assert verifier.extract_webhook_events(None) == []
    assert verifier.extract_webhook_events({}) == []
    events = verifier.extract_webhook_events({"eventNotifications": [
        "garbage",
        {"realmId": "1", "name": "Item", "id": "e", "dataChangeEvent": {"entities": [{"id": "no-name"}]}},
    ]})
    assert len(events) == 1
    assert events[0].entities == []


"""
3. Idempotency keys and test notifications
"""

def test_idempotency_key_is_stable_sha256():
    key = WebhookVerifier.generate_idempotency_key("123", "evt-1", "1")

    assert key == hashlib.sha256(b"123:evt-1:1").hexdigest()
    assert key == WebhookVerifier.generate_idempotency_key("123", "evt-1", "1")
    assert key != WebhookVerifier.generate_idempotency_key("123", "evt-1", "2")
    assert WebhookVerifier.generate_idempotency_key("123", "evt-1") == hashlib.sha256(b"123:evt-1").hexdigest()


def test_is_test_webhook():
    assert WebhookVerifier.is_test_webhook({"eventNotifications": [{"realmId": "1", "name": "Test", "id": "x"}]})
    assert WebhookVerifier.is_test_webhook({"eventNotifications": [{"realmId": "1", "name": "X", "id": "test-event"}]})
    assert not WebhookVerifier.is_test_webhook(json.loads(BODY))

import pytest

from ledgersync.core.enums import SyncStatus
from ledgersync.core.exceptions import DuplicateMappingError
from ledgersync.schemas.sync import ExternalMappingCreate
from ledgersync.services.mapping_store import MappingStore


def _mapping(internal_id="int-1", external_id="ext-1", provider="quickbooks", entity_type="customer"):
    return ExternalMappingCreate(
        provider=provider,
        entity_type=entity_type,
        internal_id=internal_id,
        external_id=external_id,
    )


@pytest.mark.asyncio
async def test_create_and_find_both_directions(db_session, clock):
    store = MappingStore(db_session, clock=clock)
    created = await store.create(_mapping())
    await db_session.commit()

    by_external = await store.find_by_external_id("quickbooks", "customer", "ext-1")
    by_internal = await store.find_by_internal_id("quickbooks", "customer", "int-1")

    assert by_external == by_internal
    assert by_external.id == created.id
    assert by_external.sync_status == SyncStatus.SYNCED.value
    assert by_external.last_sync_at is not None


@pytest.mark.asyncio
async def test_find_returns_none_when_missing(db_session):
    store = MappingStore(db_session)
    assert await store.find_by_external_id("quickbooks", "customer", "nope") is None
    assert await store.find_by_internal_id("quickbooks", "customer", "nope") is None


@pytest.mark.asyncio
async def test_duplicate_internal_id_rejected(db_session):
    store = MappingStore(db_session)
    await store.create(_mapping("int-1", "ext-1"))
    await db_session.commit()

    with pytest.raises(DuplicateMappingError) as exc_info:
        await store.create(_mapping("int-1", "ext-2"))

    assert exc_info.value.internal_id == "int-1"
    assert await store.find_by_external_id("quickbooks", "customer", "ext-2") is None


@pytest.mark.asyncio
async def test_duplicate_external_id_rejected(db_session):
    store = MappingStore(db_session)
    await store.create(_mapping("int-1", "ext-1"))
    await db_session.commit()

    with pytest.raises(DuplicateMappingError):
        await store.create(_mapping("int-2", "ext-1"))

    # The session is usable again after the rollback
    mappings = await store.list_for("quickbooks", "customer")
    assert [(m.internal_id, m.external_id) for m in mappings] == [("int-1", "ext-1")]


@pytest.mark.asyncio
async def test_same_ids_allowed_in_other_partitions(db_session):
    store = MappingStore(db_session)
    await store.create(_mapping("int-1", "ext-1", entity_type="customer"))
    await store.create(_mapping("int-1", "ext-1", entity_type="invoice"))
    await store.create(_mapping("int-1", "ext-1", provider="google_calendar"))
    await db_session.commit()

    assert len(await store.list_for("quickbooks", "customer")) == 1
    assert len(await store.list_for("quickbooks", "invoice")) == 1
    assert len(await store.list_for("google_calendar", "customer")) == 1


@pytest.mark.asyncio
async def test_update_sync_state(db_session, clock):
    store = MappingStore(db_session, clock=clock)
    mapping = await store.create(_mapping())
    await db_session.commit()

    errored = await store.update_sync_state(mapping, SyncStatus.ERROR, error="boom")
    await db_session.commit()
    assert errored.sync_status == "error"
    assert errored.sync_error == "boom"

    reloaded = await store.find_by_internal_id("quickbooks", "customer", "int-1")
    assert reloaded.sync_status == "error"
    assert reloaded.sync_error == "boom"

    synced = await store.update_sync_state(reloaded, SyncStatus.SYNCED, error="ignored")
    await db_session.commit()
    assert synced.sync_error is None
    reloaded = await store.find_by_internal_id("quickbooks", "customer", "int-1")
    assert reloaded.sync_status == "synced"
    assert reloaded.sync_error is None

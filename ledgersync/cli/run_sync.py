# ledgersync/cli/run_sync.py
import asyncio

import click
from sqlalchemy.ext.asyncio import async_sessionmaker

from ledgersync.core.config import get_settings
from ledgersync.core.enums import EntityType, SyncDirection
from ledgersync.core.exceptions import LedgerSyncError
from ledgersync.core.logging_config import configure_logging
from ledgersync.database import create_engine_and_sessionmaker
from ledgersync.integrations.registry import ProviderRegistry
from ledgersync.schemas.sync import SyncResult
from ledgersync.services.sync_executor import SyncExecutor


async def _run_sync_logic(
    session_factory: async_sessionmaker,
    registry: ProviderRegistry,
    provider: str,
    entity_types,
    direction: str,
) -> SyncResult:
    """One pass per entity type; results are summed. Whole-pass failures propagate."""
    executor = SyncExecutor(session_factory, registry)
    result = SyncResult()
    for entity_type in entity_types:
        result = result.merge(await executor.sync(provider, entity_type, direction, report=False))
    return result


@click.command("run-sync")
@click.argument("provider")
@click.option(
    "--entity-type", "entity_types", multiple=True,
    type=click.Choice([e.value for e in EntityType]),
    help="Entity type to sync (repeatable; default: all)",
)
@click.option(
    "--direction", default=SyncDirection.BIDIRECTIONAL.value,
    type=click.Choice([d.value for d in SyncDirection]),
)
def run_sync(provider, entity_types, direction):
    """Run a sync pass for a provider outside the scheduler"""
    from ledgersync.main import build_registry

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    entity_types = entity_types or [e.value for e in EntityType]

    async def _run():
        engine, session_factory = create_engine_and_sessionmaker(settings.DATABASE_URL)
        try:
            return await _run_sync_logic(session_factory, build_registry(settings), provider, entity_types, direction)
        finally:
            await engine.dispose()

    try:
        result = asyncio.run(_run())
    except LedgerSyncError as e:
        raise click.ClickException(f"Sync failed: {str(e)}")

    click.echo("\nSync completed!")
    click.echo(f"Records processed: {result.records_processed}")
    click.echo(f"Errors: {len(result.errors)}")
    for error in result.errors:
        click.echo(f"  - {error.internal_id or error.external_id}: {error.error}")
    if result.errors:
        raise SystemExit(1)


if __name__ == "__main__":
    run_sync()

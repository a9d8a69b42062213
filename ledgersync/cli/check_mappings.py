# ledgersync/cli/check_mappings.py
import asyncio
from typing import List, Optional, Tuple

import click
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledgersync.core.config import get_settings
from ledgersync.database import create_engine_and_sessionmaker
from ledgersync.models import ExternalMapping, LocalRecord


async def _mapping_summary(session: AsyncSession, provider: Optional[str] = None) -> List[Tuple[str, str, str, int]]:
    """(provider, entity_type, sync_status, count) rows, sorted"""
    query = (
        select(
            ExternalMapping.provider,
            ExternalMapping.entity_type,
            ExternalMapping.sync_status,
            func.count(ExternalMapping.id),
        )
        .group_by(ExternalMapping.provider, ExternalMapping.entity_type, ExternalMapping.sync_status)
        .order_by(ExternalMapping.provider, ExternalMapping.entity_type, ExternalMapping.sync_status)
    )
    if provider:
        query = query.where(ExternalMapping.provider == provider)
    result = await session.execute(query)
    return [tuple(row) for row in result.all()]


async def _unmapped_records(session: AsyncSession, provider: str) -> int:
    """Active local records with no mapping for the provider"""
    mapped = select(ExternalMapping.internal_id).where(ExternalMapping.provider == provider)
    result = await session.execute(
        select(func.count(LocalRecord.id)).where(
            LocalRecord.is_active.is_(True),
            LocalRecord.id.not_in(mapped),
        )
    )
    return result.scalar_one()


@click.command("check-mappings")
@click.option("--provider", default=None, help="Only show mappings for this provider")
def check_mappings(provider):
    """Summarize external mappings by provider, entity type and sync status"""
    settings = get_settings()

    async def _check():
        engine, session_factory = create_engine_and_sessionmaker(settings.DATABASE_URL)
        try:
            async with session_factory() as session:
                rows = await _mapping_summary(session, provider)
                click.echo("\nMappings:")
                if not rows:
                    click.echo("  (none)")
                for row_provider, entity_type, status, count in rows:
                    click.echo(f"  {row_provider:<16} {entity_type:<10} {status:<8} {count}")

                if provider:
                    unmapped = await _unmapped_records(session, provider)
                    click.echo(f"\nActive local records without a {provider} mapping: {unmapped}")
        finally:
            await engine.dispose()

    asyncio.run(_check())


if __name__ == "__main__":
    check_mappings()

# ledgersync/cli/create_tables.py
import asyncio

import click

from ledgersync.core.config import get_settings
from ledgersync.database import create_engine_and_sessionmaker, create_tables as create_all_tables


@click.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy (SQLite / local use; Postgres uses Alembic)"""
    settings = get_settings()

    async def _create_tables():
        engine, _ = create_engine_and_sessionmaker(settings.DATABASE_URL)
        try:
            await create_all_tables(engine)
        finally:
            await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


if __name__ == "__main__":
    create_tables()

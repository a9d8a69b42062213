# ledgersync/cli/__init__.py
import click

from ledgersync.cli.check_mappings import check_mappings
from ledgersync.cli.create_tables import create_tables
from ledgersync.cli.run_sync import run_sync


@click.group()
def cli():
    """ledgersync operator commands"""


cli.add_command(create_tables)
cli.add_command(check_mappings)
cli.add_command(run_sync)


if __name__ == "__main__":
    cli()

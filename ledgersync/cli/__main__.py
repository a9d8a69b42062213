from ledgersync.cli import cli

cli()

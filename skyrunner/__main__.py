from skyrunner.cli import cli

cli()

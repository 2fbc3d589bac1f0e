from infra_reconciler.cli.main import cli

cli()

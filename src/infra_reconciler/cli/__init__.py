"""Command line interface."""

from infra_reconciler.cli.main import cli

__all__ = ['cli']

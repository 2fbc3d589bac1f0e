"""Declarative engine adapters."""

from infra_reconciler.engine.terraform import TerraformEngine

__all__ = ['TerraformEngine']

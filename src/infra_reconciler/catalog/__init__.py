"""Resource descriptor catalog: naming policy, dependency graph and built-in stacks."""

from infra_reconciler.catalog.models import NamingContext, ResourceDescriptor, ResourceKind
from infra_reconciler.catalog.dependency_graph import DependencyGraph, DependencyNode
from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.catalog.runners import (
    aws_runner_catalog,
    aws_runner_descriptors,
    azure_runner_catalog,
    azure_runner_descriptors,
)

__all__ = [
    'NamingContext',
    'ResourceDescriptor',
    'ResourceKind',
    'DependencyGraph',
    'DependencyNode',
    'ResourceCatalog',
    'aws_runner_catalog',
    'aws_runner_descriptors',
    'azure_runner_catalog',
    'azure_runner_descriptors',
]

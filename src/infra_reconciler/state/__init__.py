"""Tracked state reading."""

from infra_reconciler.state.models import (
    StateDocument,
    StateInstance,
    StateResource,
    TrackedResourceState,
)
from infra_reconciler.state.terraform import TerraformStateReader

__all__ = [
    'StateDocument',
    'StateInstance',
    'StateResource',
    'TrackedResourceState',
    'TerraformStateReader',
]

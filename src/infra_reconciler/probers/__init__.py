"""Live state probers for AWS and Azure.

The provider probers live in ``probers.aws`` and ``probers.azure`` and are
imported from there, so loading this package does not pull in either cloud SDK.
"""

from infra_reconciler.probers.models import LiveResourceState
from infra_reconciler.probers.base import BaseProber, ProbeOutcome, ProbeSettings, StaticProber

__all__ = [
    'LiveResourceState',
    'BaseProber',
    'ProbeOutcome',
    'ProbeSettings',
    'StaticProber',
]

"""Shared fixtures: a small catalog, scripted probers and a fake Terraform engine."""

import json

import pytest

from infra_reconciler.catalog import NamingContext, ResourceCatalog, ResourceDescriptor, ResourceKind
from infra_reconciler.probers import ProbeSettings, StaticProber
from infra_reconciler.utils.errors import ExecutionFailure
from infra_reconciler.utils.retry import RetryStrategy


def state_document(entries, serial=1):
    """Build a v4 state document from ``{address: native_id}``."""
    resources = []
    for address, native_id in entries.items():
        parts = address.split(".")
        module = ".".join(parts[:-2]) or None
        resources.append({
            "module": module,
            "mode": "managed",
            "type": parts[-2],
            "name": parts[-1],
            "provider": "provider[\"registry.terraform.io/hashicorp/aws\"]",
            "instances": [{"schema_version": 0, "attributes": {"id": native_id}}],
        })
        if module is None:
            del resources[-1]["module"]
    return {
        "version": 4,
        "terraform_version": "1.6.6",
        "serial": serial,
        "lineage": "3f2c6c4e-0000-4000-8000-000000000000",
        "outputs": {},
        "resources": resources,
    }


class FakeEngine:
    """In-memory stand-in for TerraformEngine."""

    def __init__(self, tracked=None, failures=None):
        self.tracked = dict(tracked or {})
        self.failures = dict(failures or {})
        self.imports = []
        self.removed = []
        self.initialized = True
        self.planned = None
        self.applied = None
        self.outputs = {}

    def list(self):
        return sorted(self.tracked)

    def pull_state(self):
        if not self.tracked:
            return None
        return json.dumps(state_document(self.tracked))

    def import_resource(self, address, native_id):
        if address in self.failures:
            raise ExecutionFailure(f"terraform import failed: {self.failures[address]}")
        self.imports.append((address, native_id))
        self.tracked[address] = native_id
        return "Import successful!"

    def remove(self, address):
        if address in self.failures:
            raise ExecutionFailure(f"terraform state rm failed: {self.failures[address]}")
        self.removed.append(address)
        self.tracked.pop(address, None)
        return f"Removed {address}"

    def is_initialized(self):
        return self.initialized

    def init(self, upgrade=False):
        self.initialized = True
        return "Terraform has been successfully initialized!"

    def plan(self, out="tfplan"):
        self.planned = out
        return "Plan: 0 to add, 0 to change, 0 to destroy."

    def apply(self, plan_file="tfplan"):
        self.applied = plan_file
        return "Apply complete! Resources: 0 added, 0 changed, 0 destroyed."

    def output(self):
        return dict(self.outputs)


def runner_descriptors():
    D = ResourceDescriptor
    return [
        D(logical_name="network", kind=ResourceKind.NETWORK,
          native_id_template="{prefix}-vpc", address="module.vpc.aws_vpc.main"),
        D(logical_name="subnet", kind=ResourceKind.SUBNET,
          native_id_template="{prefix}-subnet", address="module.vpc.aws_subnet.public",
          depends_on=("network",)),
        D(logical_name="vm", kind=ResourceKind.COMPUTE,
          native_id_template="{prefix}-vm", address="module.ec2.aws_instance.runner",
          depends_on=("subnet",)),
    ]


def fast_retry(max_attempts=3):
    return RetryStrategy(max_attempts=max_attempts, base_delay=0, jitter=False, sleep=lambda _: None)


@pytest.fixture
def naming():
    return NamingContext(project="runner", environment="dev", account="123456789012", region="us-east-1")


@pytest.fixture
def catalog(naming):
    return ResourceCatalog(runner_descriptors(), naming)


@pytest.fixture
def make_prober():
    """Factory for a StaticProber that retries without sleeping."""
    def factory(responses, max_attempts=3, max_workers=4):
        settings = ProbeSettings(max_attempts=max_attempts, base_delay=0, max_workers=max_workers)
        return StaticProber(responses, settings, retry=fast_retry(max_attempts))
    return factory


@pytest.fixture
def fake_engine():
    return FakeEngine


@pytest.fixture
def make_state():
    return state_document


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Keep log files written by the CLI out of the source tree."""
    monkeypatch.chdir(tmp_path)

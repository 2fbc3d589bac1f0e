"""Builds reconciler components from resolved settings."""

from dataclasses import dataclass
from typing import Optional

from rich.console import Console

from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.catalog.runners import aws_runner_descriptors, azure_runner_descriptors
from infra_reconciler.config.models import ReconcilerSettings
from infra_reconciler.engine.terraform import TerraformEngine
from infra_reconciler.orchestrator.executor import ActionExecutor
from infra_reconciler.orchestrator.reconciler import Reconciler
from infra_reconciler.orchestrator.reporter import ConvergenceReporter
from infra_reconciler.probers.aws import AWSProber
from infra_reconciler.probers.azure import AzureProber
from infra_reconciler.probers.base import BaseProber
from infra_reconciler.state.terraform import TerraformStateReader
from infra_reconciler.utils.aws_client import AWSClientManager
from infra_reconciler.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Components:
    """Everything one run needs, wired together."""
    settings: ReconcilerSettings
    catalog: ResourceCatalog
    prober: BaseProber
    engine: TerraformEngine
    reconciler: Reconciler


def build_catalog(settings: ReconcilerSettings, account: Optional[str] = None) -> ResourceCatalog:
    """Build the catalog declared in config, or the built-in runner stack."""
    naming = settings.naming_context(account=account)

    if settings.catalog is not None:
        descriptors = [entry.to_descriptor() for entry in settings.catalog]
    elif settings.provider == "aws":
        descriptors = aws_runner_descriptors(naming, include_oidc=settings.project.include_oidc)
    else:
        descriptors = azure_runner_descriptors(naming)

    return ResourceCatalog(descriptors, naming)


def build_engine(settings: ReconcilerSettings) -> TerraformEngine:
    return TerraformEngine(
        settings.terraform_dir,
        variables=settings.terraform_variables(),
        timeout=settings.project.terraform_timeout
    )


def build_components(
    settings: ReconcilerSettings,
    console: Optional[Console] = None,
    client_manager: Optional[AWSClientManager] = None
) -> Components:
    """Wire up catalog, prober, engine and reconciler.

    For AWS the account ID is looked up through STS when the configuration
    does not pin it, which also validates credentials before any probe.

    Raises:
        ConfigurationError: If the catalog is invalid
        CredentialError: If AWS credentials are unusable
    """
    probe_settings = settings.probing.to_probe_settings()
    account = settings.environment.account

    if settings.provider == "aws":
        client_manager = client_manager or AWSClientManager(
            profile=settings.environment.profile,
            region=settings.environment.region,
            timeout=probe_settings.timeout,
            max_pool_connections=max(10, probe_settings.max_workers)
        )
        if not account:
            account = client_manager.get_credentials().account_id
        prober: BaseProber = AWSProber(client_manager, probe_settings)
    else:
        prober = AzureProber(account, probe_settings)

    catalog = build_catalog(settings, account=account)
    engine = build_engine(settings)
    reader = TerraformStateReader(catalog, state_path=settings.state_path, engine=engine)

    reconciler = Reconciler(
        catalog=catalog,
        prober=prober,
        reader=reader,
        executor=ActionExecutor(engine),
        reporter=ConvergenceReporter(console)
    )

    logger.debug(
        f"Components ready: {settings.provider} provider, {len(catalog)} descriptors, "
        f"terraform dir {settings.terraform_dir}"
    )
    return Components(settings, catalog, prober, engine, reconciler)

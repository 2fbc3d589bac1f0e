"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from infra_reconciler.catalog.models import NamingContext, ResourceDescriptor, ResourceKind
from infra_reconciler.probers.base import ProbeSettings


class ProjectConfig(BaseModel):
    """Project-level configuration."""

    name: str = Field(..., min_length=1, pattern="^[a-z0-9][a-z0-9-]*$", description="Project name")
    provider: str = Field(..., pattern="^(aws|azure)$", description="Cloud provider")
    terraform_dir: str = Field("terraform", description="Terraform root module, relative to the config file")
    terraform_timeout: float = Field(300.0, gt=0, description="Timeout for each terraform call in seconds")
    include_oidc: bool = Field(False, description="Reconcile the GitHub OIDC provider and Actions role")


class EnvironmentConfig(BaseModel):
    """Environment-specific configuration."""

    name: str = Field(..., pattern="^[a-z0-9][a-z0-9-]*$", description="Environment name")
    account: Optional[str] = Field(None, description="AWS account ID or Azure subscription ID")
    region: Optional[str] = Field(None, description="AWS region or Azure location")
    environment_tag: Optional[str] = Field(None, description="Suffix for per-deployment resource names")
    principal_id: Optional[str] = Field(None, description="Object ID of the deploying Azure principal")
    profile: Optional[str] = Field(None, description="AWS profile")
    state_path: Optional[str] = Field(
        None, description="Local state file; the engine's state pull is used when unset"
    )
    terraform_vars: dict = Field(default_factory=dict, description="Extra -var values for the engine")

    @field_validator("account", mode="before")
    @classmethod
    def validate_account(cls, v):
        """AWS account IDs arrive from YAML as integers and lose leading zeros."""
        if isinstance(v, int):
            v = str(v)
        if isinstance(v, str) and v.isdigit() and len(v) < 12:
            raise ValueError("AWS account IDs have 12 digits; quote the value in YAML")
        return v


class ProbingConfig(BaseModel):
    """Live state probing policy."""

    timeout: float = Field(30.0, gt=0, le=300, description="Per-call timeout in seconds")
    max_attempts: int = Field(3, ge=1, le=10, description="Attempts for transient failures")
    base_delay: float = Field(1.0, ge=0, description="Initial backoff delay in seconds")
    max_workers: int = Field(4, ge=1, le=8, description="Concurrent probes")

    def to_probe_settings(self) -> ProbeSettings:
        return ProbeSettings(
            timeout=self.timeout,
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_workers=self.max_workers
        )


class CatalogEntryConfig(BaseModel):
    """One resource descriptor declared in YAML."""

    name: str = Field(..., min_length=1, description="Logical name")
    kind: ResourceKind = Field(..., description="Resource kind, e.g. Network")
    id: str = Field(..., min_length=1, description="Native ID template")
    depends_on: List[str] = Field(default_factory=list)
    address: Optional[str] = None
    link: Optional[str] = Field(None, description="Template for the resource an association links to")
    importable: bool = True
    description: str = ""

    def to_descriptor(self) -> ResourceDescriptor:
        return ResourceDescriptor(
            logical_name=self.name,
            kind=self.kind,
            native_id_template=self.id,
            depends_on=self.depends_on,
            address=self.address,
            link_template=self.link,
            importable=self.importable,
            description=self.description
        )


class ReconcilerSettings(BaseModel):
    """Resolved settings for one run. Built once and passed explicitly."""

    model_config = ConfigDict(frozen=True)

    project: ProjectConfig
    environment: EnvironmentConfig
    probing: ProbingConfig = Field(default_factory=ProbingConfig)
    catalog: Optional[List[CatalogEntryConfig]] = None
    base_dir: Path = Field(default_factory=Path.cwd, description="Directory relative paths resolve from")

    @model_validator(mode="after")
    def validate_provider_requirements(self):
        """Azure resource IDs cannot be rendered without a subscription."""
        if self.project.provider == "azure" and not self.environment.account:
            raise ValueError("Azure environments require 'account' (subscription ID)")
        return self

    @property
    def provider(self) -> str:
        return self.project.provider

    @property
    def terraform_dir(self) -> Path:
        return (self.base_dir / self.project.terraform_dir).resolve()

    @property
    def state_path(self) -> Optional[Path]:
        if not self.environment.state_path:
            return None
        return self.terraform_dir / self.environment.state_path

    def naming_context(self, account: Optional[str] = None) -> NamingContext:
        """Naming context for catalog rendering.

        Args:
            account: Account resolved at runtime when not configured
        """
        return NamingContext(
            project=self.project.name,
            environment=self.environment.name,
            account=self.environment.account or account,
            region=self.environment.region,
            environment_tag=self.environment.environment_tag,
            principal_id=self.environment.principal_id
        )

    def terraform_variables(self) -> dict:
        """Input variables mirroring the naming context."""
        variables = {
            'project_name': self.project.name,
            'environment': self.environment.name,
        }
        if self.environment.region:
            variables['location' if self.provider == 'azure' else 'aws_region'] = self.environment.region
        if self.environment.environment_tag:
            variables['environment_tag'] = self.environment.environment_tag
        variables.update({key: str(value) for key, value in self.environment.terraform_vars.items()})
        return variables

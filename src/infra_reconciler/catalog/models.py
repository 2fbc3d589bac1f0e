"""Resource descriptor models and the naming policy they are rendered with."""

from enum import Enum
from string import Formatter
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from infra_reconciler.utils.errors import ConfigurationError, ErrorContext


class ResourceKind(Enum):
    """Kinds of cloud resources the catalog can describe."""
    RESOURCE_GROUP = "ResourceGroup"
    NETWORK = "Network"
    SUBNET = "Subnet"
    SECURITY_GROUP = "SecurityGroup"
    SECURITY_RULE = "SecurityRule"
    PUBLIC_IP = "PublicIp"
    NAT_GATEWAY = "NatGateway"
    NETWORK_INTERFACE = "NetworkInterface"
    ASSOCIATION = "Association"
    ROLE = "Role"
    INSTANCE_PROFILE = "InstanceProfile"
    OIDC_PROVIDER = "OIDCProvider"
    VAULT = "Vault"
    ACCESS_POLICY = "AccessPolicy"
    SECRET = "Secret"
    COMPUTE = "Compute"
    BUCKET = "Bucket"
    LOCK_TABLE = "LockTable"


class NamingContext(BaseModel):
    """Immutable parameters every native ID template is rendered with."""

    model_config = ConfigDict(frozen=True)

    project: str = Field(..., min_length=1, description="Project name (e.g. testcontainers)")
    environment: str = Field(..., min_length=1, description="Environment name (e.g. dev)")
    account: Optional[str] = Field(None, description="AWS account ID or Azure subscription ID")
    region: Optional[str] = Field(None, description="AWS region or Azure location")
    environment_tag: Optional[str] = Field(None, description="Optional per-deployment tag")
    principal_id: Optional[str] = Field(None, description="Object ID of the deploying principal")

    @property
    def prefix(self) -> str:
        """Dash-joined name prefix, including the environment tag when set."""
        parts = [self.project, self.environment]
        if self.environment_tag:
            parts.append(self.environment_tag)
        return "-".join(parts)

    def template_fields(self) -> Dict[str, str]:
        """Fields available to ``native_id_template`` placeholders.

        Unset optional values are left out so that a template referencing them
        fails at catalog load instead of rendering an empty segment.
        """
        fields = {
            'project': self.project,
            'environment': self.environment,
            'prefix': self.prefix,
            # Key Vault names forbid dashes
            'compact_prefix': f"{self.project}{self.environment}",
        }
        optional = {
            'account': self.account,
            'region': self.region,
            'environment_tag': self.environment_tag,
            'principal_id': self.principal_id,
        }
        fields.update({key: value for key, value in optional.items() if value})
        return fields


class ResourceDescriptor(BaseModel):
    """Static description of one resource the declarative engine manages."""

    model_config = ConfigDict(frozen=True)

    logical_name: str = Field(..., min_length=1, description="Unique logical resource name")
    kind: ResourceKind = Field(..., description="Resource kind")
    native_id_template: str = Field(..., min_length=1, description="Format string for the native ID")
    depends_on: Tuple[str, ...] = Field(default=(), description="Logical names this resource depends on")
    address: Optional[str] = Field(None, description="Declarative engine address (defaults to logical name)")
    importable: bool = Field(True, description="Whether the engine can import this resource")
    description: str = Field("", description="Human-readable label")
    expected_id: Optional[str] = Field(None, description="Native ID rendered from the template")
    link_template: Optional[str] = Field(
        None, description="Format string for the resource an association must link to"
    )
    expected_link: Optional[str] = Field(None, description="Linked resource ID rendered from link_template")

    @field_validator("depends_on", mode="before")
    @classmethod
    def coerce_depends_on(cls, v):
        """Accept lists from YAML while keeping the model immutable."""
        if isinstance(v, list):
            return tuple(v)
        return v

    @property
    def engine_address(self) -> str:
        """Address used with the declarative engine."""
        return self.address or self.logical_name

    @property
    def label(self) -> str:
        """Short label for reports."""
        return self.description or f"{self.kind.value}: {self.logical_name}"

    def template_placeholders(self, template: Optional[str] = None) -> Tuple[str, ...]:
        """Placeholder field names used by ``template`` (``native_id_template`` by default).

        Positional placeholders show up as ``''`` or a digit string.

        Raises:
            ValueError: If the template is malformed
        """
        if template is None:
            template = self.native_id_template
        return tuple(
            field_name
            for _, field_name, _, _ in Formatter().parse(template)
            if field_name is not None
        )

    def render(self, naming: NamingContext) -> "ResourceDescriptor":
        """Return a copy with ``expected_id`` (and ``expected_link``) rendered.

        Raises:
            ConfigurationError: If a template is malformed, uses positional
                placeholders, or references an unknown or unset field
        """
        update = {'expected_id': self._render_template(self.native_id_template, naming)}
        if self.link_template:
            update['expected_link'] = self._render_template(self.link_template, naming)
        return self.model_copy(update=update)

    def _render_template(self, template: str, naming: NamingContext) -> str:
        fields = naming.template_fields()
        context = ErrorContext(resource_id=self.logical_name)
        try:
            placeholders = self.template_placeholders(template)
        except ValueError as e:
            raise ConfigurationError(
                f"Malformed native ID template for '{self.logical_name}': {e}",
                context=context,
                cause=e
            )

        # Only plain named fields; no positional, attribute or index lookups
        invalid = [name for name in placeholders if not name.isidentifier()]
        if invalid:
            raise ConfigurationError(
                f"Malformed native ID template for '{self.logical_name}': "
                f"unsupported placeholder(s) {', '.join('{' + name + '}' for name in invalid)}",
                context=context,
                suggestions=["Use named placeholders such as {prefix} or {account}"]
            )

        missing = [name for name in placeholders if name not in fields]
        if missing:
            raise ConfigurationError(
                f"Native ID template for '{self.logical_name}' references "
                f"unavailable field(s): {', '.join(missing)}",
                context=context,
                suggestions=[
                    f"Available fields: {', '.join(sorted(fields))}",
                    "Set the missing value in the environment configuration"
                ]
            )

        try:
            return template.format(**fields)
        except (IndexError, KeyError, ValueError) as e:
            raise ConfigurationError(
                f"Malformed native ID template for '{self.logical_name}': {e}",
                context=context,
                cause=e
            )

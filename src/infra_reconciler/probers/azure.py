"""Azure live state prober."""

from typing import Any, Dict, Optional

from azure.identity import DefaultAzureCredential
from azure.mgmt.resource import ResourceManagementClient

from infra_reconciler.catalog.identifiers import same_arm_id
from infra_reconciler.catalog.models import ResourceDescriptor, ResourceKind
from infra_reconciler.probers.base import BaseProber, ProbeSettings
from infra_reconciler.probers.models import LiveResourceState
from infra_reconciler.utils.errors import ConfigurationError, ErrorContext, NotFound

# ARM API versions per resource provider namespace
API_VERSIONS = {
    'microsoft.resources': '2022-09-01',
    'microsoft.network': '2023-09-01',
    'microsoft.compute': '2023-09-01',
    'microsoft.keyvault': '2023-07-01',
}
RESOURCE_GROUP_API_VERSION = API_VERSIONS['microsoft.resources']


def api_version_for(resource_id: str) -> str:
    """Pick the ARM API version for a resource ID."""
    segments = resource_id.strip('/').split('/')
    lowered = [segment.lower() for segment in segments]
    if 'providers' not in lowered:
        return RESOURCE_GROUP_API_VERSION
    namespace = lowered[lowered.index('providers') + 1]
    try:
        return API_VERSIONS[namespace]
    except KeyError:
        raise ConfigurationError(f"No ARM API version configured for namespace '{namespace}'")


class AzureProber(BaseProber):
    """Probes ARM resources by ID through the generic resources API.

    Compound Terraform IDs (``<parent>|<child>``) and subnet/NIC associations
    do not exist as ARM resources; they are answered by reading the parent
    resource's properties.
    """

    def __init__(
        self,
        subscription_id: str,
        settings: ProbeSettings = ProbeSettings(),
        credential=None,
        client: Optional[ResourceManagementClient] = None,
        **kwargs
    ):
        """Initialize Azure prober.

        Args:
            subscription_id: Subscription to probe
            settings: Timeout/retry/concurrency policy
            credential: Azure credential (DefaultAzureCredential when omitted)
            client: Pre-built management client (tests)
        """
        super().__init__(settings, **kwargs)
        self.subscription_id = subscription_id
        self.client = client or ResourceManagementClient(
            credential or DefaultAzureCredential(),
            subscription_id
        )

    def _get(self, resource_id: str):
        return self.client.resources.get_by_id(
            resource_id,
            api_version_for(resource_id),
            connection_timeout=self.settings.timeout,
            read_timeout=self.settings.timeout
        )

    def _properties(self, resource) -> Dict[str, Any]:
        return dict(resource.properties or {})

    def lookup(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        if descriptor.kind == ResourceKind.ASSOCIATION:
            return self._probe_association(descriptor)
        if descriptor.kind == ResourceKind.ACCESS_POLICY:
            return self._probe_access_policy(descriptor)

        resource = self._get(descriptor.expected_id)
        properties = self._properties(resource)
        state = properties.get('provisioningState')

        if descriptor.kind == ResourceKind.SECRET:
            native_id = self._secret_uri(descriptor, properties)
        elif same_arm_id(resource.id, descriptor.expected_id):
            # Keep the catalog's casing, which is what Terraform's import parser expects
            native_id = descriptor.expected_id
        else:
            native_id = resource.id
        return LiveResourceState.present(
            descriptor.logical_name,
            native_id,
            {
                'type': resource.type,
                'location': resource.location,
                'provisioning_state': state,
            },
            transitional=state == 'Deleting'
        )

    def _secret_uri(self, descriptor: ResourceDescriptor, properties: Dict[str, Any]) -> str:
        """Data-plane URI of a Key Vault secret, which is what Terraform records."""
        uri = properties.get('secretUriWithVersion') or properties.get('secretUri')
        if uri:
            return uri
        vault_id, _, name = descriptor.expected_id.rpartition('/secrets/')
        vault_name = vault_id.rstrip('/').rsplit('/', 1)[-1]
        self.logger.debug(f"{descriptor.logical_name}: ARM response has no secret URI, deriving it")
        return f"https://{vault_name}.vault.azure.net/secrets/{name}"

    def _probe_access_policy(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        vault_id, _, object_id = descriptor.expected_id.rpartition('/objectId/')
        vault = self._get(vault_id)
        policies = self._properties(vault).get('accessPolicies', [])
        for policy in policies:
            if policy.get('objectId', '').lower() == object_id.lower():
                return LiveResourceState.present(
                    descriptor.logical_name,
                    descriptor.expected_id,
                    {'permissions': policy.get('permissions', {})}
                )
        raise NotFound(f"No access policy for object {object_id} on {vault_id}")

    def _probe_association(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        parent_id, _, child = descriptor.expected_id.partition('|')
        resource_type = descriptor.engine_address.split('.')[-2]
        parent = self._properties(self._get(parent_id))
        # Subnet associations are keyed on the subnet alone; the link target comes from the catalog
        expected_link = child or descriptor.expected_link

        if resource_type == 'azurerm_subnet_nat_gateway_association':
            linked = (parent.get('natGateway') or {}).get('id')
        elif resource_type in (
            'azurerm_subnet_network_security_group_association',
            'azurerm_network_interface_security_group_association',
        ):
            linked = (parent.get('networkSecurityGroup') or {}).get('id')
        elif resource_type == 'azurerm_nat_gateway_public_ip_association':
            # A NAT gateway holds several IPs; only the expected one counts
            linked = next(
                (ip['id'] for ip in parent.get('publicIpAddresses', [])
                 if same_arm_id(ip.get('id'), child)),
                None
            )
        else:
            raise ConfigurationError(
                f"Unsupported association type '{resource_type}'",
                context=ErrorContext(resource_id=descriptor.logical_name)
            )

        if not linked:
            raise NotFound(f"{descriptor.label} is not associated")

        native_id = descriptor.expected_id
        if expected_link and not same_arm_id(linked, expected_link):
            # Associated, but with something else: report what is really linked
            self.logger.warning(f"{descriptor.logical_name}: {parent_id} is linked to {linked}")
            native_id = f"{parent_id}|{linked}"

        return LiveResourceState.present(
            descriptor.logical_name,
            native_id,
            {'linked_id': linked}
        )

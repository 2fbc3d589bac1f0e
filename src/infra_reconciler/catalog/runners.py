"""Built-in catalogs for the self-hosted CI runner environments.

Names follow the Terraform naming conventions of the runner modules, so every
template here must stay in sync with the ``name`` arguments in the Terraform
configuration.
"""

from typing import List

from infra_reconciler.catalog.catalog import ResourceCatalog
from infra_reconciler.catalog.models import NamingContext, ResourceDescriptor, ResourceKind

ARM_RESOURCE_GROUP = "/subscriptions/{account}/resourceGroups/{project}-{environment}-rg"
ARM_NETWORK = ARM_RESOURCE_GROUP + "/providers/Microsoft.Network"
ARM_VNET = ARM_NETWORK + "/virtualNetworks/{project}-{environment}-vnet"
ARM_PRIVATE_SUBNET = ARM_VNET + "/subnets/{project}-{environment}-private-subnet"
ARM_NSG = ARM_NETWORK + "/networkSecurityGroups/{project}-{environment}-nsg"
ARM_NAT = ARM_NETWORK + "/natGateways/{project}-{environment}-nat"
ARM_NAT_PIP = ARM_NETWORK + "/publicIPAddresses/{project}-{environment}-nat-pip"
ARM_NIC = ARM_NETWORK + "/networkInterfaces/{project}-{environment}-nic"
ARM_VAULT = ARM_RESOURCE_GROUP + "/providers/Microsoft.KeyVault/vaults/{compact_prefix}kv"

GITHUB_OIDC_URL = "token.actions.githubusercontent.com"


def azure_runner_descriptors(naming: NamingContext) -> List[ResourceDescriptor]:
    """Descriptors for the Azure VM runner stack.

    The Key Vault access policy is keyed on the deploying principal's object
    ID, so it is only described when ``naming.principal_id`` is known.
    """
    D = ResourceDescriptor
    K = ResourceKind

    descriptors = [
        D(logical_name="resource_group", kind=K.RESOURCE_GROUP,
          address="azurerm_resource_group.main",
          native_id_template=ARM_RESOURCE_GROUP,
          description="Resource Group"),
        D(logical_name="vnet", kind=K.NETWORK,
          address="module.networking.azurerm_virtual_network.main",
          native_id_template=ARM_VNET,
          depends_on=("resource_group",),
          description="Virtual Network"),
        D(logical_name="public_subnet", kind=K.SUBNET,
          address="module.networking.azurerm_subnet.public",
          native_id_template=ARM_VNET + "/subnets/{project}-{environment}-public-subnet",
          depends_on=("vnet",),
          description="Public Subnet"),
        D(logical_name="private_subnet", kind=K.SUBNET,
          address="module.networking.azurerm_subnet.private",
          native_id_template=ARM_PRIVATE_SUBNET,
          depends_on=("vnet",),
          description="Private Subnet"),
        D(logical_name="nat_public_ip", kind=K.PUBLIC_IP,
          address="module.networking.azurerm_public_ip.nat",
          native_id_template=ARM_NAT_PIP,
          depends_on=("resource_group",),
          description="NAT Gateway Public IP"),
        D(logical_name="nat_gateway", kind=K.NAT_GATEWAY,
          address="module.networking.azurerm_nat_gateway.main",
          native_id_template=ARM_NAT,
          depends_on=("resource_group",),
          description="NAT Gateway"),
        D(logical_name="nat_subnet_association", kind=K.ASSOCIATION,
          address="module.networking.azurerm_subnet_nat_gateway_association.main",
          native_id_template=ARM_PRIVATE_SUBNET,
          link_template=ARM_NAT,
          depends_on=("nat_gateway", "private_subnet"),
          description="NAT Gateway Subnet Association"),
        D(logical_name="nat_ip_association", kind=K.ASSOCIATION,
          address="module.networking.azurerm_nat_gateway_public_ip_association.main",
          native_id_template=ARM_NAT + "|" + ARM_NAT_PIP,
          depends_on=("nat_gateway", "nat_public_ip"),
          description="NAT Gateway IP Association"),
        D(logical_name="nsg", kind=K.SECURITY_GROUP,
          address="module.security.azurerm_network_security_group.main",
          native_id_template=ARM_NSG,
          depends_on=("resource_group",),
          description="Network Security Group"),
    ]

    for rule in ("allow-http", "allow-https", "allow-outbound"):
        descriptors.append(
            D(logical_name=f"nsg_rule_{rule.replace('allow-', '')}", kind=K.SECURITY_RULE,
              address=f"module.security.azurerm_network_security_rule.{rule.replace('-', '_')}",
              native_id_template=ARM_NSG + f"/securityRules/{rule}",
              depends_on=("nsg",),
              description=f"NSG Rule: {rule}")
        )

    descriptors.extend([
        D(logical_name="nsg_subnet_association", kind=K.ASSOCIATION,
          address="module.security.azurerm_subnet_network_security_group_association.private",
          native_id_template=ARM_PRIVATE_SUBNET,
          link_template=ARM_NSG,
          depends_on=("nsg", "private_subnet"),
          description="NSG Subnet Association"),
        D(logical_name="vm_public_ip", kind=K.PUBLIC_IP,
          address="module.vm.azurerm_public_ip.vm",
          native_id_template=ARM_NETWORK + "/publicIPAddresses/{project}-{environment}-vm-pip",
          depends_on=("resource_group",),
          description="VM Public IP"),
        D(logical_name="nic", kind=K.NETWORK_INTERFACE,
          address="module.vm.azurerm_network_interface.main",
          native_id_template=ARM_NIC,
          depends_on=("public_subnet", "vm_public_ip"),
          description="Network Interface"),
        D(logical_name="nic_nsg_association", kind=K.ASSOCIATION,
          address="module.vm.azurerm_network_interface_security_group_association.main",
          native_id_template=ARM_NIC + "|" + ARM_NSG,
          depends_on=("nic", "nsg"),
          description="NIC Security Group Association"),
        D(logical_name="vm", kind=K.COMPUTE,
          address="module.vm.azurerm_linux_virtual_machine.main",
          native_id_template=ARM_RESOURCE_GROUP
          + "/providers/Microsoft.Compute/virtualMachines/{project}-{environment}-runner",
          depends_on=("nic",),
          description="Virtual Machine"),
        D(logical_name="key_vault", kind=K.VAULT,
          address="module.vm.azurerm_key_vault.main",
          native_id_template=ARM_VAULT,
          depends_on=("resource_group",),
          description="Key Vault"),
    ])

    if naming.principal_id:
        descriptors.append(
            D(logical_name="key_vault_access_policy", kind=K.ACCESS_POLICY,
              address="module.vm.azurerm_key_vault_access_policy.terraform",
              native_id_template=ARM_VAULT + "/objectId/{principal_id}",
              depends_on=("key_vault",),
              description="Key Vault Access Policy")
        )

    # Secret values are generated by Terraform and cannot be imported. The ARM
    # path is what gets probed; the prober reports the data-plane URI Terraform records.
    descriptors.append(
        D(logical_name="ssh_key_secret", kind=K.SECRET,
          address="module.vm.azurerm_key_vault_secret.ssh_private_key",
          native_id_template=ARM_VAULT + "/secrets/{project}-{environment}-ssh-key",
          depends_on=("key_vault",),
          importable=False,
          description="Key Vault Secret (SSH Key)")
    )

    return descriptors


def aws_runner_descriptors(naming: NamingContext, include_oidc: bool = False) -> List[ResourceDescriptor]:
    """Descriptors for the AWS EC2 runner stack.

    Networking and compute are located by their ``Name`` tag, so their
    templates render a tag value; the prober reports the AWS-assigned ID.

    Args:
        naming: Naming context (used to decide optional descriptors)
        include_oidc: Also describe the GitHub OIDC provider and Actions role.
            They are normally managed by hand and only read through Terraform
            data sources.
    """
    D = ResourceDescriptor
    K = ResourceKind

    descriptors = []

    if include_oidc:
        descriptors.extend([
            D(logical_name="github_oidc_provider", kind=K.OIDC_PROVIDER,
              address="aws_iam_openid_connect_provider.github",
              native_id_template="arn:aws:iam::{account}:oidc-provider/" + GITHUB_OIDC_URL,
              description="GitHub OIDC Provider"),
            D(logical_name="github_actions_role", kind=K.ROLE,
              address="aws_iam_role.github_actions",
              native_id_template="{project}-{environment}-github-actions-role",
              depends_on=("github_oidc_provider",),
              description="GitHub Actions Role"),
        ])

    descriptors.extend([
        D(logical_name="ec2_role", kind=K.ROLE,
          address="module.ec2.aws_iam_role.ec2",
          native_id_template="{prefix}-ec2-role",
          description="EC2 IAM Role"),
        D(logical_name="ec2_instance_profile", kind=K.INSTANCE_PROFILE,
          address="module.ec2.aws_iam_instance_profile.ec2",
          native_id_template="{prefix}-ec2-profile",
          depends_on=("ec2_role",),
          description="EC2 Instance Profile"),
        D(logical_name="vpc", kind=K.NETWORK,
          address="module.vpc.aws_vpc.main",
          native_id_template="{prefix}-vpc",
          description="VPC"),
        D(logical_name="public_subnet", kind=K.SUBNET,
          address="module.vpc.aws_subnet.public",
          native_id_template="{prefix}-public-subnet",
          depends_on=("vpc",),
          description="Public Subnet"),
        D(logical_name="runner_security_group", kind=K.SECURITY_GROUP,
          address="module.security.aws_security_group.runner",
          native_id_template="{prefix}-runner-sg",
          depends_on=("vpc",),
          description="Runner Security Group"),
        D(logical_name="runner_instance", kind=K.COMPUTE,
          address="module.ec2.aws_instance.runner",
          native_id_template="{prefix}-runner",
          depends_on=("public_subnet", "runner_security_group", "ec2_instance_profile"),
          description="Runner EC2 Instance"),
    ])

    return descriptors


def azure_runner_catalog(naming: NamingContext) -> ResourceCatalog:
    """Validated catalog for the Azure VM runner stack."""
    return ResourceCatalog(azure_runner_descriptors(naming), naming)


def aws_runner_catalog(naming: NamingContext, include_oidc: bool = False) -> ResourceCatalog:
    """Validated catalog for the AWS EC2 runner stack."""
    return ResourceCatalog(aws_runner_descriptors(naming, include_oidc=include_oidc), naming)

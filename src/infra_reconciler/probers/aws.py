"""AWS live state prober."""

from typing import Dict, List

from infra_reconciler.catalog.models import ResourceDescriptor, ResourceKind
from infra_reconciler.probers.base import BaseProber, ProbeSettings
from infra_reconciler.probers.models import LiveResourceState
from infra_reconciler.utils.aws_client import AWSClientManager
from infra_reconciler.utils.errors import ConfigurationError, ErrorContext, NotFound, ReconcileError

# Instance states that still occupy the Name tag; terminated instances linger
# in describe output for about an hour and are treated as absent
LIVE_INSTANCE_STATES = ['pending', 'running', 'stopping', 'stopped', 'shutting-down']


class AWSProber(BaseProber):
    """Probes IAM, EC2, S3 and DynamoDB resources with boto3.

    IAM resources are looked up by name (or ARN for OIDC providers); EC2
    networking and instances by their ``Name`` tag, reporting the
    AWS-assigned ID as the native ID.
    """

    def __init__(self, client_manager: AWSClientManager, settings: ProbeSettings = ProbeSettings(), **kwargs):
        """Initialize AWS prober.

        Args:
            client_manager: Client manager configured with the probe timeout
            settings: Timeout/retry/concurrency policy
        """
        super().__init__(settings, **kwargs)
        self.clients = client_manager

        self._handlers = {
            ResourceKind.ROLE: self._probe_role,
            ResourceKind.INSTANCE_PROFILE: self._probe_instance_profile,
            ResourceKind.OIDC_PROVIDER: self._probe_oidc_provider,
            ResourceKind.NETWORK: self._probe_vpc,
            ResourceKind.SUBNET: self._probe_subnet,
            ResourceKind.SECURITY_GROUP: self._probe_security_group,
            ResourceKind.COMPUTE: self._probe_instance,
            ResourceKind.BUCKET: self._probe_bucket,
            ResourceKind.LOCK_TABLE: self._probe_lock_table,
        }

    def lookup(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        handler = self._handlers.get(descriptor.kind)
        if handler is None:
            raise ConfigurationError(
                f"AWS prober does not support resource kind {descriptor.kind.value}",
                context=ErrorContext(resource_id=descriptor.logical_name)
            )
        return handler(descriptor)

    # IAM

    def _probe_role(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        role = self.clients.get_client('iam').get_role(RoleName=descriptor.expected_id)['Role']
        trust_policy = role.get('AssumeRolePolicyDocument', {})
        return LiveResourceState.present(
            descriptor.logical_name,
            role['RoleName'],
            {
                'arn': role['Arn'],
                'role_id': role.get('RoleId'),
                'trusts_github_oidc': 'token.actions.githubusercontent.com' in str(trust_policy),
            }
        )

    def _probe_instance_profile(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        response = self.clients.get_client('iam').get_instance_profile(
            InstanceProfileName=descriptor.expected_id
        )
        profile = response['InstanceProfile']
        return LiveResourceState.present(
            descriptor.logical_name,
            profile['InstanceProfileName'],
            {
                'arn': profile['Arn'],
                'roles': [role['RoleName'] for role in profile.get('Roles', [])],
            }
        )

    def _probe_oidc_provider(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        response = self.clients.get_client('iam').get_open_id_connect_provider(
            OpenIDConnectProviderArn=descriptor.expected_id
        )
        return LiveResourceState.present(
            descriptor.logical_name,
            descriptor.expected_id,
            {
                'url': response.get('Url'),
                'client_ids': response.get('ClientIDList', []),
            }
        )

    # EC2

    def _single(self, descriptor: ResourceDescriptor, items: List[Dict], id_key: str) -> Dict:
        """Pick the one item matching a tag lookup."""
        if not items:
            raise NotFound(f"No {descriptor.kind.value} named {descriptor.expected_id}")
        if len(items) > 1:
            ids = ", ".join(item[id_key] for item in items)
            raise ReconcileError(
                f"Name '{descriptor.expected_id}' matches {len(items)} resources ({ids}); "
                f"cannot tell which one the engine should track",
                context=ErrorContext(resource_id=descriptor.logical_name)
            )
        return items[0]

    def _name_filter(self, descriptor: ResourceDescriptor) -> List[Dict]:
        return [{'Name': 'tag:Name', 'Values': [descriptor.expected_id]}]

    def _probe_vpc(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        vpcs = self.clients.get_client('ec2').describe_vpcs(
            Filters=self._name_filter(descriptor)
        ).get('Vpcs', [])
        vpc = self._single(descriptor, vpcs, 'VpcId')
        return LiveResourceState.present(
            descriptor.logical_name,
            vpc['VpcId'],
            {'cidr_block': vpc.get('CidrBlock'), 'state': vpc.get('State')}
        )

    def _probe_subnet(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        subnets = self.clients.get_client('ec2').describe_subnets(
            Filters=self._name_filter(descriptor)
        ).get('Subnets', [])
        subnet = self._single(descriptor, subnets, 'SubnetId')
        return LiveResourceState.present(
            descriptor.logical_name,
            subnet['SubnetId'],
            {
                'vpc_id': subnet.get('VpcId'),
                'cidr_block': subnet.get('CidrBlock'),
                'availability_zone': subnet.get('AvailabilityZone'),
            }
        )

    def _probe_security_group(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        groups = self.clients.get_client('ec2').describe_security_groups(
            Filters=[{'Name': 'group-name', 'Values': [descriptor.expected_id]}]
        ).get('SecurityGroups', [])
        group = self._single(descriptor, groups, 'GroupId')
        return LiveResourceState.present(
            descriptor.logical_name,
            group['GroupId'],
            {'vpc_id': group.get('VpcId'), 'group_name': group.get('GroupName')}
        )

    def _probe_instance(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        response = self.clients.get_client('ec2').describe_instances(
            Filters=self._name_filter(descriptor) + [
                {'Name': 'instance-state-name', 'Values': LIVE_INSTANCE_STATES}
            ]
        )
        instances = [
            instance
            for reservation in response.get('Reservations', [])
            for instance in reservation.get('Instances', [])
        ]
        instance = self._single(descriptor, instances, 'InstanceId')
        state = instance.get('State', {}).get('Name')
        return LiveResourceState.present(
            descriptor.logical_name,
            instance['InstanceId'],
            {
                'state': state,
                'instance_type': instance.get('InstanceType'),
                'subnet_id': instance.get('SubnetId'),
            },
            transitional=state == 'shutting-down'
        )

    # Storage

    def _probe_bucket(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        response = self.clients.get_client('s3').head_bucket(Bucket=descriptor.expected_id)
        region = response.get('ResponseMetadata', {}).get('HTTPHeaders', {}).get('x-amz-bucket-region')
        return LiveResourceState.present(
            descriptor.logical_name,
            descriptor.expected_id,
            {'region': region}
        )

    def _probe_lock_table(self, descriptor: ResourceDescriptor) -> LiveResourceState:
        table = self.clients.get_client('dynamodb').describe_table(
            TableName=descriptor.expected_id
        )['Table']
        status = table.get('TableStatus')
        return LiveResourceState.present(
            descriptor.logical_name,
            table['TableName'],
            {'arn': table.get('TableArn'), 'status': status},
            transitional=status == 'DELETING'
        )

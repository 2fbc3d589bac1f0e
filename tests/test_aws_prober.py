"""AWSProber against moto-mocked IAM, EC2, S3 and DynamoDB."""

import json

import boto3
import pytest
from moto import mock_aws

from infra_reconciler.catalog import ResourceDescriptor, ResourceKind, aws_runner_catalog
from infra_reconciler.orchestrator import ActionType, ReconciliationPlanner
from infra_reconciler.probers import ProbeSettings
from infra_reconciler.probers.aws import AWSProber
from infra_reconciler.state import TerraformStateReader
from infra_reconciler.utils.aws_client import AWSClientManager
from infra_reconciler.utils.errors import ProbeFailure
from infra_reconciler.utils.retry import RetryStrategy

REGION = "us-east-1"

TRUST_POLICY = json.dumps({
    "Version": "2012-10-17",
    "Statement": [{
        "Effect": "Allow",
        "Principal": {"Service": "ec2.amazonaws.com"},
        "Action": "sts:AssumeRole",
    }],
})


@pytest.fixture
def aws(aws_credentials):
    with mock_aws():
        yield boto3.Session(region_name=REGION)


@pytest.fixture
def prober(aws):
    manager = AWSClientManager(region=REGION, session=aws)
    retry = RetryStrategy(max_attempts=1, base_delay=0, jitter=False, sleep=lambda _: None)
    return AWSProber(manager, ProbeSettings(max_attempts=1, base_delay=0), retry=retry)


@pytest.fixture
def describe(naming):
    def factory(kind, template, name="resource"):
        return ResourceDescriptor(
            logical_name=name, kind=kind, native_id_template=template
        ).render(naming)
    return factory


def name_tag(value):
    return [{"Key": "Name", "Value": value}]


def create_vpc(ec2, name, cidr="10.0.0.0/16"):
    vpc_id = ec2.create_vpc(CidrBlock=cidr)["Vpc"]["VpcId"]
    ec2.create_tags(Resources=[vpc_id], Tags=name_tag(name))
    return vpc_id


def test_role(aws, prober, describe):
    aws.client("iam").create_role(RoleName="runner-dev-role", AssumeRolePolicyDocument=TRUST_POLICY)

    state = prober.probe(describe(ResourceKind.ROLE, "{prefix}-role"))

    assert state.exists
    assert state.native_id == "runner-dev-role"
    assert state.attributes["arn"].endswith(":role/runner-dev-role")
    assert state.attributes["trusts_github_oidc"] is False


def test_missing_role_is_absent(prober, describe):
    state = prober.probe(describe(ResourceKind.ROLE, "{prefix}-role"))

    assert not state.exists


def test_instance_profile(aws, prober, describe):
    iam = aws.client("iam")
    iam.create_role(RoleName="runner-dev-role", AssumeRolePolicyDocument=TRUST_POLICY)
    iam.create_instance_profile(InstanceProfileName="runner-dev-profile")
    iam.add_role_to_instance_profile(InstanceProfileName="runner-dev-profile", RoleName="runner-dev-role")

    state = prober.probe(describe(ResourceKind.INSTANCE_PROFILE, "{prefix}-profile"))

    assert state.native_id == "runner-dev-profile"
    assert state.attributes["roles"] == ["runner-dev-role"]


def test_vpc_by_name_tag(aws, prober, describe):
    vpc_id = create_vpc(aws.client("ec2"), "runner-dev-vpc")

    state = prober.probe(describe(ResourceKind.NETWORK, "{prefix}-vpc"))

    assert state.native_id == vpc_id
    assert state.attributes["cidr_block"] == "10.0.0.0/16"


def test_untagged_vpc_is_absent(aws, prober, describe):
    aws.client("ec2").create_vpc(CidrBlock="10.1.0.0/16")

    assert not prober.probe(describe(ResourceKind.NETWORK, "{prefix}-vpc")).exists


def test_ambiguous_name_is_probe_failure(aws, prober, describe):
    ec2 = aws.client("ec2")
    create_vpc(ec2, "runner-dev-vpc")
    create_vpc(ec2, "runner-dev-vpc", cidr="10.2.0.0/16")

    with pytest.raises(ProbeFailure) as exc_info:
        prober.probe(describe(ResourceKind.NETWORK, "{prefix}-vpc"))
    assert "matches 2 resources" in exc_info.value.message


def test_subnet(aws, prober, describe):
    ec2 = aws.client("ec2")
    vpc_id = create_vpc(ec2, "runner-dev-vpc")
    subnet_id = ec2.create_subnet(VpcId=vpc_id, CidrBlock="10.0.1.0/24")["Subnet"]["SubnetId"]
    ec2.create_tags(Resources=[subnet_id], Tags=name_tag("runner-dev-public-subnet"))

    state = prober.probe(describe(ResourceKind.SUBNET, "{prefix}-public-subnet"))

    assert state.native_id == subnet_id
    assert state.attributes["vpc_id"] == vpc_id


def test_security_group_by_group_name(aws, prober, describe):
    ec2 = aws.client("ec2")
    vpc_id = create_vpc(ec2, "runner-dev-vpc")
    group_id = ec2.create_security_group(
        GroupName="runner-dev-sg", Description="runner", VpcId=vpc_id
    )["GroupId"]

    state = prober.probe(describe(ResourceKind.SECURITY_GROUP, "{prefix}-sg"))

    assert state.native_id == group_id


def run_instance(ec2, name):
    image_id = ec2.describe_images()["Images"][0]["ImageId"]
    return ec2.run_instances(
        ImageId=image_id,
        MinCount=1,
        MaxCount=1,
        InstanceType="t3.micro",
        TagSpecifications=[{"ResourceType": "instance", "Tags": name_tag(name)}],
    )["Instances"][0]["InstanceId"]


def test_running_instance(aws, prober, describe):
    instance_id = run_instance(aws.client("ec2"), "runner-dev-runner")

    state = prober.probe(describe(ResourceKind.COMPUTE, "{prefix}-runner"))

    assert state.native_id == instance_id
    assert state.attributes["instance_type"] == "t3.micro"
    assert not state.transitional


def test_terminated_instance_is_absent(aws, prober, describe):
    ec2 = aws.client("ec2")
    instance_id = run_instance(ec2, "runner-dev-runner")
    ec2.terminate_instances(InstanceIds=[instance_id])

    assert not prober.probe(describe(ResourceKind.COMPUTE, "{prefix}-runner")).exists


def test_bucket(aws, prober, describe):
    aws.client("s3").create_bucket(Bucket="runner-dev-123456789012-tfstate")

    state = prober.probe(describe(ResourceKind.BUCKET, "{prefix}-{account}-tfstate"))

    assert state.native_id == "runner-dev-123456789012-tfstate"


def test_missing_bucket_is_absent(prober, describe):
    assert not prober.probe(describe(ResourceKind.BUCKET, "{prefix}-{account}-tfstate")).exists


def test_lock_table(aws, prober, describe):
    aws.client("dynamodb").create_table(
        TableName="runner-dev-tflock",
        KeySchema=[{"AttributeName": "LockID", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "LockID", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )

    state = prober.probe(describe(ResourceKind.LOCK_TABLE, "{prefix}-tflock"))

    assert state.native_id == "runner-dev-tflock"
    assert state.attributes["status"] == "ACTIVE"


def test_missing_lock_table_is_absent(prober, describe):
    assert not prober.probe(describe(ResourceKind.LOCK_TABLE, "{prefix}-tflock")).exists


def test_probe_all_over_mixed_catalog(aws, prober, describe):
    create_vpc(aws.client("ec2"), "runner-dev-vpc")
    descriptors = [
        describe(ResourceKind.NETWORK, "{prefix}-vpc", name="network"),
        describe(ResourceKind.ROLE, "{prefix}-role", name="role"),
    ]

    outcomes = prober.probe_all(descriptors)

    assert outcomes["network"].exists
    assert not outcomes["role"].exists


def test_client_manager_resolves_account(aws):
    manager = AWSClientManager(region=REGION, session=aws)

    credentials = manager.get_credentials()

    assert credentials.account_id == "123456789012"
    assert credentials.region == REGION
    assert manager.get_client("ec2") is manager.get_client("ec2")


def create_runner_stack(aws):
    """Create the AWS runner stack the way Terraform would, returning the IDs it records."""
    iam = aws.client("iam")
    ec2 = aws.client("ec2")

    provider_arn = iam.create_open_id_connect_provider(
        Url="https://token.actions.githubusercontent.com",
        ClientIDList=["sts.amazonaws.com"],
        ThumbprintList=["6938fd4d98bab03faadb97b34396831e3780aea1"],
    )["OpenIDConnectProviderArn"]
    iam.create_role(RoleName="runner-dev-github-actions-role", AssumeRolePolicyDocument=TRUST_POLICY)
    iam.create_role(RoleName="runner-dev-ec2-role", AssumeRolePolicyDocument=TRUST_POLICY)
    iam.create_instance_profile(InstanceProfileName="runner-dev-ec2-profile")
    iam.add_role_to_instance_profile(InstanceProfileName="runner-dev-ec2-profile", RoleName="runner-dev-ec2-role")

    vpc_id = create_vpc(ec2, "runner-dev-vpc")
    subnet_id = ec2.create_subnet(VpcId=vpc_id, CidrBlock="10.0.1.0/24")["Subnet"]["SubnetId"]
    ec2.create_tags(Resources=[subnet_id], Tags=name_tag("runner-dev-public-subnet"))
    group_id = ec2.create_security_group(
        GroupName="runner-dev-runner-sg", Description="runner", VpcId=vpc_id
    )["GroupId"]
    instance_id = run_instance(ec2, "runner-dev-runner")

    # Terraform ids: names for IAM roles and profiles, the ARN for OIDC providers, AWS ids for EC2
    return {
        "aws_iam_openid_connect_provider.github": provider_arn,
        "aws_iam_role.github_actions": "runner-dev-github-actions-role",
        "module.ec2.aws_iam_role.ec2": "runner-dev-ec2-role",
        "module.ec2.aws_iam_instance_profile.ec2": "runner-dev-ec2-profile",
        "module.vpc.aws_vpc.main": vpc_id,
        "module.vpc.aws_subnet.public": subnet_id,
        "module.security.aws_security_group.runner": group_id,
        "module.ec2.aws_instance.runner": instance_id,
    }


def test_runner_stack_created_by_terraform_plans_to_noop(aws, prober, naming, tmp_path, make_state):
    catalog = aws_runner_catalog(naming, include_oidc=True)
    recorded = create_runner_stack(aws)
    assert set(recorded) == set(catalog.by_address())

    state_path = tmp_path / "terraform.tfstate"
    state_path.write_text(json.dumps(make_state(recorded)), encoding="utf-8")
    tracked = TerraformStateReader(catalog, state_path=state_path).read_tracked()
    plan = ReconciliationPlanner().plan(catalog, prober.probe_all(catalog.all_descriptors()), tracked)

    not_noop = [(a.logical_name, a.action_type, a.detail) for a in plan if a.action_type != ActionType.NOOP]
    assert not_noop == []


def test_runner_stack_imports_the_ids_terraform_records(aws, prober, naming):
    catalog = aws_runner_catalog(naming, include_oidc=True)
    recorded = create_runner_stack(aws)

    plan = ReconciliationPlanner().plan(catalog, prober.probe_all(catalog.all_descriptors()), {})

    assert {a.address: a.native_id for a in plan} == recorded
    assert {a.action_type for a in plan} == {ActionType.IMPORT}

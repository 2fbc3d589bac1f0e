"""Tests for reading tracked state from Terraform state documents."""

import json

import pytest

from infra_reconciler.catalog import ResourceCatalog, ResourceDescriptor, ResourceKind
from infra_reconciler.state import TerraformStateReader
from infra_reconciler.utils.errors import ConfigurationError


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "terraform.tfstate"


@pytest.fixture
def reader(catalog, state_file):
    return TerraformStateReader(catalog, state_path=state_file)


def write(path, document):
    path.write_text(document if isinstance(document, str) else json.dumps(document), encoding="utf-8")


def test_missing_file_tracks_nothing(reader):
    assert reader.read_tracked() == {}


def test_empty_file_is_treated_as_missing(reader, state_file):
    write(state_file, "  \n")

    assert reader.read_tracked() == {}


def test_reads_catalog_entries(reader, state_file, make_state):
    write(state_file, make_state({
        "module.vpc.aws_vpc.main": "vpc-0a1",
        "module.ec2.aws_instance.runner": "i-0b2",
    }))

    tracked = reader.read_tracked()

    assert set(tracked) == {"network", "vm"}
    assert tracked["vm"].native_id == "i-0b2"
    assert tracked["vm"].address == "module.ec2.aws_instance.runner"
    assert tracked["vm"].last_known_attributes == {"id": "i-0b2"}


def test_ignores_unknown_and_data_entries(reader, state_file, make_state):
    document = make_state({
        "module.vpc.aws_vpc.main": "vpc-0a1",
        "aws_s3_bucket.unrelated": "bucket",
    })
    document["resources"].append({
        "module": "module.vpc",
        "mode": "data",
        "type": "aws_subnet",
        "name": "public",
        "instances": [{"attributes": {"id": "subnet-data"}}],
    })
    write(state_file, document)

    assert set(reader.read_tracked()) == {"network"}


def test_indexed_instances_use_bracket_address(naming, state_file, make_state):
    catalog = ResourceCatalog([
        ResourceDescriptor(logical_name="subnet_a", kind=ResourceKind.SUBNET,
                           native_id_template="{prefix}-a", address='aws_subnet.public["a"]'),
        ResourceDescriptor(logical_name="subnet_0", kind=ResourceKind.SUBNET,
                           native_id_template="{prefix}-0", address="aws_subnet.private[0]"),
    ], naming)
    document = make_state({})
    document["resources"] = [
        {"mode": "managed", "type": "aws_subnet", "name": "public",
         "instances": [{"index_key": "a", "attributes": {"id": "subnet-a"}}]},
        {"mode": "managed", "type": "aws_subnet", "name": "private",
         "instances": [{"index_key": 0, "attributes": {"id": "subnet-0"}}]},
    ]
    write(state_file, document)

    tracked = TerraformStateReader(catalog, state_path=state_file).read_tracked()

    assert tracked["subnet_a"].native_id == "subnet-a"
    assert tracked["subnet_0"].native_id == "subnet-0"


@pytest.mark.parametrize("content", ["{not json", "[1, 2]", '{"version": 3, "resources": []}'])
def test_malformed_state_is_configuration_error(reader, state_file, content):
    write(state_file, content)

    with pytest.raises(ConfigurationError):
        reader.read_tracked()


def test_invalid_resource_shape(reader, state_file, make_state):
    document = make_state({})
    document["resources"] = [{"mode": "managed", "type": "aws_vpc"}]
    write(state_file, document)

    with pytest.raises(ConfigurationError, match="Malformed state"):
        reader.read_tracked()


def test_entry_without_id(reader, state_file, make_state):
    document = make_state({"module.vpc.aws_vpc.main": "vpc-0a1"})
    document["resources"][0]["instances"][0]["attributes"] = {"cidr_block": "10.0.0.0/16"}
    write(state_file, document)

    with pytest.raises(ConfigurationError, match="no id attribute"):
        reader.read_tracked()


def test_reads_through_engine(catalog, fake_engine):
    engine = fake_engine(tracked={"module.vpc.aws_subnet.public": "subnet-1"})

    tracked = TerraformStateReader(catalog, engine=engine).read_tracked()

    assert tracked["subnet"].native_id == "subnet-1"


def test_engine_without_state(catalog, fake_engine):
    assert TerraformStateReader(catalog, engine=fake_engine()).read_tracked() == {}


def test_requires_a_source(catalog):
    with pytest.raises(ConfigurationError):
        TerraformStateReader(catalog)

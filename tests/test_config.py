"""Tests for configuration loading and settings resolution."""

import textwrap
from pathlib import Path

import pytest

from infra_reconciler.catalog import ResourceKind
from infra_reconciler.config import Config, ConfigValidationError
from infra_reconciler.factory import build_catalog
from infra_reconciler.utils.errors import ConfigurationError

AWS_CONFIG = """
project:
  name: runner
  provider: aws
  terraform_dir: infra

probing:
  timeout: 15
  max_attempts: 4

environments:
  dev:
    account: "012345678901"
    region: us-east-1
    state_path: terraform.tfstate
    terraform_vars:
      instance_type: t3.small
  prod:
    account: 123456789012
    region: eu-west-1
"""


def write_config(tmp_path, content):
    path = tmp_path / "reconcile.yaml"
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def test_load_valid_config(tmp_path):
    config = Config(write_config(tmp_path, AWS_CONFIG)).load()

    assert config.project.name == "runner"
    assert config.probing.timeout == 15
    assert set(config.environments) == {"dev", "prod"}
    assert config.environments["dev"].account == "012345678901"
    assert config.environments["prod"].account == "123456789012"


def test_settings_resolve_paths_and_variables(tmp_path):
    settings = Config(write_config(tmp_path, AWS_CONFIG)).settings("dev")

    assert settings.provider == "aws"
    assert settings.terraform_dir == (tmp_path / "infra").resolve()
    assert settings.state_path == (tmp_path / "infra" / "terraform.tfstate").resolve()
    assert settings.terraform_variables() == {
        "project_name": "runner",
        "environment": "dev",
        "aws_region": "us-east-1",
        "instance_type": "t3.small",
    }
    assert settings.probing.to_probe_settings().max_attempts == 4


def test_naming_context_uses_runtime_account_as_fallback(tmp_path):
    config = Config(write_config(tmp_path, """
        project: {name: runner, provider: aws}
    """))

    naming = config.settings("dev").naming_context(account="999999999999")

    assert naming.account == "999999999999"
    assert naming.prefix == "runner-dev"


def test_overrides_take_precedence(tmp_path):
    settings = Config(write_config(tmp_path, AWS_CONFIG)).settings("dev", {
        "project_name": "other",
        "environment_tag": "pr42",
        "region": "us-west-2",
        "profile": None,
    })

    assert settings.project.name == "other"
    assert settings.environment.environment_tag == "pr42"
    assert settings.environment.region == "us-west-2"
    assert settings.naming_context().prefix == "other-dev-pr42"
    assert settings.terraform_variables()["environment_tag"] == "pr42"


def test_missing_file(tmp_path):
    with pytest.raises(ConfigValidationError, match="not found"):
        Config(tmp_path / "missing.yaml").load()


def test_invalid_yaml(tmp_path):
    with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
        Config(write_config(tmp_path, "project: [unclosed")).load()


def test_validation_errors_carry_locations(tmp_path):
    path = write_config(tmp_path, """
        project:
          name: Runner
          provider: gcp
        probing:
          max_workers: 20
        environments:
          dev:
            account: 1234
    """)

    with pytest.raises(ConfigValidationError) as exc_info:
        Config(path).load()

    locations = [tuple(e["loc"]) for e in exc_info.value.errors]
    assert ("project", "name") in locations
    assert ("project", "provider") in locations
    assert ("probing", "max_workers") in locations
    assert ("environments", "dev", "account") in locations
    assert "project -> provider" in str(exc_info.value)


def test_validation_error_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        Config(write_config(tmp_path, "- just\n- a list\n")).load()


def test_missing_project_section(tmp_path):
    with pytest.raises(ConfigValidationError) as exc_info:
        Config(write_config(tmp_path, "environments: {}\n")).load()

    assert exc_info.value.errors[0]["loc"] == ["project"]


def test_unknown_environment(tmp_path):
    config = Config(write_config(tmp_path, AWS_CONFIG)).load()

    with pytest.raises(ConfigValidationError, match="available: dev, prod"):
        config.settings("staging")


def test_azure_requires_subscription(tmp_path):
    path = write_config(tmp_path, """
        project: {name: runner, provider: azure}
        environments:
          dev: {region: westeurope}
    """)

    with pytest.raises(ConfigValidationError) as exc_info:
        Config(path).settings("dev")

    assert "subscription" in str(exc_info.value)


def test_azure_variables_use_location(tmp_path):
    path = write_config(tmp_path, """
        project: {name: runner, provider: azure}
        environments:
          dev:
            account: 00000000-0000-0000-0000-000000000001
            region: westeurope
    """)

    variables = Config(path).settings("dev").terraform_variables()

    assert variables["location"] == "westeurope"
    assert "aws_region" not in variables


def test_catalog_entries(tmp_path):
    path = write_config(tmp_path, """
        project: {name: runner, provider: aws}
        catalog:
          - name: network
            kind: Network
            id: "{prefix}-vpc"
            address: module.vpc.aws_vpc.main
          - name: vm
            kind: Compute
            id: "{prefix}-vm"
            depends_on: [network]
            importable: false
    """)

    settings = Config(path).settings("dev")
    descriptors = [entry.to_descriptor() for entry in settings.catalog]

    assert descriptors[0].kind == ResourceKind.NETWORK
    assert descriptors[0].engine_address == "module.vpc.aws_vpc.main"
    assert descriptors[1].depends_on == ("network",)
    assert descriptors[1].importable is False


def test_invalid_catalog_kind(tmp_path):
    path = write_config(tmp_path, """
        project: {name: runner, provider: aws}
        catalog:
          - {name: thing, kind: Spaceship, id: x}
    """)

    with pytest.raises(ConfigValidationError) as exc_info:
        Config(path).load()

    assert exc_info.value.errors[0]["loc"][:3] == ["catalog", 0, "kind"]


def test_example_config_environments_render_their_provider_catalog():
    config = Config(str(Path(__file__).parent.parent / "reconcile.example.yaml")).load()

    for env_name in config.environments:
        settings = config.settings(env_name)
        catalog = build_catalog(settings)
        assert settings.provider == "azure"
        assert catalog.describe("resource_group").expected_id.startswith(
            f"/subscriptions/{settings.environment.account}/"
        )

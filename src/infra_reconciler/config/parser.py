"""YAML configuration parser."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from infra_reconciler.config.models import (
    CatalogEntryConfig,
    EnvironmentConfig,
    ProbingConfig,
    ProjectConfig,
    ReconcilerSettings,
)
from infra_reconciler.utils.errors import ConfigurationError

DEFAULT_CONFIG_FILE = "reconcile.yaml"


class ConfigValidationError(ConfigurationError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  • {location}: {msg}")

        return "\n".join(error_lines)

    def to_user_message(self) -> str:
        return f"CRITICAL: {self}"


def _errors_at(prefix: List[Any], error: ValidationError) -> List[Dict]:
    return [{"loc": prefix + list(e["loc"]), "msg": e["msg"]} for e in error.errors()]


class Config:
    """Configuration manager for reconcile.yaml."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_FILE):
        """Initialize configuration manager.

        Args:
            config_path: Path to the reconcile.yaml configuration file
        """
        self.config_path = Path(config_path)
        self.data: Dict = {}
        self.project: Optional[ProjectConfig] = None
        self.probing: ProbingConfig = ProbingConfig()
        self.catalog: Optional[List[CatalogEntryConfig]] = None
        self.environments: Dict[str, EnvironmentConfig] = {}

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If the file is missing or invalid
        """
        if not self.config_path.exists():
            raise ConfigValidationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Configuration must be a YAML mapping")

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.project = ProjectConfig(**self.data["project"])
        self.probing = ProbingConfig(**(self.data.get("probing") or {}))
        if self.data.get("catalog") is not None:
            self.catalog = [CatalogEntryConfig(**entry) for entry in self.data["catalog"]]
        self.environments = {
            str(name): EnvironmentConfig(**{**(env or {}), "name": str(name)})
            for name, env in (self.data.get("environments") or {}).items()
        }
        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if "project" not in self.data:
            errors.append({"loc": ["project"], "msg": "Required field 'project' is missing"})
        elif not isinstance(self.data["project"], dict):
            errors.append({"loc": ["project"], "msg": "Project must be a mapping"})
        else:
            try:
                ProjectConfig(**self.data["project"])
            except ValidationError as e:
                errors.extend(_errors_at(["project"], e))

        probing = self.data.get("probing")
        if probing is not None and not isinstance(probing, dict):
            errors.append({"loc": ["probing"], "msg": "Probing must be a mapping"})
        elif probing is not None:
            try:
                ProbingConfig(**probing)
            except ValidationError as e:
                errors.extend(_errors_at(["probing"], e))

        catalog = self.data.get("catalog")
        if catalog is not None:
            if not isinstance(catalog, list):
                errors.append({"loc": ["catalog"], "msg": "Catalog must be a list of resources"})
            else:
                for idx, entry in enumerate(catalog):
                    if not isinstance(entry, dict):
                        errors.append({"loc": ["catalog", idx], "msg": "Entry must be a mapping"})
                        continue
                    try:
                        CatalogEntryConfig(**entry)
                    except ValidationError as e:
                        errors.extend(_errors_at(["catalog", idx], e))

        environments = self.data.get("environments")
        if environments is not None:
            if not isinstance(environments, dict):
                errors.append({"loc": ["environments"], "msg": "Environments must be a dictionary"})
            else:
                for env_name, env_data in environments.items():
                    if env_data is not None and not isinstance(env_data, dict):
                        errors.append({"loc": ["environments", env_name], "msg": "Environment must be a mapping"})
                        continue
                    try:
                        EnvironmentConfig(**{**(env_data or {}), "name": str(env_name)})
                    except ValidationError as e:
                        errors.extend(_errors_at(["environments", env_name], e))

        return errors

    def get_environment(self, env_name: str) -> EnvironmentConfig:
        """Get environment configuration.

        Unknown environments are allowed when no environments are declared,
        so a bare project section works for ad-hoc runs.

        Raises:
            ConfigValidationError: If environments are declared and this one is not
        """
        if env_name in self.environments:
            return self.environments[env_name]
        if not self.environments:
            return EnvironmentConfig(name=env_name)

        available = ", ".join(sorted(self.environments))
        raise ConfigValidationError(
            f"Environment '{env_name}' not found in configuration (available: {available})"
        )

    def settings(self, env_name: str, overrides: Optional[Dict[str, Any]] = None) -> ReconcilerSettings:
        """Resolve immutable settings for one environment.

        Args:
            env_name: Environment name
            overrides: Values from the command line or its environment
                (``project_name``, ``environment_tag``, ``region``,
                ``account``, ``profile``); ``None`` values are ignored

        Raises:
            ConfigValidationError: If the resolved settings are invalid
        """
        if self.project is None:
            self.load()

        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        project = self.project
        if "project_name" in overrides:
            project = project.model_copy(update={"name": overrides.pop("project_name")})

        environment = self.get_environment(env_name)
        env_fields = {k: v for k, v in overrides.items() if k in EnvironmentConfig.model_fields}

        try:
            if env_fields:
                environment = EnvironmentConfig(**{**environment.model_dump(), **env_fields})
            return ReconcilerSettings(
                project=ProjectConfig(**project.model_dump()),
                environment=environment,
                probing=self.probing,
                catalog=self.catalog,
                base_dir=self.config_path.resolve().parent
            )
        except ValidationError as e:
            raise ConfigValidationError(
                f"Invalid settings for environment '{env_name}'",
                _errors_at([], e)
            )

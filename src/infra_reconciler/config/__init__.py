"""Configuration management."""

from infra_reconciler.config.models import (
    CatalogEntryConfig,
    EnvironmentConfig,
    ProbingConfig,
    ProjectConfig,
    ReconcilerSettings,
)
from infra_reconciler.config.parser import DEFAULT_CONFIG_FILE, Config, ConfigValidationError

__all__ = [
    "CatalogEntryConfig",
    "EnvironmentConfig",
    "ProbingConfig",
    "ProjectConfig",
    "ReconcilerSettings",
    "DEFAULT_CONFIG_FILE",
    "Config",
    "ConfigValidationError",
]

"""pgcluster components and configuration models."""

from .config_base import ConfigModel
from .specs import (
    AdditionalVolume,
    EnvVar,
    OperatorConfig,
    PostgresCluster,
    PostgresSpec,
    Resources,
    Sidecar,
)

__all__ = [
    # Base
    "ConfigModel",
    # Models
    "AdditionalVolume",
    "EnvVar",
    "OperatorConfig",
    "PostgresCluster",
    "PostgresSpec",
    "Resources",
    "Sidecar",
]

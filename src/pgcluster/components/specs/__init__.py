"""Manifest and configuration models for pgcluster."""

from .cluster import (
    CloneDescription,
    ConnectionPoolerSpec,
    ObjectMetadata,
    PatroniSpec,
    PostgresCluster,
    PostgresqlParam,
    PostgresSpec,
    StandbyDescription,
    TLSDescription,
    VolumeSpec,
)
from .common import (
    AdditionalVolume,
    EnvVar,
    ResourceDescription,
    Resources,
    Sidecar,
)
from .operator import (
    ConnectionPoolerConfig,
    LogicalBackupConfig,
    OperatorConfig,
    ScalyrConfig,
)

__all__ = [
    # Common
    "AdditionalVolume",
    "EnvVar",
    "ResourceDescription",
    "Resources",
    "Sidecar",
    # Cluster manifest
    "CloneDescription",
    "ConnectionPoolerSpec",
    "ObjectMetadata",
    "PatroniSpec",
    "PostgresCluster",
    "PostgresqlParam",
    "PostgresSpec",
    "StandbyDescription",
    "TLSDescription",
    "VolumeSpec",
    # Operator
    "ConnectionPoolerConfig",
    "LogicalBackupConfig",
    "OperatorConfig",
    "ScalyrConfig",
]

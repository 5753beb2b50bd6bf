"""Object storage providers for the WAL archive and logical backups.

Each provider is a small variant type that knows its own environment
variables, so callers pick a variant once instead of branching on bucket
settings everywhere.
"""

from dataclasses import dataclass

from kubernetes.client import V1EnvVar

from ..components.specs import LogicalBackupConfig, OperatorConfig
from ..errors import ConfigurationError


def bucket_scope_suffix(uid: str) -> str:
    """Per-cluster path suffix inside a shared bucket."""
    return f"/{uid}" if uid else ""


def _scope_env(uid: str) -> list[V1EnvVar]:
    return [
        V1EnvVar(name="WAL_BUCKET_SCOPE_SUFFIX", value=bucket_scope_suffix(uid)),
        V1EnvVar(name="WAL_BUCKET_SCOPE_PREFIX", value=""),
    ]


@dataclass(frozen=True)
class S3WalStorage:
    bucket: str

    def archive_env(self, uid: str) -> list[V1EnvVar]:
        return [V1EnvVar(name="WAL_S3_BUCKET", value=self.bucket), *_scope_env(uid)]

    def clone_env(self) -> list[V1EnvVar]:
        return [V1EnvVar(name="CLONE_WAL_S3_BUCKET", value=self.bucket)]


@dataclass(frozen=True)
class GcsWalStorage:
    bucket: str
    credentials: str = ""

    def archive_env(self, uid: str) -> list[V1EnvVar]:
        env = [V1EnvVar(name="WAL_GS_BUCKET", value=self.bucket), *_scope_env(uid)]
        if self.credentials:
            env.append(V1EnvVar(name="GOOGLE_APPLICATION_CREDENTIALS", value=self.credentials))
        return env

    def clone_env(self) -> list[V1EnvVar]:
        env = [V1EnvVar(name="CLONE_WAL_GS_BUCKET", value=self.bucket)]
        if self.credentials:
            env.append(V1EnvVar(name="CLONE_GOOGLE_APPLICATION_CREDENTIALS", value=self.credentials))
        return env


@dataclass(frozen=True)
class AzureWalStorage:
    storage_account: str

    def archive_env(self, uid: str) -> list[V1EnvVar]:
        return [V1EnvVar(name="AZURE_STORAGE_ACCOUNT", value=self.storage_account), *_scope_env(uid)]

    def clone_env(self) -> list[V1EnvVar]:
        return [V1EnvVar(name="CLONE_AZURE_STORAGE_ACCOUNT", value=self.storage_account)]


WalStorage = S3WalStorage | GcsWalStorage | AzureWalStorage


def wal_storages(config: OperatorConfig) -> list[WalStorage]:
    """Configured WAL archive locations, S3 first, then GCS, then Azure."""
    storages: list[WalStorage] = []
    if config.wal_s3_bucket:
        storages.append(S3WalStorage(config.wal_s3_bucket))
    if config.wal_gs_bucket:
        storages.append(GcsWalStorage(config.wal_gs_bucket, config.gcp_credentials))
    if config.wal_az_storage_account:
        storages.append(AzureWalStorage(config.wal_az_storage_account))
    return storages


def wal_archive_env(config: OperatorConfig, uid: str) -> list[V1EnvVar]:
    """Operator wide archive settings for the postgres container."""
    env: list[V1EnvVar] = []
    for storage in wal_storages(config):
        env.extend(storage.archive_env(uid))
    if config.gcp_credentials and not config.wal_gs_bucket:
        env.append(V1EnvVar(name="GOOGLE_APPLICATION_CREDENTIALS", value=config.gcp_credentials))
    if config.log_s3_bucket:
        env.extend(
            [
                V1EnvVar(name="LOG_S3_BUCKET", value=config.log_s3_bucket),
                V1EnvVar(name="LOG_BUCKET_SCOPE_SUFFIX", value=bucket_scope_suffix(uid)),
                V1EnvVar(name="LOG_BUCKET_SCOPE_PREFIX", value=""),
            ]
        )
    return env


# Logical backup providers


@dataclass(frozen=True)
class S3BackupProvider:
    name = "s3"

    def env(self, config: LogicalBackupConfig, retention: str) -> list[V1EnvVar]:
        return [
            V1EnvVar(name="LOGICAL_BACKUP_S3_REGION", value=config.s3_region),
            V1EnvVar(name="LOGICAL_BACKUP_S3_ENDPOINT", value=config.s3_endpoint),
            V1EnvVar(name="LOGICAL_BACKUP_S3_SSE", value=config.s3_sse),
            V1EnvVar(name="LOGICAL_BACKUP_S3_RETENTION_TIME", value=retention or config.s3_retention_time),
        ]


@dataclass(frozen=True)
class GcsBackupProvider:
    name = "gcs"

    def env(self, config: LogicalBackupConfig, retention: str) -> list[V1EnvVar]:
        return [
            V1EnvVar(
                name="LOGICAL_BACKUP_GOOGLE_APPLICATION_CREDENTIALS",
                value=config.google_application_credentials,
            )
        ]


@dataclass(frozen=True)
class AzureBackupProvider:
    name = "az"

    def env(self, config: LogicalBackupConfig, retention: str) -> list[V1EnvVar]:
        return [
            V1EnvVar(name="LOGICAL_BACKUP_AZURE_STORAGE_ACCOUNT_NAME", value=config.azure_storage_account_name),
            V1EnvVar(name="LOGICAL_BACKUP_AZURE_STORAGE_CONTAINER", value=config.azure_storage_container),
            V1EnvVar(name="LOGICAL_BACKUP_AZURE_STORAGE_ACCOUNT_KEY", value=config.azure_storage_account_key),
        ]


BackupProvider = S3BackupProvider | GcsBackupProvider | AzureBackupProvider

BACKUP_PROVIDERS: dict[str, BackupProvider] = {
    provider.name: provider
    for provider in (S3BackupProvider(), GcsBackupProvider(), AzureBackupProvider())
}


def backup_provider(name: str) -> BackupProvider:
    try:
        return BACKUP_PROVIDERS[name]
    except KeyError:
        raise ConfigurationError(f"unknown logical backup provider: {name}") from None

"""Tests for WAL archive and logical backup storage providers."""

import pytest
from pgcluster.components.specs import OperatorConfig
from pgcluster.errors import ConfigurationError
from pgcluster.synthesis.storage import (
    AzureWalStorage,
    GcsWalStorage,
    S3WalStorage,
    backup_provider,
    bucket_scope_suffix,
    wal_archive_env,
    wal_storages,
)


def as_pairs(env) -> list[tuple[str, str]]:
    return [(v.name, v.value) for v in env]


class TestWalStorage:
    """Test WAL archive locations."""

    def test_scope_suffix(self):
        """Test the per-cluster bucket suffix."""
        assert bucket_scope_suffix("d4a5") == "/d4a5"
        assert bucket_scope_suffix("") == ""

    def test_none_configured(self):
        """Test that no archive settings give no variables."""
        assert wal_storages(OperatorConfig()) == []
        assert wal_archive_env(OperatorConfig(), "d4a5") == []

    def test_order(self):
        """Test that S3 comes before GCS and Azure."""
        config = OperatorConfig(wal_az_storage_account="account", wal_gs_bucket="gs", wal_s3_bucket="s3")
        assert wal_storages(config) == [S3WalStorage("s3"), GcsWalStorage("gs"), AzureWalStorage("account")]

    def test_s3_archive_env(self):
        """Test S3 archive variables."""
        env = wal_archive_env(OperatorConfig(wal_s3_bucket="bucket"), "d4a5")
        assert as_pairs(env) == [
            ("WAL_S3_BUCKET", "bucket"),
            ("WAL_BUCKET_SCOPE_SUFFIX", "/d4a5"),
            ("WAL_BUCKET_SCOPE_PREFIX", ""),
        ]

    def test_gcs_credentials_without_bucket(self):
        """Test that GCP credentials are passed on without a GCS bucket."""
        env = wal_archive_env(OperatorConfig(gcp_credentials="/creds.json"), "")
        assert as_pairs(env) == [("GOOGLE_APPLICATION_CREDENTIALS", "/creds.json")]

    def test_azure_archive_env(self):
        """Test Azure archive variables."""
        env = wal_archive_env(OperatorConfig(wal_az_storage_account="account"), "")
        assert as_pairs(env)[0] == ("AZURE_STORAGE_ACCOUNT", "account")

    def test_log_bucket(self):
        """Test log archive variables."""
        env = wal_archive_env(OperatorConfig(log_s3_bucket="logs"), "d4a5")
        assert as_pairs(env) == [
            ("LOG_S3_BUCKET", "logs"),
            ("LOG_BUCKET_SCOPE_SUFFIX", "/d4a5"),
            ("LOG_BUCKET_SCOPE_PREFIX", ""),
        ]


class TestBackupProvider:
    """Test logical backup provider lookup."""

    @pytest.mark.parametrize("name", ["s3", "gcs", "az"])
    def test_known(self, name):
        """Test the known providers."""
        assert backup_provider(name).name == name

    def test_unknown(self):
        """Test that unknown providers are configuration errors."""
        with pytest.raises(ConfigurationError, match="unknown logical backup provider: ftp"):
            backup_provider("ftp")

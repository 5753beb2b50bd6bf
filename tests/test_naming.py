"""Tests for centralized naming module."""

import pytest
from pgcluster.core.k8s import truncate_name
from pgcluster.core.naming import ClusterNaming


class TestClusterNaming:
    """Test suite for ClusterNaming class."""

    def test_statefulset_name(self):
        """Test that the workload is named after the cluster."""
        assert ClusterNaming.statefulset_name("acid-test-cluster") == "acid-test-cluster"

    def test_service_name(self):
        """Test Service names per role."""
        assert ClusterNaming.service_name("acid-test", "master") == "acid-test"
        assert ClusterNaming.service_name("acid-test", "replica") == "acid-test-repl"

        with pytest.raises(ValueError, match="Unknown role"):
            ClusterNaming.service_name("acid-test", "standby")

    def test_pooler_name(self):
        """Test connection pooler names per role."""
        assert ClusterNaming.pooler_name("acid-test", "master") == "acid-test-pooler"
        assert ClusterNaming.pooler_name("acid-test", "replica") == "acid-test-pooler-repl"

    def test_credential_secret_name(self):
        """Test credential Secret names from the configured template."""
        template = "{username}.{cluster}.credentials.{tprkind}.{tprgroup}"
        assert (
            ClusterNaming.credential_secret_name(template, "postgres", "acid-test-cluster")
            == "postgres.acid-test-cluster.credentials.postgresql.acid.zalan.do"
        )

        # Underscores are not valid in object names
        assert (
            ClusterNaming.credential_secret_name(template, "foo_user", "acid-test")
            == "foo-user.acid-test.credentials.postgresql.acid.zalan.do"
        )

        assert ClusterNaming.credential_secret_name("", "postgres", "acid-test") == ""

    def test_pdb_names(self):
        """Test disruption budget names."""
        assert ClusterNaming.pdb_name("postgres-{cluster}-pdb", "myapp-database") == "postgres-myapp-database-pdb"
        assert ClusterNaming.pdb_name("{cluster}-budget", "myapp-database") == "myapp-database-budget"
        assert (
            ClusterNaming.critical_op_pdb_name("postgres-{cluster}-pdb", "myapp-database")
            == "postgres-myapp-database-critical-op-pdb"
        )

    def test_logical_backup_job_name(self):
        """Test logical backup job names with and without a prefix."""
        assert ClusterNaming.logical_backup_job_name("logical-backup-", "acid-test") == "logical-backup-acid-test"
        assert ClusterNaming.logical_backup_job_name("", "acid-test") == "acid-test"

        # 58 characters fit the limit and are kept whole
        long_prefix = "test-long-prefix-so-name-must-be-trimmed-"
        name = ClusterNaming.logical_backup_job_name(long_prefix, "acid-test-cluster")
        assert name == "test-long-prefix-so-name-must-be-trimmed-acid-test-cluster"
        assert len(name) == 58

    def test_logical_backup_job_name_too_long(self):
        """Test that names over the limit are trimmed from the end."""
        name = ClusterNaming.logical_backup_job_name("a-very-long-logical-backup-prefix-", "acid-" + "x" * 40)
        assert len(name) == 63
        assert name.startswith("a-very-long-logical-backup-prefix-acid-")

    def test_dns_name(self):
        """Test external DNS names of load balanced Services."""
        # The team prefix is not repeated in the hostname
        assert (
            ClusterNaming.dns_name(
                "{cluster}.{namespace}.{hostedzone}", "acid-test-cluster", "acid", "default", "db.example.com"
            )
            == "test-cluster.default.db.example.com"
        )
        assert (
            ClusterNaming.dns_name(
                "{cluster}-repl.{team}.{hostedzone}", "other-cluster", "acid", "default", "db.example.com"
            )
            == "other-cluster-repl.acid.db.example.com"
        )


class TestTruncateName:
    """Test suite for object name truncation."""

    def test_short_names_unchanged(self):
        """Test that names within the limit are returned as is."""
        assert truncate_name("acid-test") == "acid-test"
        assert truncate_name("x" * 63) == "x" * 63

    def test_long_names_trimmed(self):
        """Test trimming to the limit."""
        assert truncate_name("x" * 70) == "x" * 63
        assert truncate_name("abcdef", max_length=4) == "abcd"

    def test_no_trailing_separator(self):
        """Test that a trimmed name never ends in a separator."""
        assert truncate_name("abc-def", max_length=4) == "abc"
        assert truncate_name("ab.-cdef", max_length=4) == "ab"

"""Centralized naming conventions for generated cluster objects.

This module provides a single source of truth for the names of every object
derived from a ``postgresql`` resource, so that the workload, its services,
budgets, jobs and credential references always agree with each other.
"""

from .constants import CRD_GROUP, CRD_KIND, MASTER_ROLE, REPLICA_ROLE
from .k8s import truncate_name


class ClusterNaming:
    """Names of the objects generated for one cluster."""

    REPLICA_SUFFIX = "-repl"
    POOLER_SUFFIX = "-pooler"
    CRITICAL_OP_SUFFIX = "-critical-op"

    @staticmethod
    def statefulset_name(cluster: str) -> str:
        """The workload is named after the cluster."""
        return cluster

    @staticmethod
    def service_name(cluster: str, role: str) -> str:
        """
        Get the Service name for a role.

        Args:
            cluster: Cluster name
            role: "master" or "replica"

        Returns:
            The cluster name for the master, with "-repl" appended for the replica

        Example:
            >>> ClusterNaming.service_name("acid-test", "replica")
            'acid-test-repl'
        """
        if role == MASTER_ROLE:
            return cluster
        if role == REPLICA_ROLE:
            return f"{cluster}{ClusterNaming.REPLICA_SUFFIX}"
        raise ValueError(f"Unknown role: {role}")

    @staticmethod
    def pooler_name(cluster: str, role: str) -> str:
        """
        Get the connection pooler Deployment and Service name for a role.

        Example:
            >>> ClusterNaming.pooler_name("acid-test", "master")
            'acid-test-pooler'
            >>> ClusterNaming.pooler_name("acid-test", "replica")
            'acid-test-pooler-repl'
        """
        name = f"{cluster}{ClusterNaming.POOLER_SUFFIX}"
        if role == REPLICA_ROLE:
            name = f"{name}{ClusterNaming.REPLICA_SUFFIX}"
        return truncate_name(name)

    @staticmethod
    def credential_secret_name(template: str, username: str, cluster: str) -> str:
        """
        Render the name of the Secret holding a database user's password.

        Underscores in the username are not valid in object names and are
        replaced with dashes.

        Args:
            template: Format with {username}, {cluster}, {tprkind} and {tprgroup}
            username: Database role name
            cluster: Cluster name

        Returns:
            Secret name, or an empty string if no template is configured
        """
        if not template:
            return ""
        return template.format(
            username=username.replace("_", "-"),
            cluster=cluster,
            tprkind=CRD_KIND,
            tprgroup=CRD_GROUP,
        )

    @staticmethod
    def pdb_name(name_format: str, cluster: str) -> str:
        """Primary disruption budget name from the configured format."""
        return name_format.format(cluster=cluster)

    @staticmethod
    def critical_op_pdb_name(name_format: str, cluster: str) -> str:
        """
        Critical operation disruption budget name.

        Example:
            >>> ClusterNaming.critical_op_pdb_name("postgres-{cluster}-pdb", "acid-test")
            'postgres-acid-test-critical-op-pdb'
        """
        return name_format.format(cluster=f"{cluster}{ClusterNaming.CRITICAL_OP_SUFFIX}")

    @staticmethod
    def logical_backup_job_name(prefix: str, cluster: str) -> str:
        """Prefix plus cluster name, trimmed from the end to fit the name limit."""
        return truncate_name(f"{prefix}{cluster}")

    @staticmethod
    def dns_name(name_format: str, cluster: str, team: str, namespace: str, hosted_zone: str) -> str:
        """
        Render the external DNS name of a load balanced service.

        A cluster named "<team>-<name>" contributes only "<name>" so the
        team is not repeated in the hostname.
        """
        short_name = cluster
        if team and cluster.lower().startswith(f"{team.lower()}-"):
            short_name = cluster[len(team) + 1:]
        return name_format.format(
            cluster=short_name, team=team, namespace=namespace, hostedzone=hosted_zone
        ).lower()

"""Scheduled logical backup CronJob."""

import logging

from kubernetes.client import (
    V1Affinity,
    V1Container,
    V1CronJob,
    V1CronJobSpec,
    V1EnvVar,
    V1JobSpec,
    V1JobTemplateSpec,
    V1LabelSelector,
    V1ObjectMeta,
    V1PodAffinity,
    V1PodAffinityTerm,
    V1PodSpec,
    V1PodTemplateSpec,
    V1ResourceRequirements,
    V1WeightedPodAffinityTerm,
)

from ..core.constants import (
    LOGICAL_BACKUP_APPLICATION,
    LOGICAL_BACKUP_CONTAINER_NAME,
    PASSWORD_KEY,
    POSTGRES_PORT,
)
from ..core.k8s import field_ref_env
from ..core.naming import ClusterNaming
from .context import ClusterContext
from .env import EnvironmentComposer, Stage, compose, secret_ref_env
from .pod import node_affinity
from .resources import coalesce, describe, resolve_resources
from .sidecars import PULL_IF_NOT_PRESENT
from .storage import backup_provider, bucket_scope_suffix

logger = logging.getLogger(__name__)

HOSTNAME_TOPOLOGY_KEY = "kubernetes.io/hostname"


class LogicalBackupGenerator:
    """Builds the CronJob dumping a cluster to object storage on a schedule."""

    def __init__(self, ctx: ClusterContext):
        self.ctx = ctx
        self.config = ctx.config
        self.backup = ctx.config.logical_backup

    def schedule(self) -> str:
        return self.ctx.spec.logical_backup_schedule or self.backup.schedule

    def job_name(self) -> str:
        return ClusterNaming.logical_backup_job_name(self.backup.job_prefix, self.ctx.name)

    def connection_env(self) -> list[V1EnvVar]:
        """Where and as whom the dump connects."""
        super_username = self.config.super_username
        return [
            V1EnvVar(name="SCOPE", value=self.ctx.name),
            V1EnvVar(name="CLUSTER_NAME_LABEL", value=self.config.cluster_name_label),
            field_ref_env("POD_NAMESPACE", "metadata.namespace"),
            V1EnvVar(name="PG_VERSION", value=self.ctx.spec.postgresql.version),
            V1EnvVar(name="PGPORT", value=str(POSTGRES_PORT)),
            V1EnvVar(name="PGUSER", value=super_username),
            V1EnvVar(name="PGDATABASE", value="postgres"),
            V1EnvVar(name="PGSSLMODE", value="require"),
            secret_ref_env("PGPASSWORD", self.ctx.credential_secret_name(super_username), PASSWORD_KEY),
        ]

    def storage_env(self) -> list[V1EnvVar]:
        """Bucket settings followed by the selected provider's own block."""
        backup = self.backup
        provider = backup_provider(backup.provider)
        env = [
            V1EnvVar(name="LOGICAL_BACKUP_PROVIDER", value=provider.name),
            V1EnvVar(name="LOGICAL_BACKUP_S3_BUCKET", value=backup.s3_bucket),
            V1EnvVar(name="LOGICAL_BACKUP_S3_BUCKET_PREFIX", value=backup.s3_bucket_prefix),
            V1EnvVar(
                name="LOGICAL_BACKUP_S3_BUCKET_SCOPE_SUFFIX", value=bucket_scope_suffix(self.ctx.uid)
            ),
        ]
        env.extend(provider.env(backup, self.ctx.spec.logical_backup_retention))

        if backup.s3_access_key_id:
            env.append(V1EnvVar(name="AWS_ACCESS_KEY_ID", value=backup.s3_access_key_id))
        if backup.s3_secret_access_key:
            env.append(V1EnvVar(name="AWS_SECRET_ACCESS_KEY", value=backup.s3_secret_access_key))
        return env

    def env(self) -> list[V1EnvVar]:
        """
        Complete environment of the backup container.

        Raises:
            ConfigurationError: If the configured provider is unknown
            ExternalSourceError: If the cronjob environment Secret cannot be read
        """
        return compose(
            {
                Stage.IDENTITY: self.connection_env(),
                Stage.FEATURES: self.storage_env(),
                Stage.POD_ENV_SECRET: EnvironmentComposer(self.ctx).cronjob_secret_env(),
            }
        )

    def resources(self) -> V1ResourceRequirements:
        backup, config = self.backup, self.config
        declared = describe(
            coalesce(backup.cpu_request, config.default_cpu_request),
            coalesce(backup.memory_request, config.default_memory_request),
            coalesce(backup.cpu_limit, config.default_cpu_limit),
            coalesce(backup.memory_limit, config.default_memory_limit),
        )
        return resolve_resources(self.ctx, LOGICAL_BACKUP_CONTAINER_NAME, declared)

    def affinity(self) -> V1Affinity:
        """Prefer nodes already running a backup of the same cluster."""
        labels = {
            self.config.cluster_name_label: self.ctx.name,
            "application": LOGICAL_BACKUP_APPLICATION,
        }
        return V1Affinity(
            node_affinity=node_affinity(self.config.node_readiness_label, None),
            pod_affinity=V1PodAffinity(
                preferred_during_scheduling_ignored_during_execution=[
                    V1WeightedPodAffinityTerm(
                        weight=1,
                        pod_affinity_term=V1PodAffinityTerm(
                            label_selector=V1LabelSelector(match_labels=labels),
                            topology_key=HOSTNAME_TOPOLOGY_KEY,
                        ),
                    )
                ]
            ),
        )

    def generate(self) -> V1CronJob:
        ctx = self.ctx
        labels = ctx.labels(extra=True)
        annotations = ctx.annotations()

        container = V1Container(
            name=LOGICAL_BACKUP_CONTAINER_NAME,
            image=self.backup.docker_image,
            image_pull_policy=PULL_IF_NOT_PRESENT,
            env=self.env(),
            resources=self.resources(),
        )
        pod_template = V1PodTemplateSpec(
            metadata=V1ObjectMeta(labels=labels, namespace=ctx.namespace, annotations=annotations),
            spec=V1PodSpec(
                containers=[container],
                restart_policy="Never",
                service_account_name=self.config.pod_service_account_name,
                termination_grace_period_seconds=self.config.pod_terminate_grace_period,
                affinity=self.affinity(),
            ),
        )

        name = self.job_name()
        logger.debug(f"logical backup job {name} scheduled at {self.schedule()!r}")
        return V1CronJob(
            api_version="batch/v1",
            kind="CronJob",
            metadata=ctx.object_meta(name, labels, annotations),
            spec=V1CronJobSpec(
                schedule=self.schedule(),
                concurrency_policy="Forbid",
                job_template=V1JobTemplateSpec(
                    metadata=V1ObjectMeta(labels=labels, annotations=annotations),
                    spec=V1JobSpec(template=pod_template),
                ),
            ),
        )


def generate_logical_backup_job(ctx: ClusterContext) -> V1CronJob:
    return LogicalBackupGenerator(ctx).generate()

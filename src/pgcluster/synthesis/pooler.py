"""Connection pooler Deployments and Services, one pair per enabled role."""

import logging
from dataclasses import dataclass

from kubernetes.client import (
    V1Affinity,
    V1Container,
    V1ContainerPort,
    V1Deployment,
    V1DeploymentSpec,
    V1EnvVar,
    V1LabelSelector,
    V1ObjectMeta,
    V1PodSpec,
    V1PodTemplateSpec,
    V1Service,
)

from ..components.specs import ConnectionPoolerSpec
from ..core.constants import (
    CONNECTION_POOLER_APPLICATION,
    CONNECTION_POOLER_CONTAINER_NAME,
    CONNECTION_POOLER_LABEL,
    ELB_TIMEOUT_ANNOTATION,
    ELB_TIMEOUT_VALUE,
    MASTER_ROLE,
    PASSWORD_KEY,
    POSTGRES_PORT,
    REPLICA_ROLE,
)
from ..core.naming import ClusterNaming
from .context import ClusterContext
from .env import Stage, compose, secret_ref_env
from .pod import PodTemplateComposer, pod_anti_affinity
from .resources import describe, resolve_resources
from .services import service_spec, should_create_load_balancer
from .sidecars import PULL_IF_NOT_PRESENT

logger = logging.getLogger(__name__)

MAX_CLIENT_CONNECTIONS = 10000


@dataclass(frozen=True)
class PoolSize:
    """PgBouncer pool sizes derived from the database connection budget."""

    max_db_connections: int
    default_size: int
    min_size: int
    reserve_size: int

    @classmethod
    def for_instances(cls, max_db_connections: int, instances: int) -> "PoolSize":
        """
        Split the connection budget across pooler instances.

        Example:
            >>> PoolSize.for_instances(60, 2)
            PoolSize(max_db_connections=30, default_size=15, min_size=7, reserve_size=7)
        """
        per_instance = max_db_connections // max(instances, 1)
        default_size = per_instance // 2
        min_size = default_size // 2
        return cls(per_instance, default_size, min_size, min_size)


def pooler_roles(ctx: ClusterContext) -> list[str]:
    """Roles that get a connection pooler.

    The master pooler is enabled by its flag or, without a flag, by the
    presence of a pooler section; the replica pooler only by its flag.
    """
    spec = ctx.spec
    roles = []
    if spec.enable_connection_pooler or (
        spec.enable_connection_pooler is None and spec.connection_pooler is not None
    ):
        roles.append(MASTER_ROLE)
    if spec.enable_replica_connection_pooler:
        roles.append(REPLICA_ROLE)
    return roles


class ConnectionPoolerGenerator:
    """Builds the pooler objects of one role."""

    def __init__(self, ctx: ClusterContext, role: str):
        self.ctx = ctx
        self.role = role
        self.config = ctx.config.connection_pooler
        self.spec = ctx.spec.connection_pooler or ConnectionPoolerSpec()
        self.name = ClusterNaming.pooler_name(ctx.name, role)

    def labels(self, extra: bool = False) -> dict[str, str]:
        labels = self.ctx.labels(extra)
        labels["application"] = CONNECTION_POOLER_APPLICATION
        labels[CONNECTION_POOLER_LABEL] = self.name
        if extra:
            labels[self.ctx.config.pod_role_label] = self.role
        return labels

    def number_of_instances(self) -> int:
        if self.spec.number_of_instances is not None:
            return self.spec.number_of_instances
        return self.config.number_of_instances

    def pool_size(self) -> PoolSize:
        max_db_connections = self.spec.max_db_connections or self.config.max_db_connections
        return PoolSize.for_instances(max_db_connections, self.number_of_instances())

    def env(self) -> list[V1EnvVar]:
        user = self.spec.user or self.config.user
        size = self.pool_size()
        return compose(
            {
                Stage.IDENTITY: [
                    V1EnvVar(name="PGHOST", value=ClusterNaming.service_name(self.ctx.name, self.role)),
                    V1EnvVar(name="PGPORT", value=str(POSTGRES_PORT)),
                    V1EnvVar(name="PGUSER", value=user),
                    V1EnvVar(name="PGSCHEMA", value=self.spec.schema_name or self.config.schema_name),
                    secret_ref_env("PGPASSWORD", self.ctx.credential_secret_name(user), PASSWORD_KEY),
                    V1EnvVar(name="CONNECTION_POOLER_MODE", value=self.spec.mode or self.config.mode),
                    V1EnvVar(name="CONNECTION_POOLER_PORT", value=str(POSTGRES_PORT)),
                ],
                Stage.FEATURES: [
                    V1EnvVar(name="CONNECTION_POOLER_DEFAULT_SIZE", value=str(size.default_size)),
                    V1EnvVar(name="CONNECTION_POOLER_MIN_SIZE", value=str(size.min_size)),
                    V1EnvVar(name="CONNECTION_POOLER_RESERVE_SIZE", value=str(size.reserve_size)),
                    V1EnvVar(name="CONNECTION_POOLER_MAX_CLIENT_CONN", value=str(MAX_CLIENT_CONNECTIONS)),
                    V1EnvVar(name="CONNECTION_POOLER_MAX_DB_CONN", value=str(size.max_db_connections)),
                ],
            }
        )

    def container(self) -> V1Container:
        defaults = describe(
            self.config.default_cpu_request,
            self.config.default_memory_request,
            self.config.default_cpu_limit,
            self.config.default_memory_limit,
        )
        return V1Container(
            name=CONNECTION_POOLER_CONTAINER_NAME,
            image=self.spec.docker_image or self.config.image,
            image_pull_policy=PULL_IF_NOT_PRESENT,
            ports=[V1ContainerPort(container_port=POSTGRES_PORT, protocol="TCP")],
            env=self.env(),
            resources=resolve_resources(
                self.ctx, CONNECTION_POOLER_CONTAINER_NAME, self.spec.resources, defaults
            ),
        )

    def pod_template(self) -> V1PodTemplateSpec:
        config = self.ctx.config
        affinity = None
        if config.enable_pod_antiaffinity:
            affinity = V1Affinity(
                pod_anti_affinity=pod_anti_affinity(
                    self.labels(extra=False),
                    config.pod_antiaffinity_topology_key,
                    config.pod_antiaffinity_preferred_during_scheduling,
                )
            )
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(
                labels=self.labels(extra=True),
                namespace=self.ctx.namespace,
                annotations=self.ctx.annotations(),
            ),
            spec=V1PodSpec(
                containers=[self.container()],
                service_account_name=config.pod_service_account_name,
                termination_grace_period_seconds=config.pod_terminate_grace_period,
                tolerations=PodTemplateComposer(self.ctx).tolerations(),
                affinity=affinity,
            ),
        )

    def deployment(self) -> V1Deployment:
        return V1Deployment(
            api_version="apps/v1",
            kind="Deployment",
            metadata=self.ctx.object_meta(self.name, self.labels(extra=True), self.ctx.annotations()),
            spec=V1DeploymentSpec(
                replicas=self.number_of_instances(),
                selector=V1LabelSelector(match_labels=self.labels(extra=False)),
                template=self.pod_template(),
            ),
        )

    def service(self) -> V1Service:
        load_balancer = should_create_load_balancer(self.ctx, self.role, pooler=True)
        annotations = dict(self.ctx.config.custom_service_annotations)
        annotations.update(self.ctx.spec.service_annotations)
        if load_balancer:
            annotations.setdefault(ELB_TIMEOUT_ANNOTATION, ELB_TIMEOUT_VALUE)

        return V1Service(
            api_version="v1",
            kind="Service",
            metadata=self.ctx.object_meta(
                self.name, self.labels(extra=True), self.ctx.annotations(annotations)
            ),
            spec=service_spec(
                self.ctx, self.name, {CONNECTION_POOLER_LABEL: self.name}, load_balancer
            ),
        )

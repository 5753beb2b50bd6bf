"""Per-role Services and the cluster's PodDisruptionBudgets."""

import logging

from kubernetes.client import (
    V1LabelSelector,
    V1PodDisruptionBudget,
    V1PodDisruptionBudgetSpec,
    V1Service,
    V1ServicePort,
    V1ServiceSpec,
)

from ..core.constants import (
    CRITICAL_OPERATION_LABEL,
    DNS_NAME_ANNOTATION,
    ELB_TIMEOUT_ANNOTATION,
    ELB_TIMEOUT_VALUE,
    LOCALHOST_SOURCE_RANGE,
    MASTER_ROLE,
    POSTGRES_PORT,
    POSTGRES_PORT_NAME,
    REPLICA_ROLE,
)
from ..core.naming import ClusterNaming
from .context import ClusterContext

logger = logging.getLogger(__name__)


def should_create_load_balancer(ctx: ClusterContext, role: str, pooler: bool = False) -> bool:
    """
    Whether the Service for a role is exposed through a load balancer.

    The flag on the manifest wins in both directions; the operator default
    applies only when the manifest leaves it unset.
    """
    spec, config = ctx.spec, ctx.config
    if role == MASTER_ROLE:
        declared, default = (
            (spec.enable_master_pooler_load_balancer, config.enable_master_pooler_load_balancer)
            if pooler
            else (spec.enable_master_load_balancer, config.enable_master_load_balancer)
        )
    else:
        declared, default = (
            (spec.enable_replica_pooler_load_balancer, config.enable_replica_pooler_load_balancer)
            if pooler
            else (spec.enable_replica_load_balancer, config.enable_replica_load_balancer)
        )
    return default if declared is None else declared


def dns_name(ctx: ClusterContext, role: str) -> str:
    config = ctx.config
    name_format = config.master_dns_name_format if role == MASTER_ROLE else config.replica_dns_name_format
    return ClusterNaming.dns_name(
        name_format, ctx.name, ctx.spec.team_id, ctx.namespace, config.db_hosted_zone
    )


def service_annotations(ctx: ClusterContext, role: str, load_balancer: bool) -> dict[str, str]:
    """Configured, manifest and role specific annotations, plus load balancer ones."""
    spec = ctx.spec
    annotations = dict(ctx.config.custom_service_annotations)
    annotations.update(spec.service_annotations)
    if role == MASTER_ROLE:
        annotations.update(spec.master_service_annotations)
    else:
        annotations.update(spec.replica_service_annotations)

    if load_balancer:
        annotations[DNS_NAME_ANNOTATION] = dns_name(ctx, role)
        annotations.setdefault(ELB_TIMEOUT_ANNOTATION, ELB_TIMEOUT_VALUE)
    return annotations


def service_spec(
    ctx: ClusterContext,
    port_name: str,
    selector: dict[str, str] | None,
    load_balancer: bool,
) -> V1ServiceSpec:
    """Ports, selector and exposure shared by cluster and pooler Services."""
    spec = V1ServiceSpec(
        ports=[V1ServicePort(name=port_name, port=POSTGRES_PORT, target_port=POSTGRES_PORT)],
        selector=selector,
        type="ClusterIP",
    )
    if load_balancer:
        spec.type = "LoadBalancer"
        spec.external_traffic_policy = ctx.config.external_traffic_policy
        spec.load_balancer_source_ranges = list(ctx.spec.allowed_source_ranges) or [LOCALHOST_SOURCE_RANGE]
    return spec


def generate_service(ctx: ClusterContext, role: str) -> V1Service:
    """
    Build the Service for the master or replica role.

    The master Service has no selector unless Patroni keeps its state in
    ConfigMaps; otherwise Patroni manages the master endpoint itself.
    """
    load_balancer = should_create_load_balancer(ctx, role)
    selector = None
    if role == REPLICA_ROLE or ctx.config.kubernetes_use_configmaps:
        selector = ctx.role_labels(role, extra=False)

    logger.debug(f"{role} service of {ctx.name} uses a load balancer: {load_balancer}")
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=ctx.object_meta(
            ClusterNaming.service_name(ctx.name, role),
            ctx.role_labels(role, extra=True),
            ctx.annotations(service_annotations(ctx, role, load_balancer)),
        ),
        spec=service_spec(ctx, POSTGRES_PORT_NAME, selector, load_balancer),
    )


def _pdb_enabled(ctx: ClusterContext) -> bool:
    return ctx.config.enable_pod_disruption_budget


def generate_pod_disruption_budget(ctx: ClusterContext) -> V1PodDisruptionBudget:
    """
    Budget keeping the primary up during voluntary disruptions.

    A disabled budget is still generated, with minAvailable 0.
    """
    instances = ctx.spec.number_of_instances
    min_available = 1 if _pdb_enabled(ctx) and instances > 0 else 0

    selector = ctx.labels(extra=False)
    if ctx.config.pdb_master_label_selector:
        selector = ctx.role_labels(MASTER_ROLE, extra=False)

    return V1PodDisruptionBudget(
        api_version="policy/v1",
        kind="PodDisruptionBudget",
        metadata=ctx.object_meta(
            ClusterNaming.pdb_name(ctx.config.pdb_name_format, ctx.name),
            ctx.labels(extra=True),
            ctx.annotations(),
        ),
        spec=V1PodDisruptionBudgetSpec(
            min_available=min_available,
            selector=V1LabelSelector(match_labels=selector),
        ),
    )


def generate_critical_op_pod_disruption_budget(ctx: ClusterContext) -> V1PodDisruptionBudget:
    """Budget protecting every pod labelled as being in a critical operation."""
    instances = ctx.spec.number_of_instances
    min_available = instances if _pdb_enabled(ctx) and instances > 0 else 0

    selector = ctx.labels(extra=False)
    selector[CRITICAL_OPERATION_LABEL] = "true"

    return V1PodDisruptionBudget(
        api_version="policy/v1",
        kind="PodDisruptionBudget",
        metadata=ctx.object_meta(
            ClusterNaming.critical_op_pdb_name(ctx.config.pdb_name_format, ctx.name),
            ctx.labels(extra=True),
            ctx.annotations(),
        ),
        spec=V1PodDisruptionBudgetSpec(
            min_available=min_available,
            selector=V1LabelSelector(match_labels=selector),
        ),
    )

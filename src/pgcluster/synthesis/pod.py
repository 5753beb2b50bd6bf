"""Pod template of the cluster StatefulSet."""

import logging
from typing import Any

from kubernetes.client import (
    V1Affinity,
    V1Capabilities,
    V1Container,
    V1ContainerPort,
    V1LabelSelector,
    V1NodeAffinity,
    V1ObjectMeta,
    V1PodAffinityTerm,
    V1PodAntiAffinity,
    V1PodSecurityContext,
    V1PodSpec,
    V1PodTemplateSpec,
    V1SecurityContext,
    V1Toleration,
    V1WeightedPodAffinityTerm,
)

from ..core.constants import OPERATOR_PORT, PATRONI_API_PORT, POSTGRES_CONTAINER_NAME, POSTGRES_PORT
from ..core.k8s import from_dict
from ..errors import ConfigurationError
from .context import ClusterContext
from .env import EnvironmentComposer
from .patroni import generate_spilo_configuration
from .resources import resolve_resources
from .sidecars import PULL_IF_NOT_PRESENT, SidecarComposer
from .volumes import VolumeComposer

logger = logging.getLogger(__name__)


def generate_capabilities(capabilities: list[str] | None) -> V1Capabilities | None:
    """
    Extra Linux capabilities for the postgres container.

    Args:
        capabilities: Configured capability names; None when not configured

    Returns:
        Capabilities to add, or None when nothing is configured

    Raises:
        ConfigurationError: If the list is empty or holds anything but names
    """
    if capabilities is None:
        return None
    if len(capabilities) == 0:
        raise ConfigurationError("could not parse empty capabilities configuration")
    for capability in capabilities:
        if not isinstance(capability, str) or not capability:
            raise ConfigurationError(f"could not parse capability {capability!r}")
    return V1Capabilities(add=list(capabilities))


def _node_selector_requirements(labels: dict[str, str]) -> list[dict[str, Any]]:
    return [{"key": key, "operator": "In", "values": [value]} for key, value in sorted(labels.items())]


def node_affinity(readiness_label: dict[str, str], declared: dict[str, Any] | None) -> V1NodeAffinity | None:
    """
    Combine the node readiness label with the cluster's own node affinity.

    Readiness requirements are added to every required selector term.
    """
    if not readiness_label and not declared:
        return None

    affinity = dict(declared or {})
    if readiness_label:
        readiness = _node_selector_requirements(readiness_label)
        required = affinity.get("requiredDuringSchedulingIgnoredDuringExecution") or {}
        terms = required.get("nodeSelectorTerms") or []
        if terms:
            terms = [
                {**term, "matchExpressions": [*(term.get("matchExpressions") or []), *readiness]}
                for term in terms
            ]
        else:
            terms = [{"matchExpressions": readiness}]
        affinity["requiredDuringSchedulingIgnoredDuringExecution"] = {**required, "nodeSelectorTerms": terms}
    return from_dict(affinity, "V1NodeAffinity", "node affinity")


def pod_anti_affinity(labels: dict[str, str], topology_key: str, preferred: bool) -> V1PodAntiAffinity:
    """Keep the cluster's pods apart, strictly or as a scheduling preference."""
    term = V1PodAffinityTerm(
        label_selector=V1LabelSelector(match_labels=labels),
        topology_key=topology_key,
    )
    if preferred:
        return V1PodAntiAffinity(
            preferred_during_scheduling_ignored_during_execution=[
                V1WeightedPodAffinityTerm(weight=1, pod_affinity_term=term)
            ]
        )
    return V1PodAntiAffinity(required_during_scheduling_ignored_during_execution=[term])


class PodTemplateComposer:
    """Builds the pod template for one cluster from its manifest and the operator configuration."""

    def __init__(self, ctx: ClusterContext):
        self.ctx = ctx
        self.config = ctx.config
        self.env = EnvironmentComposer(ctx)
        self.volumes = VolumeComposer(ctx)
        self.sidecars = SidecarComposer(ctx, self.env)

    def postgres_container(self) -> V1Container:
        spec = self.ctx.spec
        spilo_configuration = generate_spilo_configuration(spec.postgresql, spec.patroni, self.config)
        return V1Container(
            name=POSTGRES_CONTAINER_NAME,
            image=spec.docker_image or self.config.docker_image,
            image_pull_policy=PULL_IF_NOT_PRESENT,
            resources=resolve_resources(self.ctx, POSTGRES_CONTAINER_NAME, spec.resources),
            ports=[
                V1ContainerPort(container_port=PATRONI_API_PORT, protocol="TCP"),
                V1ContainerPort(container_port=POSTGRES_PORT, protocol="TCP"),
                V1ContainerPort(container_port=OPERATOR_PORT, protocol="TCP"),
            ],
            volume_mounts=[self.volumes.data_mount()],
            env=self.env.postgres_env(spilo_configuration),
            security_context=V1SecurityContext(
                allow_privilege_escalation=self.config.spilo_allow_privilege_escalation,
                privileged=self.config.spilo_privileged,
                read_only_root_filesystem=False,
                capabilities=generate_capabilities(self.config.additional_pod_capabilities),
            ),
        )

    def security_context(self) -> V1PodSecurityContext:
        spec, config = self.ctx.spec, self.config
        return V1PodSecurityContext(
            run_as_user=spec.spilo_run_as_user if spec.spilo_run_as_user is not None else config.spilo_run_as_user,
            run_as_group=(
                spec.spilo_run_as_group if spec.spilo_run_as_group is not None else config.spilo_run_as_group
            ),
            fs_group=spec.spilo_fs_group if spec.spilo_fs_group is not None else config.spilo_fs_group,
        )

    def affinity(self) -> V1Affinity | None:
        nodes = node_affinity(self.config.node_readiness_label, self.ctx.spec.node_affinity)
        pods = None
        if self.config.enable_pod_antiaffinity:
            pods = pod_anti_affinity(
                self.ctx.labels(extra=False),
                self.config.pod_antiaffinity_topology_key,
                self.config.pod_antiaffinity_preferred_during_scheduling,
            )
        if nodes is None and pods is None:
            return None
        return V1Affinity(node_affinity=nodes, pod_anti_affinity=pods)

    def tolerations(self) -> list[V1Toleration] | None:
        """Tolerations of the manifest, else the single one from the operator configuration."""
        if self.ctx.spec.tolerations:
            return from_dict(self.ctx.spec.tolerations, "list[V1Toleration]", "tolerations")
        if self.config.pod_toleration:
            return [from_dict(self.config.pod_toleration, "V1Toleration", "pod_toleration")]
        return None

    def annotations(self) -> dict[str, str] | None:
        annotations = {**self.config.custom_pod_annotations, **self.ctx.spec.pod_annotations}
        return self.ctx.annotations(annotations)

    def init_containers(self) -> list[V1Container] | None:
        if not self.ctx.spec.init_containers:
            return None
        return [
            from_dict(container, "V1Container", f"init container {i}")
            for i, container in enumerate(self.ctx.spec.init_containers)
        ]

    def template(self) -> V1PodTemplateSpec:
        """
        Assemble the complete pod template.

        Raises:
            ConfigurationError: On invalid capabilities, quantities or volumes
            ExternalSourceError: If a pod environment source cannot be read
        """
        containers = [self.postgres_container()]
        containers.extend(self.sidecars.compose(self.volumes.sidecar_core_mounts()))

        priority_class = self.ctx.spec.pod_priority_class_name or self.config.pod_priority_class_name
        pod_spec = V1PodSpec(
            service_account_name=self.config.pod_service_account_name,
            termination_grace_period_seconds=self.config.pod_terminate_grace_period,
            security_context=self.security_context(),
            containers=containers,
            init_containers=self.init_containers(),
            tolerations=self.tolerations(),
            affinity=self.affinity(),
            priority_class_name=priority_class or None,
            volumes=[],
        )
        self.volumes.attach(pod_spec)
        pod_spec.volumes = pod_spec.volumes or None

        logger.debug(f"pod template for {self.ctx.name} has {len(containers)} containers")
        return V1PodTemplateSpec(
            metadata=V1ObjectMeta(
                labels=self.ctx.labels(extra=True),
                namespace=self.ctx.namespace,
                annotations=self.annotations(),
            ),
            spec=pod_spec,
        )

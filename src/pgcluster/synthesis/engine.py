"""Manifest synthesis entry point.

``ManifestSynthesizer`` turns one cluster resource into every object the
controller applies for it. Objects are generated independently: a failure in
one is recorded in ``GeneratedManifestSet.errors`` and the others are still
returned.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from kubernetes.client import (
    V1CronJob,
    V1Deployment,
    V1PodDisruptionBudget,
    V1Service,
    V1StatefulSet,
)

from ..components.specs import OperatorConfig, PostgresCluster
from ..core.constants import ROLES
from ..core.events import EventRecorder, LoggingEventRecorder
from ..core.k8s import to_dict
from ..core.sources import EnvironmentSourceReader
from ..errors import PgClusterError, SynthesisCancelled
from .backup import generate_logical_backup_job
from .context import ClusterContext
from .pooler import ConnectionPoolerGenerator, pooler_roles
from .services import (
    generate_critical_op_pod_disruption_budget,
    generate_pod_disruption_budget,
    generate_service,
)
from .statefulset import generate_statefulset

logger = logging.getLogger(__name__)


@dataclass
class GeneratedManifestSet:
    """Every object generated for one cluster, plus the ones that failed."""

    statefulset: V1StatefulSet | None = None
    services: dict[str, V1Service] = field(default_factory=dict)
    pod_disruption_budgets: list[V1PodDisruptionBudget] = field(default_factory=list)
    logical_backup_job: V1CronJob | None = None
    pooler_deployments: dict[str, V1Deployment] = field(default_factory=dict)
    pooler_services: dict[str, V1Service] = field(default_factory=dict)
    errors: dict[str, PgClusterError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def objects(self) -> list[Any]:
        """Generated objects in apply order."""
        result: list[Any] = []
        if self.statefulset is not None:
            result.append(self.statefulset)
        result.extend(self.services.values())
        result.extend(self.pod_disruption_budgets)
        if self.logical_backup_job is not None:
            result.append(self.logical_backup_job)
        result.extend(self.pooler_deployments.values())
        result.extend(self.pooler_services.values())
        return result

    def to_dicts(self) -> list[dict[str, Any]]:
        return [to_dict(obj) for obj in self.objects()]


class ManifestSynthesizer:
    """
    Generates manifest sets against one operator configuration.

    The configuration is frozen and shared, so a single synthesizer can
    serve concurrent ``generate`` calls for different clusters.

    Example:
        synthesizer = ManifestSynthesizer(OperatorConfig.from_yaml("operator.yaml"))
        manifests = synthesizer.generate(PostgresCluster.from_yaml("cluster.yaml"))
        for name, error in manifests.errors.items():
            print(f"{name}: {error}")
    """

    def __init__(
        self,
        config: OperatorConfig,
        sources: EnvironmentSourceReader | None = None,
        events: EventRecorder | None = None,
    ):
        self.config = config
        self.sources = sources
        self.events = events or LoggingEventRecorder()

    def context(
        self,
        cluster: PostgresCluster,
        *,
        sources: EnvironmentSourceReader | None = None,
        events: EventRecorder | None = None,
        cancel: threading.Event | None = None,
    ) -> ClusterContext:
        """Per-call context owning a private copy of the cluster resource."""
        return ClusterContext(
            cluster=cluster.model_copy(deep=True),
            config=self.config,
            events=events or self.events,
            sources=sources or self.sources,
            cancel=cancel,
        )

    def generate(
        self,
        cluster: PostgresCluster,
        *,
        sources: EnvironmentSourceReader | None = None,
        events: EventRecorder | None = None,
        cancel: threading.Event | None = None,
    ) -> GeneratedManifestSet:
        """
        Generate every object for a cluster.

        Args:
            cluster: The cluster resource; it is copied, never modified
            sources: Reader for pod environment Secrets and ConfigMaps,
                overriding the synthesizer's reader
            events: Recorder for clamp warnings, overriding the synthesizer's
            cancel: Event that aborts a pending Secret retry when set

        Returns:
            The generated objects; objects that failed are keyed by name in
            ``errors``

        Raises:
            SynthesisCancelled: If ``cancel`` was set while waiting on a retry
        """
        ctx = self.context(cluster, sources=sources, events=events, cancel=cancel)
        result = GeneratedManifestSet()

        def build(key: str, generator: Callable[[], Any]) -> Any:
            try:
                return generator()
            except SynthesisCancelled:
                raise
            except PgClusterError as e:
                logger.error(f"could not generate {key} for cluster {ctx.name}: {e}")
                result.errors[key] = e
                return None

        result.statefulset = build("statefulset", lambda: generate_statefulset(ctx))

        for role in ROLES:
            service = build(f"service/{role}", lambda: generate_service(ctx, role))
            if service is not None:
                result.services[role] = service

        for key, generator in (
            ("pod-disruption-budget", generate_pod_disruption_budget),
            ("critical-op-pod-disruption-budget", generate_critical_op_pod_disruption_budget),
        ):
            budget = build(key, lambda: generator(ctx))
            if budget is not None:
                result.pod_disruption_budgets.append(budget)

        if ctx.spec.enable_logical_backup:
            result.logical_backup_job = build("logical-backup", lambda: generate_logical_backup_job(ctx))

        for role in pooler_roles(ctx):
            pooler = ConnectionPoolerGenerator(ctx, role)
            deployment = build(f"pooler-deployment/{role}", pooler.deployment)
            if deployment is not None:
                result.pooler_deployments[role] = deployment
            service = build(f"pooler-service/{role}", pooler.service)
            if service is not None:
                result.pooler_services[role] = service

        logger.info(
            f"generated {len(result.objects())} objects for cluster {ctx.name}"
            + (f", {len(result.errors)} failed" if result.errors else "")
        )
        return result

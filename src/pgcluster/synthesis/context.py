"""Per-invocation synthesis context."""

import threading
from dataclasses import dataclass, field

from kubernetes.client import V1ObjectMeta, V1OwnerReference

from ..components.specs import OperatorConfig, PostgresCluster, PostgresSpec
from ..core import labels as label_policy
from ..core.constants import CRD_API_VERSION, CRD_KIND
from ..core.events import WARNING, EventRecorder, LoggingEventRecorder
from ..core.naming import ClusterNaming
from ..core.sources import EnvironmentSourceReader


@dataclass
class ClusterContext:
    """Everything one synthesis pass for one cluster reads.

    ``cluster`` is a private copy owned by this pass; ``config`` is the
    shared, frozen operator configuration.
    """

    cluster: PostgresCluster
    config: OperatorConfig
    events: EventRecorder = field(default_factory=LoggingEventRecorder)
    sources: EnvironmentSourceReader | None = None
    cancel: threading.Event | None = None

    @property
    def name(self) -> str:
        return self.cluster.name

    @property
    def namespace(self) -> str:
        return self.cluster.namespace

    @property
    def uid(self) -> str:
        return self.cluster.metadata.uid

    @property
    def spec(self) -> PostgresSpec:
        return self.cluster.spec

    def labels(self, extra: bool = False) -> dict[str, str]:
        return label_policy.labels_set(self.config, self.cluster, extra)

    def role_labels(self, role: str, extra: bool = False) -> dict[str, str]:
        return label_policy.role_labels(self.config, self.cluster, role, extra)

    def annotations(self, annotations: dict[str, str] | None = None) -> dict[str, str] | None:
        return label_policy.annotations_set(self.config, self.cluster, annotations)

    def credential_secret_name(self, username: str, cluster: str | None = None) -> str:
        return ClusterNaming.credential_secret_name(
            self.config.secret_name_template, username, cluster or self.name
        )

    def owner_references(self) -> list[V1OwnerReference] | None:
        """Back reference to the cluster resource, only when enabled."""
        if not self.config.enable_owner_references:
            return None
        return [
            V1OwnerReference(
                api_version=CRD_API_VERSION,
                kind=CRD_KIND,
                name=self.name,
                uid=self.uid,
                controller=True,
            )
        ]

    def object_meta(
        self,
        name: str,
        labels: dict[str, str],
        annotations: dict[str, str] | None = None,
    ) -> V1ObjectMeta:
        return V1ObjectMeta(
            name=name,
            namespace=self.namespace,
            labels=labels,
            annotations=annotations,
            owner_references=self.owner_references(),
        )

    def warn(self, reason: str, message: str) -> None:
        self.events.record(self.name, WARNING, reason, message)

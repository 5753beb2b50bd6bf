"""Test configuration and shared fixtures for pgcluster tests."""

from typing import Any

import pytest

from pgcluster.components.specs import OperatorConfig, PostgresCluster
from pgcluster.core.events import RecordingEventRecorder
from pgcluster.core.sources import StaticSourceReader
from pgcluster.synthesis.context import ClusterContext

CLUSTER_NAME = "acid-test-cluster"
NAMESPACE = "default"
CLUSTER_UID = "efd12e58-5786-11e8-b5a7-06148230260c"


def make_cluster(
    name: str = CLUSTER_NAME,
    namespace: str = NAMESPACE,
    uid: str = CLUSTER_UID,
    labels: dict[str, str] | None = None,
    annotations: dict[str, str] | None = None,
    **spec: Any,
) -> PostgresCluster:
    """Build a cluster resource; spec fields use their manifest (camelCase) names."""
    spec.setdefault("teamId", "acid")
    spec.setdefault("numberOfInstances", 1)
    spec.setdefault("volume", {"size": "1G"})
    return PostgresCluster.model_validate(
        {
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": uid,
                "labels": labels or {},
                "annotations": annotations or {},
            },
            "spec": spec,
        }
    )


def env_map(env) -> dict:
    """Environment variables by name."""
    return {var.name: var for var in env or []}


def container_by_name(pod_spec, name: str):
    for container in pod_spec.containers:
        if container.name == name:
            return container
    raise AssertionError(f"no container named {name}")


@pytest.fixture
def events():
    """Recorder keeping warning events in memory."""
    return RecordingEventRecorder()


@pytest.fixture
def sources():
    """Empty in-memory Secret and ConfigMap reader."""
    return StaticSourceReader()


@pytest.fixture
def operator_config():
    """Operator configuration with every default."""
    return OperatorConfig()


@pytest.fixture
def cluster():
    """A single instance cluster with default settings."""
    return make_cluster()


@pytest.fixture
def make_ctx(events, sources):
    """Factory for synthesis contexts.

    Keyword arguments become operator configuration fields.
    """

    def _make(cluster: PostgresCluster | None = None, reader=None, cancel=None, **config: Any) -> ClusterContext:
        return ClusterContext(
            cluster=cluster or make_cluster(),
            config=OperatorConfig(**config),
            events=events,
            sources=reader if reader is not None else sources,
            cancel=cancel,
        )

    return _make

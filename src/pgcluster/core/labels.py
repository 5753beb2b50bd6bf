"""Label and annotation projection for generated objects.

Every generated object derives its labels from the operator's cluster labels,
the cluster name, and the keys the operator is configured to inherit from the
``postgresql`` resource.
"""

from collections.abc import Iterable, Mapping

from ..components.specs import OperatorConfig, PostgresCluster
from .constants import TEAM_LABEL


def project(source: Mapping[str, str], keys: Iterable[str]) -> dict[str, str]:
    """
    Select the configured keys present in a label or annotation map.

    Args:
        source: Labels or annotations of the cluster resource
        keys: Keys to inherit, in configuration order

    Returns:
        New mapping with only the inherited keys

    Example:
        >>> project({"a": "1", "b": "2"}, ["b", "c"])
        {'b': '2'}
    """
    return {key: source[key] for key in keys if key in source}


def inherited_labels(config: OperatorConfig, cluster: PostgresCluster) -> dict[str, str]:
    return project(cluster.metadata.labels, config.inherited_labels)


def inherited_annotations(config: OperatorConfig, cluster: PostgresCluster) -> dict[str, str]:
    return project(cluster.metadata.annotations, config.inherited_annotations)


def labels_set(config: OperatorConfig, cluster: PostgresCluster, extra: bool) -> dict[str, str]:
    """
    Labels identifying a cluster's objects.

    Args:
        config: Operator configuration
        cluster: The cluster resource
        extra: Also add the team label and inherited labels. Selectors use
            the plain set so they stay stable when inherited labels change.

    Returns:
        Fresh dict, safe to modify
    """
    labels = dict(config.cluster_labels)
    labels[config.cluster_name_label] = cluster.name
    if extra:
        labels[TEAM_LABEL] = cluster.spec.team_id
        labels.update(inherited_labels(config, cluster))
    return labels


def role_labels(config: OperatorConfig, cluster: PostgresCluster, role: str, extra: bool) -> dict[str, str]:
    labels = labels_set(config, cluster, extra)
    labels[config.pod_role_label] = role
    return labels


def annotations_set(
    config: OperatorConfig,
    cluster: PostgresCluster,
    annotations: Mapping[str, str] | None = None,
) -> dict[str, str] | None:
    """Merge object specific annotations with inherited ones; None when empty."""
    result = dict(annotations or {})
    result.update(inherited_annotations(config, cluster))
    return result or None

"""StatefulSet generation and the instance count policy."""

import logging

from kubernetes.client import (
    V1LabelSelector,
    V1ObjectMeta,
    V1PersistentVolumeClaim,
    V1PersistentVolumeClaimSpec,
    V1StatefulSet,
    V1StatefulSetSpec,
    V1StatefulSetUpdateStrategy,
    V1VolumeResourceRequirements,
)
from kubernetes.utils import parse_quantity

from ..core.constants import DATA_VOLUME_NAME, MASTER_ROLE
from ..core.k8s import from_dict
from ..core.naming import ClusterNaming
from ..errors import ConfigurationError
from .context import ClusterContext
from .pod import PodTemplateComposer

logger = logging.getLogger(__name__)

POD_MANAGEMENT_POLICIES = {
    "ordered_ready": "OrderedReady",
    "parallel": "Parallel",
}


def number_of_instances(ctx: ClusterContext) -> int:
    """
    Desired replica count after applying the configured bounds.

    Bounds are skipped entirely when the cluster carries the configured
    ignore annotation set to "true". A standby cluster declaring one
    instance keeps exactly one.

    Example:
        With min_instances=2 and max_instances=-1, a cluster declaring one
        instance gets two.
    """
    config = ctx.config
    declared = ctx.spec.number_of_instances
    current = declared

    key = config.ignore_instance_limits_annotation_key
    if key and ctx.cluster.metadata.annotations.get(key) == "true":
        logger.debug(f"instance limits ignored for {ctx.name} through annotation {key}")
        return declared

    if ctx.spec.standby is not None and declared == 1:
        return 1

    if config.max_instances >= 0 and current > config.max_instances:
        current = config.max_instances
    if config.min_instances >= 0 and current < config.min_instances:
        current = config.min_instances

    if current != declared:
        logger.info(
            f"adjusted number of instances of {ctx.name} from {declared} to {current} "
            f"(min: {config.min_instances}, max: {config.max_instances})"
        )
    return current


def pod_management_policy(policy: str) -> str:
    try:
        return POD_MANAGEMENT_POLICIES[policy]
    except KeyError:
        raise ConfigurationError(f"could not parse pod management policy: {policy!r}") from None


def volume_claim_template(ctx: ClusterContext) -> V1PersistentVolumeClaim:
    """Claim template for the data volume of every pod."""
    volume = ctx.spec.volume
    try:
        parse_quantity(volume.size)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"could not parse volume size: {e}") from e

    return V1PersistentVolumeClaim(
        metadata=V1ObjectMeta(
            name=DATA_VOLUME_NAME,
            namespace=ctx.namespace,
            labels=ctx.labels(extra=False),
            annotations=ctx.annotations(),
        ),
        spec=V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=V1VolumeResourceRequirements(requests={"storage": volume.size}),
            storage_class_name=volume.storage_class,
            selector=from_dict(volume.selector, "V1LabelSelector", "volume selector"),
        ),
    )


def generate_statefulset(ctx: ClusterContext) -> V1StatefulSet:
    """
    Build the StatefulSet running the cluster's pods.

    Raises:
        ConfigurationError: On an invalid volume size or pod template setting
        ExternalSourceError: If a pod environment source cannot be read
    """
    template = PodTemplateComposer(ctx).template()
    name = ClusterNaming.statefulset_name(ctx.name)
    return V1StatefulSet(
        api_version="apps/v1",
        kind="StatefulSet",
        metadata=ctx.object_meta(name, ctx.labels(extra=True), ctx.annotations()),
        spec=V1StatefulSetSpec(
            replicas=number_of_instances(ctx),
            selector=V1LabelSelector(match_labels=ctx.labels(extra=False)),
            service_name=ClusterNaming.service_name(ctx.name, MASTER_ROLE),
            template=template,
            volume_claim_templates=[volume_claim_template(ctx)],
            update_strategy=V1StatefulSetUpdateStrategy(type="OnDelete"),
            pod_management_policy=pod_management_policy(ctx.config.pod_management_policy),
        ),
    )

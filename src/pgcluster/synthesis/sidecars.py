"""Sidecar container composition.

Sidecars come from four places, highest precedence first:

1. sidecars declared on the cluster manifest,
2. container templates in the operator configuration,
3. the deprecated name to image map in the operator configuration,
4. the built-in Scalyr log shipping sidecar.

A name declared by a higher precedence source replaces the lower one
wholesale; fields are never merged.
"""

import logging

from kubernetes.client import V1Container, V1EnvVar, V1VolumeMount

from ..components.specs import Sidecar
from ..core.constants import SCALYR_SIDECAR_NAME
from ..core.k8s import from_dict
from .context import ClusterContext
from .env import EnvironmentComposer, manifest_env
from .resources import coalesce, describe, resolve_resources

logger = logging.getLogger(__name__)

PULL_IF_NOT_PRESENT = "IfNotPresent"


class SidecarComposer:
    """Builds the sidecar containers of the cluster pod."""

    def __init__(self, ctx: ClusterContext, env: EnvironmentComposer):
        self.ctx = ctx
        self.config = ctx.config
        self.env = env

    def cluster_sidecars(self) -> list[V1Container]:
        return [self._from_manifest(sidecar) for sidecar in self.ctx.spec.sidecars]

    def global_sidecars(self) -> list[V1Container]:
        """Container templates, kept exactly as configured."""
        return [
            from_dict(template, "V1Container", f"sidecar_containers[{i}]")
            for i, template in enumerate(self.config.sidecar_containers)
        ]

    def deprecated_sidecars(self) -> list[V1Container]:
        return [
            V1Container(
                name=name,
                image=image,
                image_pull_policy=PULL_IF_NOT_PRESENT,
                resources=resolve_resources(self.ctx, name, None),
            )
            for name, image in sorted(self.config.sidecar_images.items())
        ]

    def scalyr_sidecar(self) -> V1Container | None:
        """The log shipping sidecar, when both its API key and image are configured."""
        scalyr = self.config.scalyr
        if not scalyr.api_key or not scalyr.image:
            if scalyr.api_key or scalyr.image:
                logger.warning("scalyr sidecar needs both an API key and an image, not adding it")
            return None

        env = [
            V1EnvVar(name="SCALYR_API_KEY", value=scalyr.api_key),
            V1EnvVar(name="SCALYR_SERVER_HOST", value=self.ctx.name),
        ]
        if scalyr.server_url:
            env.append(V1EnvVar(name="SCALYR_SERVER_URL", value=scalyr.server_url))

        config = self.config
        resources = describe(
            coalesce(scalyr.cpu_request, config.default_cpu_request),
            coalesce(scalyr.memory_request, config.default_memory_request),
            coalesce(scalyr.cpu_limit, config.default_cpu_limit),
            coalesce(scalyr.memory_limit, config.default_memory_limit),
        )
        return V1Container(
            name=SCALYR_SIDECAR_NAME,
            image=scalyr.image,
            image_pull_policy=PULL_IF_NOT_PRESENT,
            env=env,
            resources=resolve_resources(self.ctx, SCALYR_SIDECAR_NAME, resources),
        )

    def compose(self, core_mounts: list[V1VolumeMount]) -> list[V1Container]:
        """
        Merge every sidecar source and attach the default environment and mounts.

        Args:
            core_mounts: Mounts every sidecar shares with the postgres container

        Returns:
            Sidecars ordered by source precedence, unique by name
        """
        sources: list[tuple[str, list[V1Container]]] = []
        if self.config.enable_sidecars:
            sources.append(("cluster", self.cluster_sidecars()))
            sources.append(("global", self.global_sidecars()))
            sources.append(("deprecated", self.deprecated_sidecars()))
        elif self.ctx.spec.sidecars:
            logger.warning(
                f"sidecars are disabled in the operator configuration, "
                f"ignoring {len(self.ctx.spec.sidecars)} declared by {self.ctx.name}"
            )

        scalyr = self.scalyr_sidecar()
        if scalyr is not None:
            sources.append(("built-in", [scalyr]))

        merged: dict[str, V1Container] = {}
        origin: dict[str, str] = {}
        for source, containers in sources:
            for container in containers:
                if container.name in merged:
                    logger.warning(
                        f"{source} sidecar {container.name!r} is overridden by the "
                        f"{origin[container.name]} sidecar with the same name"
                    )
                    continue
                merged[container.name] = container
                origin[container.name] = source

        return [self._patch(container, core_mounts) for container in merged.values()]

    def _from_manifest(self, sidecar: Sidecar) -> V1Container:
        ports = from_dict(sidecar.ports, "list[V1ContainerPort]", f"ports of sidecar {sidecar.name!r}")
        return V1Container(
            name=sidecar.name,
            image=sidecar.image,
            image_pull_policy=PULL_IF_NOT_PRESENT,
            env=manifest_env(sidecar.env) or None,
            ports=ports or None,
            command=sidecar.command,
            args=sidecar.args,
            resources=resolve_resources(self.ctx, sidecar.name, sidecar.resources),
        )

    def _patch(self, container: V1Container, core_mounts: list[V1VolumeMount]) -> V1Container:
        container.env = self.env.sidecar_env(container.env or [])
        mounts = list(core_mounts)
        names = {mount.name for mount in mounts}
        mounts.extend(m for m in (container.volume_mounts or []) if m.name not in names)
        container.volume_mounts = mounts
        return container

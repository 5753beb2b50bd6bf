"""Pod volumes and per-container mounts.

The data volume comes from the StatefulSet's volume claim template and is
mounted by every container. Shared memory and the runtime socket directory
are added at most once. Additional volumes (TLS secrets included) choose
their containers through ``target_containers``.
"""

import logging

from kubernetes.client import (
    V1Container,
    V1EmptyDirVolumeSource,
    V1PodSpec,
    V1SecretVolumeSource,
    V1Volume,
    V1VolumeMount,
)

from ..components.specs import AdditionalVolume
from ..core.constants import (
    ALL_CONTAINERS,
    DATA_VOLUME_NAME,
    DATA_VOLUME_PATH,
    POSTGRES_CONTAINER_NAME,
    RUN_VOLUME_NAME,
    RUN_VOLUME_PATH,
    SHM_VOLUME_NAME,
    SHM_VOLUME_PATH,
    TLS_DEFAULT_MODE,
    TLS_MOUNT_PATH,
)
from ..core.k8s import from_dict
from ..errors import ConfigurationError
from .context import ClusterContext

logger = logging.getLogger(__name__)


def postgres_container(pod_spec: V1PodSpec) -> V1Container:
    """The postgres container, or the first container when none carries that name."""
    for container in pod_spec.containers:
        if container.name == POSTGRES_CONTAINER_NAME:
            return container
    return pod_spec.containers[0]


def _has_volume(pod_spec: V1PodSpec, name: str) -> bool:
    return any(volume.name == name for volume in pod_spec.volumes or [])


def _mount(container: V1Container, mount: V1VolumeMount) -> None:
    container.volume_mounts = [*(container.volume_mounts or []), mount]


def add_shm_volume(pod_spec: V1PodSpec) -> None:
    """Memory backed /dev/shm for the postgres container."""
    if _has_volume(pod_spec, SHM_VOLUME_NAME):
        return
    pod_spec.volumes = [
        *(pod_spec.volumes or []),
        V1Volume(name=SHM_VOLUME_NAME, empty_dir=V1EmptyDirVolumeSource(medium="Memory")),
    ]
    _mount(postgres_container(pod_spec), V1VolumeMount(name=SHM_VOLUME_NAME, mount_path=SHM_VOLUME_PATH))


def add_run_volume(pod_spec: V1PodSpec) -> None:
    """Runtime socket directory, mounted by postgres and shared with sidecars by the caller."""
    if _has_volume(pod_spec, RUN_VOLUME_NAME):
        return
    pod_spec.volumes = [
        *(pod_spec.volumes or []),
        V1Volume(name=RUN_VOLUME_NAME, empty_dir=V1EmptyDirVolumeSource()),
    ]
    _mount(postgres_container(pod_spec), run_mount())


def add_secret_volume(pod_spec: V1PodSpec, secret_name: str, mount_path: str) -> None:
    """Mount a Secret into every container of the pod."""
    if _has_volume(pod_spec, secret_name):
        return
    pod_spec.volumes = [
        *(pod_spec.volumes or []),
        V1Volume(name=secret_name, secret=V1SecretVolumeSource(secret_name=secret_name)),
    ]
    for container in pod_spec.containers:
        _mount(container, V1VolumeMount(name=secret_name, mount_path=mount_path))


def run_mount() -> V1VolumeMount:
    return V1VolumeMount(name=RUN_VOLUME_NAME, mount_path=RUN_VOLUME_PATH)


class VolumeComposer:
    """Lays out the volumes of the cluster pod and mounts them into its containers."""

    def __init__(self, ctx: ClusterContext):
        self.ctx = ctx
        self.config = ctx.config

    def data_mount(self) -> V1VolumeMount:
        volume = self.ctx.spec.volume
        mount = V1VolumeMount(name=DATA_VOLUME_NAME, mount_path=DATA_VOLUME_PATH)
        if volume.sub_path:
            if volume.is_sub_path_expr:
                mount.sub_path_expr = volume.sub_path
            else:
                mount.sub_path = volume.sub_path
        return mount

    def shm_enabled(self) -> bool:
        declared = self.ctx.spec.enable_shm_volume
        return self.config.enable_shm_volume if declared is None else declared

    def sidecar_core_mounts(self) -> list[V1VolumeMount]:
        """Mounts every sidecar shares with the postgres container."""
        mounts = [self.data_mount()]
        if self.config.share_pgsocket_with_sidecars:
            mounts.append(run_mount())
        return mounts

    def tls_volumes(self) -> list[AdditionalVolume]:
        """Secret volumes for the server certificate and an optional separate CA."""
        tls = self.ctx.spec.tls
        if tls is None or not tls.secret_name:
            return []

        volumes = [self._secret_volume(tls.secret_name, TLS_MOUNT_PATH)]
        if tls.ca_file and tls.separate_ca_secret:
            volumes.append(self._secret_volume(tls.ca_secret_name, f"{TLS_MOUNT_PATH}ca"))
        return volumes

    def attach(self, pod_spec: V1PodSpec) -> None:
        """
        Add every pod level volume and the matching container mounts.

        Args:
            pod_spec: Pod whose containers already carry the data mount

        Raises:
            ConfigurationError: If an additional volume is declared inconsistently
        """
        if self.shm_enabled():
            add_shm_volume(pod_spec)
        if self.config.share_pgsocket_with_sidecars:
            add_run_volume(pod_spec)
        if self.config.additional_secret_mount:
            add_secret_volume(
                pod_spec, self.config.additional_secret_mount, self.config.additional_secret_mount_path
            )

        declared = [*self.ctx.spec.additional_volumes, *self.tls_volumes()]
        if declared:
            self.add_additional_volumes(pod_spec, declared)

    def add_additional_volumes(self, pod_spec: V1PodSpec, declared: list[AdditionalVolume]) -> None:
        """
        Add user supplied volumes and mount them into their target containers.

        Volumes repeating an earlier name are skipped.

        Raises:
            ConfigurationError: If a mount path is reused or covers the data
                directory, or ``all`` is combined with container names
        """
        mount_paths = {DATA_VOLUME_PATH: DATA_VOLUME_NAME}
        for container in pod_spec.containers:
            for mount in container.volume_mounts or []:
                mount_paths.setdefault(mount.mount_path, mount.name)

        seen: set[str] = set()
        volumes: list[AdditionalVolume] = []
        for volume in declared:
            if volume.name in seen:
                logger.warning(f"additional volume {volume.name!r} is declared twice, using the first")
                continue
            seen.add(volume.name)

            if volume.mount_path == DATA_VOLUME_PATH:
                raise ConfigurationError(
                    f"additional volume {volume.name!r} cannot be mounted on the data directory"
                )
            if volume.mount_path in mount_paths:
                raise ConfigurationError(
                    f"mount path {volume.mount_path} of additional volume {volume.name!r} "
                    f"is already used by {mount_paths[volume.mount_path]!r}"
                )
            targets = volume.target_containers or []
            if ALL_CONTAINERS in targets and len(targets) > 1:
                raise ConfigurationError(
                    f"target containers of additional volume {volume.name!r} could be "
                    f"either 'all' or a list of containers"
                )
            mount_paths[volume.mount_path] = volume.name
            volumes.append(volume)

        container_names = {container.name for container in pod_spec.containers}
        for volume in volumes:
            pod_spec.volumes = [
                *(pod_spec.volumes or []),
                from_dict(
                    {"name": volume.name, **volume.volume_source},
                    "V1Volume",
                    f"additional volume {volume.name!r}",
                ),
            ]
            targets = volume.target_containers or [POSTGRES_CONTAINER_NAME]
            for name in targets:
                if name != ALL_CONTAINERS and name not in container_names:
                    logger.warning(
                        f"additional volume {volume.name!r} targets unknown container {name!r}"
                    )
            for container in pod_spec.containers:
                if ALL_CONTAINERS in targets or container.name in targets:
                    _mount(container, self._additional_mount(volume))

    @staticmethod
    def _additional_mount(volume: AdditionalVolume) -> V1VolumeMount:
        mount = V1VolumeMount(name=volume.name, mount_path=volume.mount_path)
        if volume.sub_path:
            if volume.is_sub_path_expr:
                mount.sub_path_expr = volume.sub_path
            else:
                mount.sub_path = volume.sub_path
        return mount

    @staticmethod
    def _secret_volume(secret_name: str, mount_path: str) -> AdditionalVolume:
        return AdditionalVolume(
            name=secret_name,
            mount_path=mount_path,
            volume_source={"secret": {"secretName": secret_name, "defaultMode": TLS_DEFAULT_MODE}},
        )

"""Environment variable composition.

Environment lists are assembled from named precedence stages. Stages are
appended from highest to lowest precedence and a variable whose name is
already present (compared case-insensitively) is dropped, so the first
writer wins:

    IDENTITY > MANIFEST > FEATURES > POD_ENV_SECRET > POD_ENV_CONFIGMAP > WAL_DEFAULTS

Identity variables can never be shadowed, manifest overrides beat every
derived or external value, and pod environment Secrets beat ConfigMaps.
The operator wide WAL archive settings come last so that a pod environment
ConfigMap can point a cluster at a different bucket.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from enum import IntEnum

from kubernetes.client import V1EnvVar, V1EnvVarSource, V1SecretKeySelector

from ..components.specs import CloneDescription, EnvVar, StandbyDescription
from ..core.constants import PASSWORD_KEY, PGROOT, POSTGRES_PORT, TLS_MOUNT_PATH
from ..core.k8s import field_ref_env, to_env_var
from ..core.retry import retry
from ..errors import (
    ExternalSourceError,
    RetryExhaustedError,
    SourceNotFoundError,
    SynthesisCancelled,
)
from .context import ClusterContext
from .storage import bucket_scope_suffix, wal_archive_env, wal_storages

logger = logging.getLogger(__name__)


class Stage(IntEnum):
    """Precedence stages, highest precedence first."""

    IDENTITY = 1
    MANIFEST = 2
    FEATURES = 3
    POD_ENV_SECRET = 4
    POD_ENV_CONFIGMAP = 5
    WAL_DEFAULTS = 6


def append_env_vars(env: list[V1EnvVar], *new: V1EnvVar) -> list[V1EnvVar]:
    """
    Append variables whose names are not present yet.

    Args:
        env: Existing list, left untouched
        *new: Candidates, in precedence order

    Returns:
        New list with the accepted candidates appended

    Example:
        >>> names = [v.name for v in append_env_vars(
        ...     [V1EnvVar(name="SCOPE", value="a")],
        ...     V1EnvVar(name="scope", value="b"),
        ...     V1EnvVar(name="PGPORT", value="5432"),
        ... )]
        >>> names
        ['SCOPE', 'PGPORT']
    """
    result = list(env)
    seen = {var.name.lower() for var in result}
    for var in new:
        key = var.name.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(var)
    return result


def compose(blocks: Mapping[Stage, Iterable[V1EnvVar]]) -> list[V1EnvVar]:
    """Flatten stages in precedence order with first-write-wins semantics."""
    env: list[V1EnvVar] = []
    for stage in sorted(blocks):
        env = append_env_vars(env, *blocks[stage])
    return env


def secret_ref_env(name: str, secret: str, key: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(secret_key_ref=V1SecretKeySelector(name=secret, key=key)),
    )


def manifest_env(declared: Iterable[EnvVar]) -> list[V1EnvVar]:
    return [to_env_var(var.name, var.value, var.value_from) for var in declared]


def _ensure_path(path: str, mount_path: str, default_file: str) -> str:
    """Relative file names are resolved against the mount path."""
    if not path:
        path = default_file
    if path.startswith("/"):
        return path
    return f"{mount_path.rstrip('/')}/{path}"


class EnvironmentComposer:
    """Builds the environment of every container generated for one cluster."""

    def __init__(self, ctx: ClusterContext):
        self.ctx = ctx
        self.config = ctx.config

    # Postgres container

    def postgres_env(self, spilo_configuration: str = "") -> list[V1EnvVar]:
        """
        Full environment of the postgres container.

        Args:
            spilo_configuration: Bootstrap configuration JSON, omitted when empty

        Returns:
            Ordered list with unique names

        Raises:
            ExternalSourceError: If a pod environment source cannot be read
        """
        return compose(
            {
                Stage.IDENTITY: self.identity_env(spilo_configuration),
                Stage.MANIFEST: manifest_env(self.ctx.spec.env),
                Stage.FEATURES: self.feature_env(),
                Stage.POD_ENV_SECRET: self.pod_environment_secret_env(),
                Stage.POD_ENV_CONFIGMAP: self.pod_environment_configmap_env(),
                Stage.WAL_DEFAULTS: wal_archive_env(self.config, self.ctx.uid),
            }
        )

    def identity_env(self, spilo_configuration: str = "") -> list[V1EnvVar]:
        config = self.config
        env = [
            V1EnvVar(name="SCOPE", value=self.ctx.name),
            V1EnvVar(name="PGROOT", value=PGROOT),
            field_ref_env("POD_IP", "status.podIP"),
            field_ref_env("POD_NAMESPACE", "metadata.namespace"),
            V1EnvVar(name="PGUSER_SUPERUSER", value=config.super_username),
            V1EnvVar(name="KUBERNETES_SCOPE_LABEL", value=config.cluster_name_label),
            V1EnvVar(name="KUBERNETES_ROLE_LABEL", value=config.pod_role_label),
            secret_ref_env(
                "PGPASSWORD_SUPERUSER",
                self.ctx.credential_secret_name(config.super_username),
                PASSWORD_KEY,
            ),
            V1EnvVar(name="PGUSER_STANDBY", value=config.replication_username),
            secret_ref_env(
                "PGPASSWORD_STANDBY",
                self.ctx.credential_secret_name(config.replication_username),
                PASSWORD_KEY,
            ),
            V1EnvVar(name="PAM_OAUTH2", value=config.pam_configuration),
            V1EnvVar(name="HUMAN_ROLE", value=config.pam_role_name),
        ]
        if config.enable_pgversion_env_var:
            env.append(V1EnvVar(name="PGVERSION", value=self.ctx.spec.postgresql.version))

        labels = json.dumps(config.cluster_labels, sort_keys=True, separators=(",", ":"))
        env.append(V1EnvVar(name="KUBERNETES_LABELS", value=labels))

        if spilo_configuration:
            env.append(V1EnvVar(name="SPILO_CONFIGURATION", value=spilo_configuration))

        if config.etcd_host:
            env.append(V1EnvVar(name="ETCD_HOST", value=config.etcd_host))
        else:
            env.append(V1EnvVar(name="DCS_ENABLE_KUBERNETES_API", value="true"))

        if config.kubernetes_use_configmaps:
            env.append(V1EnvVar(name="KUBERNETES_USE_CONFIGMAPS", value="true"))
        return env

    def feature_env(self) -> list[V1EnvVar]:
        """WAL path compatibility, clone, standby and TLS blocks, in that order."""
        env: list[V1EnvVar] = []
        if self.config.enable_spilo_wal_path_compat:
            env.append(V1EnvVar(name="ENABLE_WAL_PATH_COMPAT", value="true"))

        spec = self.ctx.spec
        if spec.clone is not None and spec.clone.cluster_name:
            env.extend(self.clone_env(spec.clone))
        if spec.standby is not None:
            env.extend(self.standby_env(spec.standby))
        env.extend(self.tls_env())
        return env

    def clone_env(self, clone: CloneDescription) -> list[V1EnvVar]:
        """Variables telling the new cluster where to bootstrap from."""
        if not clone.cluster_name:
            return []

        env = [V1EnvVar(name="CLONE_SCOPE", value=clone.cluster_name)]
        if not clone.end_timestamp:
            logger.info(f"cloning with basebackup from {clone.cluster_name}")
            env.extend(
                [
                    V1EnvVar(name="CLONE_METHOD", value="CLONE_WITH_BASEBACKUP"),
                    V1EnvVar(name="CLONE_HOST", value=clone.cluster_name),
                    V1EnvVar(name="CLONE_PORT", value=str(POSTGRES_PORT)),
                    V1EnvVar(name="CLONE_USER", value=self.config.replication_username),
                    secret_ref_env(
                        "CLONE_PASSWORD",
                        self.ctx.credential_secret_name(
                            self.config.replication_username, clone.cluster_name
                        ),
                        PASSWORD_KEY,
                    ),
                ]
            )
            return env

        logger.info(f"cloning {clone.cluster_name} from WAL location")
        if clone.s3_wal_path:
            logger.debug(f"using S3 WAL path {clone.s3_wal_path} from the manifest")
            env.append(V1EnvVar(name="CLONE_WALE_S3_PREFIX", value=clone.s3_wal_path))
        else:
            storages = wal_storages(self.config)
            if storages:
                env.extend(storages[0].clone_env())
            else:
                logger.error(
                    "cannot figure out S3 or GS bucket or Azure storage account, "
                    "all WAL archive options are empty in the operator configuration"
                )
            # the configured location is a bucket, not the full path
            env.append(
                V1EnvVar(name="CLONE_WAL_BUCKET_SCOPE_SUFFIX", value=bucket_scope_suffix(clone.uid))
            )

        env.extend(
            [
                V1EnvVar(name="CLONE_METHOD", value="CLONE_WITH_WALE"),
                V1EnvVar(name="CLONE_TARGET_TIME", value=clone.end_timestamp),
                V1EnvVar(name="CLONE_WAL_BUCKET_SCOPE_PREFIX", value=""),
            ]
        )
        if clone.s3_endpoint:
            env.append(V1EnvVar(name="CLONE_AWS_ENDPOINT", value=clone.s3_endpoint))
            env.append(V1EnvVar(name="CLONE_WALE_S3_ENDPOINT", value=clone.s3_endpoint))
        if clone.s3_access_key_id:
            env.append(V1EnvVar(name="CLONE_AWS_ACCESS_KEY_ID", value=clone.s3_access_key_id))
        if clone.s3_secret_access_key:
            env.append(V1EnvVar(name="CLONE_AWS_SECRET_ACCESS_KEY", value=clone.s3_secret_access_key))
        if clone.s3_force_path_style is not None:
            env.append(
                V1EnvVar(
                    name="CLONE_AWS_S3_FORCE_PATH_STYLE",
                    value="1" if clone.s3_force_path_style else "0",
                )
            )
        return env

    def standby_env(self, standby: StandbyDescription) -> list[V1EnvVar]:
        """Variables for streaming from a remote primary or replaying archived WAL."""
        if standby.standby_host:
            logger.info("standby cluster streaming from remote primary")
            env = [V1EnvVar(name="STANDBY_HOST", value=standby.standby_host)]
            if standby.standby_port:
                env.append(V1EnvVar(name="STANDBY_PORT", value=standby.standby_port))
            if standby.standby_primary_slot_name:
                env.append(
                    V1EnvVar(name="STANDBY_PRIMARY_SLOT_NAME", value=standby.standby_primary_slot_name)
                )
            return env

        logger.info("standby cluster streaming from WAL location")
        if standby.s3_wal_path:
            env = [V1EnvVar(name="STANDBY_WALE_S3_PREFIX", value=standby.s3_wal_path)]
        elif standby.gs_wal_path:
            env = [V1EnvVar(name="STANDBY_WALE_GS_PREFIX", value=standby.gs_wal_path)]
        else:
            logger.error("no WAL path specified in standby section")
            return []

        env.append(V1EnvVar(name="STANDBY_METHOD", value="STANDBY_WITH_WALE"))
        env.append(V1EnvVar(name="STANDBY_WAL_BUCKET_SCOPE_PREFIX", value=""))
        return env

    def tls_env(self) -> list[V1EnvVar]:
        """Certificate paths inside the TLS secret volume."""
        tls = self.ctx.spec.tls
        if tls is None or not tls.secret_name:
            return []

        env = [
            V1EnvVar(
                name="SSL_CERTIFICATE_FILE",
                value=_ensure_path(tls.certificate_file, TLS_MOUNT_PATH, "tls.crt"),
            ),
            V1EnvVar(
                name="SSL_PRIVATE_KEY_FILE",
                value=_ensure_path(tls.private_key_file, TLS_MOUNT_PATH, "tls.key"),
            ),
        ]
        if tls.ca_file:
            ca_mount_path = f"{TLS_MOUNT_PATH}ca" if tls.separate_ca_secret else TLS_MOUNT_PATH
            env.append(V1EnvVar(name="SSL_CA_FILE", value=_ensure_path(tls.ca_file, ca_mount_path, "")))
        return env

    # External sources

    def pod_environment_configmap_env(self) -> list[V1EnvVar]:
        """Literal variables from the pod environment ConfigMap, sorted by name."""
        ref = self.config.pod_environment_configmap_ref(self.ctx.namespace)
        if ref is None:
            return []

        namespace, name = ref
        try:
            data = self._reader().read_config_map(namespace, name)
        except SourceNotFoundError as e:
            raise ExternalSourceError(f"could not read PodEnvironmentConfigMap: {e}") from e
        except ExternalSourceError:
            raise
        except Exception as e:
            raise ExternalSourceError(f"could not read PodEnvironmentConfigMap: {e}") from e

        return [V1EnvVar(name=key, value=value) for key, value in sorted(data.items())]

    def pod_environment_secret_env(self) -> list[V1EnvVar]:
        """Secret references for every key of the pod environment Secret, sorted by name."""
        name = self.config.pod_environment_secret
        if not name:
            return []
        data = self._read_secret_with_retry(name, "PodEnvironmentSecretName")
        return [secret_ref_env(key, name, key) for key in sorted(data)]

    def cronjob_secret_env(self) -> list[V1EnvVar]:
        """Secret references for the logical backup job's environment Secret."""
        name = self.config.logical_backup.cronjob_environment_secret
        if not name:
            return []
        try:
            data = self._reader().read_secret(self.ctx.namespace, name)
        except Exception as e:
            raise ExternalSourceError(f"could not read Secret CronjobEnvironmentSecretName: {e}") from e
        return [secret_ref_env(key, name, key) for key in sorted(data)]

    def _read_secret_with_retry(self, name: str, setting: str) -> dict[str, bytes]:
        """Read a Secret, retrying while it does not exist yet.

        API errors other than not-found fail immediately.
        """
        reader = self._reader()
        found: dict[str, bytes] = {}
        not_found: SourceNotFoundError | None = None

        def attempt() -> bool:
            nonlocal not_found
            try:
                found.update(reader.read_secret(self.ctx.namespace, name))
            except SourceNotFoundError as e:
                not_found = e
                return False
            return True

        try:
            retry(
                attempt,
                self.config.resource_check_interval,
                self.config.resource_check_timeout,
                cancel=self.ctx.cancel,
            )
        except RetryExhaustedError as e:
            raise ExternalSourceError(f"could not read Secret {setting}: {e}: {not_found}") from not_found
        except SynthesisCancelled:
            raise
        except Exception as e:
            raise ExternalSourceError(f"could not read Secret {setting}: {e}") from e
        return found

    def _reader(self):
        if self.ctx.sources is None:
            raise ExternalSourceError("no reader configured for pod environment sources")
        return self.ctx.sources

    # Sidecars

    def sidecar_env(self, own: Iterable[V1EnvVar] = ()) -> list[V1EnvVar]:
        """Default variables every sidecar receives, followed by its own."""
        defaults = [
            field_ref_env("POD_NAME", "metadata.name"),
            field_ref_env("POD_NAMESPACE", "metadata.namespace"),
            V1EnvVar(name="POSTGRES_USER", value=self.config.super_username),
            secret_ref_env(
                "POSTGRES_PASSWORD",
                self.ctx.credential_secret_name(self.config.super_username),
                PASSWORD_KEY,
            ),
        ]
        return compose({Stage.IDENTITY: defaults, Stage.MANIFEST: list(own)})

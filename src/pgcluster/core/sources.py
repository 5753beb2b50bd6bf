"""Readers for pod environment Secrets and ConfigMaps.

The synthesis engine only reads key/value pairs from these objects. Readers
raise ``SourceNotFoundError`` when the object does not exist; any other
exception is treated as an API failure.
"""

import base64
import logging
from collections.abc import Mapping
from typing import Protocol

from kubernetes.client import CoreV1Api
from kubernetes.client.exceptions import ApiException

from ..errors import SourceNotFoundError

logger = logging.getLogger(__name__)


class EnvironmentSourceReader(Protocol):
    """Read access to Secrets and ConfigMaps."""

    def read_secret(self, namespace: str, name: str) -> dict[str, bytes]:
        ...

    def read_config_map(self, namespace: str, name: str) -> dict[str, str]:
        ...


class KubernetesSourceReader:
    """Reads sources through the Kubernetes core API."""

    def __init__(self, core_v1: CoreV1Api):
        self.core_v1 = core_v1

    def read_secret(self, namespace: str, name: str) -> dict[str, bytes]:
        try:
            secret = self.core_v1.read_namespaced_secret(name, namespace)
        except ApiException as e:
            if e.status == 404:
                raise SourceNotFoundError(f'secret "{name}" not found') from e
            raise
        return {key: base64.b64decode(value) for key, value in (secret.data or {}).items()}

    def read_config_map(self, namespace: str, name: str) -> dict[str, str]:
        try:
            config_map = self.core_v1.read_namespaced_config_map(name, namespace)
        except ApiException as e:
            if e.status == 404:
                raise SourceNotFoundError(f'configmap "{name}" not found') from e
            raise
        return dict(config_map.data or {})


class StaticSourceReader:
    """Serves sources from memory, keyed by (namespace, name).

    Used by the CLI to render manifests offline.
    """

    def __init__(
        self,
        secrets: Mapping[tuple[str, str], Mapping[str, bytes]] | None = None,
        config_maps: Mapping[tuple[str, str], Mapping[str, str]] | None = None,
    ):
        self.secrets = {key: dict(value) for key, value in (secrets or {}).items()}
        self.config_maps = {key: dict(value) for key, value in (config_maps or {}).items()}

    def read_secret(self, namespace: str, name: str) -> dict[str, bytes]:
        try:
            return dict(self.secrets[(namespace, name)])
        except KeyError:
            raise SourceNotFoundError(f'secret "{name}" not found') from None

    def read_config_map(self, namespace: str, name: str) -> dict[str, str]:
        try:
            return dict(self.config_maps[(namespace, name)])
        except KeyError:
            raise SourceNotFoundError(f'configmap "{name}" not found') from None

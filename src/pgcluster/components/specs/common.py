"""Common shared models used by cluster manifests and operator configuration."""

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResourceDescription(BaseModel):
    """Quantities for one side (requests or limits) of a container's resources.

    Quantities are kept as the strings the user wrote ("0.7Gi" stays
    "0.7Gi"); they are parsed only when bounds are compared.
    """

    model_config = ConfigDict(populate_by_name=True)

    cpu: str | None = None
    memory: str | None = None
    hugepages_2mi: str | None = Field(None, alias="hugepages-2Mi")
    hugepages_1gi: str | None = Field(None, alias="hugepages-1Gi")


class Resources(BaseModel):
    """Requests and limits override for a single container."""

    model_config = ConfigDict(populate_by_name=True)

    requests: ResourceDescription = Field(default_factory=ResourceDescription)
    limits: ResourceDescription = Field(default_factory=ResourceDescription)


class EnvVar(BaseModel):
    """Kubernetes environment variable specification."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    value: str | None = None
    value_from: dict[str, Any] | None = Field(None, alias="valueFrom")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        """Validate environment variable name."""
        if not v:
            raise ValueError("Environment variable name cannot be empty")
        if not re.match(r"^[A-Za-z_][A-Za-z0-9_.-]*$", v):
            raise ValueError(
                f"Invalid environment variable name: {v}. "
                "Must start with letter or underscore"
            )
        return v


class Sidecar(BaseModel):
    """A sidecar container declared on a cluster manifest."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    image: str | None = None
    resources: Resources | None = None
    env: list[EnvVar] = Field(default_factory=list)
    ports: list[dict[str, Any]] = Field(default_factory=list)
    command: list[str] | None = None
    args: list[str] | None = None


class AdditionalVolume(BaseModel):
    """A user supplied volume and where to mount it.

    ``target_containers`` empty or absent mounts into the postgres container
    only, ``["all"]`` mounts into every container of the pod.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    mount_path: str = Field(alias="mountPath")
    sub_path: str | None = Field(None, alias="subPath")
    is_sub_path_expr: bool = Field(False, alias="isSubPathExpr")
    target_containers: list[str] | None = Field(None, alias="targetContainers")
    volume_source: dict[str, Any] = Field(default_factory=dict, alias="volumeSource")


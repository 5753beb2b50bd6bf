"""Kubernetes object helpers.

Free-form parts of a manifest (volume sources, affinity, container
templates) arrive as plain dicts in Kubernetes JSON shape; these helpers
turn them into ``kubernetes.client`` models and back.
"""

import re
from functools import lru_cache
from typing import Any

from kubernetes.client import ApiClient, V1EnvVar, V1EnvVarSource, V1ObjectFieldSelector, models

from ..errors import ConfigurationError
from .constants import MAX_OBJECT_NAME_LENGTH

_PRIMITIVES = {"str": str, "int": int, "float": float, "bool": bool}
# Values of these types are kept as given (int-or-string fields are "object")
_PASSTHROUGH = {"object", "date", "datetime"}
_DICT_TYPE = re.compile(r"dict\(([^,]*), (.*)\)")


@lru_cache(maxsize=1)
def _api_client() -> ApiClient:
    return ApiClient()


def _build(data: Any, klass: str) -> Any:
    if data is None:
        return None
    if klass.startswith("list["):
        if not isinstance(data, list):
            raise ValueError(f"expected a list for {klass}, got {type(data).__name__}")
        return [_build(item, klass[5:-1]) for item in data]
    match = _DICT_TYPE.fullmatch(klass)
    if match:
        if not isinstance(data, dict):
            raise ValueError(f"expected a mapping for {klass}, got {type(data).__name__}")
        return {key: _build(value, match.group(2)) for key, value in data.items()}
    if klass in _PRIMITIVES:
        return _PRIMITIVES[klass](data)
    if klass in _PASSTHROUGH:
        return data

    model = getattr(models, klass)
    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping for {klass}, got {type(data).__name__}")
    kwargs = {}
    for attr, attr_type in model.openapi_types.items():
        key = model.attribute_map[attr]
        if key in data:
            kwargs[attr] = _build(data[key], attr_type)
    return model(**kwargs)


def from_dict(data: dict[str, Any] | list | None, klass: str, setting: str | None = None) -> Any:
    """Build a kubernetes client model from its JSON representation.

    Unknown keys are ignored. Fields are resolved through the model's
    ``openapi_types`` and ``attribute_map`` tables.

    Args:
        data: Object in Kubernetes JSON shape (camelCase keys)
        klass: Model name, e.g. "V1Volume" or "list[V1Toleration]"
        setting: Manifest or configuration field the data came from, used
            in error messages

    Returns:
        The model instance, or None when data is None

    Raises:
        ConfigurationError: If the data does not describe a valid model

    Example:
        >>> from_dict({"name": "x", "emptyDir": {}}, "V1Volume").name
        'x'
    """
    try:
        return _build(data, klass)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid {setting or klass}: {e}") from e


def to_dict(obj: Any) -> Any:
    """Serialize a kubernetes model (or a structure of them) to plain JSON types."""
    return _api_client().sanitize_for_serialization(obj)


def truncate_name(name: str, max_length: int = MAX_OBJECT_NAME_LENGTH) -> str:
    """Trim an object name from the end so it fits the platform limit.

    Args:
        name: Full name, usually a prefix concatenated with the cluster name
        max_length: Maximum allowed length

    Returns:
        The name, shortened from the end when needed and never ending in
        a separator
    """
    if len(name) <= max_length:
        return name
    return name[:max_length].rstrip("-.")


def field_ref_env(name: str, field_path: str) -> V1EnvVar:
    """Environment variable taken from a pod field."""
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(
            field_ref=V1ObjectFieldSelector(api_version="v1", field_path=field_path)
        ),
    )


def to_env_var(name: str, value: str | None = None, value_from: dict[str, Any] | None = None) -> V1EnvVar:
    """Environment variable from a manifest declaration with an optional ``valueFrom`` dict."""
    source = from_dict(value_from, "V1EnvVarSource", f"valueFrom of {name}") if value_from else None
    return V1EnvVar(name=name, value=value, value_from=source)

"""Resource requirement resolution.

Turns a partial per-container override into complete requests and limits:

1. unset values fall back to the configured defaults (hugepages never do);
2. the postgres container's limits are raised to the configured minimums;
3. with ``set_memory_request_to_limit`` the memory request is raised to the limit;
4. requests are capped at the configured maximums;
5. a limit below its request is raised to the request.

Quantities keep the spelling they were given in; they are only parsed to be
compared.
"""

import logging
from decimal import Decimal

from kubernetes.client import V1ResourceRequirements
from kubernetes.utils import parse_quantity

from ..components.specs import OperatorConfig, ResourceDescription, Resources
from ..core.constants import POSTGRES_CONTAINER_NAME
from ..errors import ConfigurationError
from .context import ClusterContext

logger = logging.getLogger(__name__)

RESOURCE_KEYS = ("cpu", "memory", "hugepages-2Mi", "hugepages-1Gi")
DEFAULTED_KEYS = ("cpu", "memory")


def parse(quantity: str, what: str) -> Decimal:
    """Parse a quantity, reporting which setting it came from on failure."""
    try:
        return parse_quantity(quantity)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"could not parse {what} {quantity!r}: {e}") from e


def _configured(quantity: str | None, what: str) -> str | None:
    """A configured bound or default; empty and zero mean not configured."""
    if not quantity:
        return None
    if parse(quantity, what) == 0:
        return None
    return quantity


def coalesce(*values: str | None) -> str | None:
    for value in values:
        if value:
            return value
    return None


def describe(
    cpu_request: str | None,
    memory_request: str | None,
    cpu_limit: str | None,
    memory_limit: str | None,
) -> Resources:
    """Build a Resources model from four cpu/memory values."""
    return Resources(
        requests=ResourceDescription(cpu=cpu_request, memory=memory_request),
        limits=ResourceDescription(cpu=cpu_limit, memory=memory_limit),
    )


def default_resources(config: OperatorConfig) -> Resources:
    """The operator wide defaults every container falls back to."""
    return describe(
        config.default_cpu_request,
        config.default_memory_request,
        config.default_cpu_limit,
        config.default_memory_limit,
    )


def _as_dict(description: ResourceDescription | None) -> dict[str, str]:
    if description is None:
        return {}
    values = description.model_dump(by_alias=True, exclude_none=True)
    return {key: value for key, value in values.items() if value != ""}


def resolve_resources(
    ctx: ClusterContext,
    container: str,
    override: Resources | None,
    defaults: Resources | None = None,
) -> V1ResourceRequirements:
    """
    Resolve the resource requirements of one container.

    Args:
        ctx: Synthesis context; clamps are reported through its event recorder
        container: Container name; minimum limits apply to postgres only
        override: Resources declared on the manifest, possibly partial
        defaults: Fallback values, the operator defaults when omitted

    Returns:
        Requirements where no request exceeds its limit. Resources with
        neither a value nor a default are left out.

    Raises:
        ConfigurationError: If a quantity cannot be parsed
    """
    config = ctx.config
    if defaults is None:
        defaults = default_resources(config)

    requests = _as_dict(override.requests if override else None)
    limits = _as_dict(override.limits if override else None)

    for key in DEFAULTED_KEYS:
        default_request = _configured(getattr(defaults.requests, key), f"default {key} request")
        default_limit = _configured(getattr(defaults.limits, key), f"default {key} limit")
        if key not in requests and default_request:
            requests[key] = default_request
        if key not in limits and default_limit:
            limits[key] = default_limit

    if container == POSTGRES_CONTAINER_NAME:
        _enforce_min_limit(ctx, container, limits, "cpu", config.min_cpu_limit)
        _enforce_min_limit(ctx, container, limits, "memory", config.min_memory_limit)

    if config.set_memory_request_to_limit:
        _set_memory_request_to_limit(container, requests, limits)

    _enforce_max_request(ctx, container, requests, "cpu", config.max_cpu_request)
    _enforce_max_request(ctx, container, requests, "memory", config.max_memory_request)

    for key in RESOURCE_KEYS:
        if key in requests and key in limits:
            if parse(requests[key], f"{key} request") > parse(limits[key], f"{key} limit"):
                logger.debug(
                    f"{key} limit {limits[key]} of {container!r} container is below its "
                    f"request, raising it to {requests[key]}"
                )
                limits[key] = requests[key]

    return V1ResourceRequirements(requests=requests or None, limits=limits or None)


def _enforce_min_limit(
    ctx: ClusterContext, container: str, limits: dict[str, str], key: str, minimum: str
) -> None:
    minimum = _configured(minimum, f"minimum {key} limit")
    if minimum is None:
        return
    current = limits.get(key)
    if current is not None and parse(current, f"{key} limit") >= parse(minimum, f"minimum {key} limit"):
        return

    message = (
        f"defined {key} limit {current or 'none'} for {container!r} container is below "
        f"required minimum {minimum} and will be increased"
    )
    ctx.warn("ResourceLimits", message)
    limits[key] = minimum


def _enforce_max_request(
    ctx: ClusterContext, container: str, requests: dict[str, str], key: str, maximum: str
) -> None:
    maximum = _configured(maximum, f"maximum {key} request")
    current = requests.get(key)
    if maximum is None or current is None:
        return
    if parse(current, f"{key} request") <= parse(maximum, f"maximum {key} request"):
        return

    message = (
        f"defined {key} request {current} for {container!r} container is greater than "
        f"allowed maximum {maximum} and will be decreased"
    )
    ctx.warn("ResourceRequests", message)
    requests[key] = maximum


def _set_memory_request_to_limit(container: str, requests: dict[str, str], limits: dict[str, str]) -> None:
    request = requests.get("memory")
    limit = limits.get("memory")
    if limit is None:
        return
    if request is None or parse(request, "memory request") < parse(limit, "memory limit"):
        logger.debug(
            f"setting memory request of {container!r} container from {request} to limit {limit}"
        )
        requests["memory"] = limit

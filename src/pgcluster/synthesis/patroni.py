"""Bootstrap configuration handed to Spilo through ``SPILO_CONFIGURATION``."""

import json
import logging
from typing import Any

from ..components.specs import OperatorConfig, PatroniSpec, PostgresqlParam
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

PG_BINARIES_LOCATION_TEMPLATE = "/usr/lib/postgresql/{version}/bin"

DEFAULT_INITDB_OPTIONS = {"auth-host": "md5", "auth-local": "trust"}


def _initdb_options(declared: dict[str, str]) -> list[Any]:
    """initdb options as Patroni expects them: switches as bare strings, the rest as pairs."""
    options = dict(DEFAULT_INITDB_OPTIONS)
    for key in sorted(declared):
        options[key] = declared[key]

    result: list[Any] = []
    for key, value in options.items():
        if value.lower() == "true":
            result.append(key)
        else:
            result.append({key: value})
    return result


def _dcs(patroni: PatroniSpec, pg_param: PostgresqlParam, config: OperatorConfig) -> dict[str, Any]:
    dcs: dict[str, Any] = {}
    if patroni.ttl:
        dcs["ttl"] = patroni.ttl
    if patroni.loop_wait:
        dcs["loop_wait"] = patroni.loop_wait
    if patroni.retry_timeout:
        dcs["retry_timeout"] = patroni.retry_timeout
    if patroni.maximum_lag_on_failover:
        dcs["maximum_lag_on_failover"] = patroni.maximum_lag_on_failover
    if patroni.synchronous_mode:
        dcs["synchronous_mode"] = True
    if patroni.synchronous_mode_strict:
        dcs["synchronous_mode_strict"] = True
    if patroni.synchronous_node_count:
        dcs["synchronous_node_count"] = patroni.synchronous_node_count
    if pg_param.parameters:
        dcs["postgresql"] = {"parameters": dict(sorted(pg_param.parameters.items()))}
    if patroni.slots:
        dcs["slots"] = {
            name: dict(sorted(slot.items())) for name, slot in sorted(patroni.slots.items())
        }

    # the cluster setting wins over the operator wide one, in both directions
    if patroni.failsafe_mode is not None:
        dcs["failsafe_mode"] = patroni.failsafe_mode
    elif config.enable_patroni_failsafe_mode is not None:
        dcs["failsafe_mode"] = config.enable_patroni_failsafe_mode
    return dcs


def generate_spilo_configuration(
    pg_param: PostgresqlParam, patroni: PatroniSpec, config: OperatorConfig
) -> str:
    """
    Render the compact JSON document Spilo merges into its Patroni configuration.

    Args:
        pg_param: Postgres version and server parameters of the cluster
        patroni: Patroni settings of the cluster
        config: Operator configuration, for globally enabled features

    Returns:
        JSON without whitespace, keys in the order Spilo documents them

    Example:
        >>> generate_spilo_configuration(PostgresqlParam(version="17"), PatroniSpec(), OperatorConfig())
        '{"postgresql":{"bin_dir":"/usr/lib/postgresql/17/bin"},"bootstrap":{"initdb":[{"auth-host":"md5"},{"auth-local":"trust"}],"dcs":{}}}'
    """
    postgresql: dict[str, Any] = {
        "bin_dir": PG_BINARIES_LOCATION_TEMPLATE.format(version=pg_param.version),
    }
    if patroni.pg_hba:
        postgresql["pg_hba"] = list(patroni.pg_hba)

    document = {
        "postgresql": postgresql,
        "bootstrap": {
            "initdb": _initdb_options(patroni.initdb),
            "dcs": _dcs(patroni, pg_param, config),
        },
    }
    result = json.dumps(document, separators=(",", ":"))
    logger.debug(f"spilo configuration: {result}")
    return result


def extract_pg_version_from_bin_path(bin_path: str, template: str = PG_BINARIES_LOCATION_TEMPLATE) -> str:
    """
    Recover the major version from a binary directory.

    Args:
        bin_path: Directory such as ``/usr/lib/postgresql/17/bin``
        template: Location template with a ``{version}`` placeholder

    Returns:
        The version part of the path, e.g. "17" or "9.6"

    Raises:
        ConfigurationError: If the path does not follow the template
    """
    prefix, placeholder, suffix = template.partition("{version}")
    if not placeholder:
        raise ConfigurationError(f"binary location template {template!r} has no version placeholder")

    if not bin_path.startswith(prefix) or not bin_path.endswith(suffix):
        raise ConfigurationError(f"could not extract postgres version from {bin_path!r} using {template!r}")
    version = bin_path[len(prefix) : len(bin_path) - len(suffix)]
    if not version or "/" in version:
        raise ConfigurationError(f"could not extract postgres version from {bin_path!r} using {template!r}")
    return version

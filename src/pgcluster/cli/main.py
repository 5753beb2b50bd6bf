"""pgcluster CLI entry point."""

import logging
from pathlib import Path

import typer
import yaml

from ..components.specs import OperatorConfig, PostgresCluster
from ..core.events import RecordingEventRecorder
from ..core.sources import StaticSourceReader
from ..synthesis import ManifestSynthesizer
from .common_options import cluster_argument, config_option, pairs_option, verbose_option
from .display import console, error, info, info_dict, objects_table, section, success, warning

app = typer.Typer(
    name="pgcluster",
    help="Render the Kubernetes objects of a PostgreSQL cluster",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def parse_pairs(pairs: list[str], what: str) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    result = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            error(f"Invalid {what} entry {pair!r}, expected KEY=VALUE")
            raise typer.Exit(2)
        result[key] = value
    return result


def offline_sources(
    config: OperatorConfig,
    namespace: str,
    secret: dict[str, str],
    cronjob_secret: dict[str, str],
    configmap: dict[str, str],
) -> StaticSourceReader:
    """In-memory sources for the objects the configuration refers to.

    Referenced objects always exist, possibly empty, so rendering never
    waits on the Secret retry.
    """
    secrets = {}
    if config.pod_environment_secret:
        secrets[(namespace, config.pod_environment_secret)] = {
            key: value.encode() for key, value in secret.items()
        }
    elif secret:
        warning("--secret given but no pod_environment_secret is configured")

    cronjob_secret_name = config.logical_backup.cronjob_environment_secret
    if cronjob_secret_name:
        secrets[(namespace, cronjob_secret_name)] = {
            key: value.encode() for key, value in cronjob_secret.items()
        }
    elif cronjob_secret:
        warning("--cronjob-secret given but no cronjob_environment_secret is configured")

    config_maps = {}
    ref = config.pod_environment_configmap_ref(namespace)
    if ref is not None:
        config_maps[ref] = configmap
    elif configmap:
        warning("--configmap given but no pod_environment_configmap is configured")

    return StaticSourceReader(secrets=secrets, config_maps=config_maps)


@app.command()
def render(
    cluster_file: Path = cluster_argument(),
    config_file: Path | None = config_option(),
    secret: list[str] = pairs_option("--secret", "Pod environment Secret entry"),
    cronjob_secret: list[str] = pairs_option("--cronjob-secret", "Logical backup Secret entry"),
    configmap: list[str] = pairs_option("--configmap", "Pod environment ConfigMap entry"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write YAML here instead of stdout"),
    verbose: bool = verbose_option(),
):
    """Render every object of a cluster as a multi-document YAML stream."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    config = OperatorConfig.load_or_default(config_file)
    cluster = PostgresCluster.from_yaml(cluster_file)
    sources = offline_sources(
        config,
        cluster.namespace,
        parse_pairs(secret, "--secret"),
        parse_pairs(cronjob_secret, "--cronjob-secret"),
        parse_pairs(configmap, "--configmap"),
    )

    events = RecordingEventRecorder()
    manifests = ManifestSynthesizer(config).generate(cluster, sources=sources, events=events)

    documents = yaml.safe_dump_all(manifests.to_dicts(), default_flow_style=False, sort_keys=False)
    if output:
        output.write_text(documents)
        console.print(objects_table(manifests.to_dicts()))
        success(f"Wrote {len(manifests.objects())} objects to {output}")
    else:
        typer.echo(documents, nl=False)

    for event in events.events:
        warning(f"{event.reason}: {event.message}")

    if manifests.errors:
        for key, e in manifests.errors.items():
            error(f"{key}: {e}")
        raise typer.Exit(1)


@app.command()
def validate(
    cluster_file: Path = cluster_argument(),
    config_file: Path | None = config_option(),
):
    """Validate a cluster manifest and operator configuration without rendering."""
    config = OperatorConfig.load_or_default(config_file)
    cluster = PostgresCluster.from_yaml(cluster_file)

    section("Cluster")
    info_dict(
        {
            "Name": cluster.name,
            "Namespace": cluster.namespace,
            "Team": cluster.spec.team_id or "-",
            "Instances": cluster.spec.number_of_instances,
            "Postgres": cluster.spec.postgresql.version,
            "Image": cluster.spec.docker_image or config.docker_image,
        }
    )
    success("Cluster manifest and operator configuration are valid")


@app.command()
def version():
    """Show pgcluster version."""
    from .. import __version__
    info(f"pgcluster version: {__version__}")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        warning("\nInterrupted by user")
        raise typer.Exit(1)


if __name__ == "__main__":
    main()

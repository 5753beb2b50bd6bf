"""Common Typer options shared across CLI commands."""

import typer


def config_option(help_text: str = "Operator configuration file (YAML)") -> typer.Option:
    """Create the operator configuration option.

    Args:
        help_text: Custom help text

    Returns:
        Configured Typer Option
    """
    return typer.Option(
        None,
        "--config",
        "-c",
        help=help_text,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    )


def cluster_argument(help_text: str = "Cluster manifest (YAML)") -> typer.Argument:
    return typer.Argument(
        ...,
        help=help_text,
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    )


def verbose_option(help_text: str = "Show synthesis decisions") -> typer.Option:
    return typer.Option(False, "--verbose", "-v", help=help_text)


def pairs_option(flag: str, help_text: str) -> typer.Option:
    """Create a repeatable KEY=VALUE option."""
    return typer.Option([], flag, help=help_text, metavar="KEY=VALUE")

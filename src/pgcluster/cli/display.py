"""Display helpers for CLI commands."""
from typing import Any, Dict

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def success(message: str) -> None:
    """Print success message."""
    err_console.print(f"[green]✓ {message}[/green]")


def warning(message: str) -> None:
    """Print warning message."""
    err_console.print(f"[yellow]⚠️  {message}[/yellow]")


def error(message: str) -> None:
    """Print error message."""
    err_console.print(f"[red]❌ {message}[/red]")


def info(message: str) -> None:
    """Print info message."""
    console.print(message)


def section(title: str) -> None:
    """Print section header."""
    console.print(f"\n[bold]{title}[/bold]")


def info_dict(data: Dict[str, Any], indent: str = "  ") -> None:
    """Print a dictionary as indented key-value pairs."""
    for key, value in data.items():
        console.print(f"{indent}{key}: {value}")


def objects_table(objects: list[Dict[str, Any]]) -> Table:
    """Summary table of generated objects."""
    table = Table(title="Generated objects")
    table.add_column("Kind", style="cyan")
    table.add_column("Name")
    table.add_column("Namespace", style="dim")
    for obj in objects:
        metadata = obj.get("metadata", {})
        table.add_row(obj.get("kind", "?"), metadata.get("name", ""), metadata.get("namespace", ""))
    return table

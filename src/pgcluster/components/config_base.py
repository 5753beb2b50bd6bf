"""Base configuration model with YAML loading capabilities."""

from pathlib import Path
from typing import Any, TypeVar

import typer
import yaml
from pydantic import BaseModel, ValidationError
from rich.console import Console

T = TypeVar("T", bound="ConfigModel")
console = Console(stderr=True)


class ConfigModel(BaseModel):
    """Base model for operator configuration and cluster manifests loaded from YAML."""

    @classmethod
    def from_yaml(cls: type[T], path: Path) -> T:
        """
        Load and validate a model from a YAML file.

        Args:
            path: Path to the YAML document

        Returns:
            Validated model instance

        Raises:
            typer.Exit: On file not found, invalid YAML, or validation errors
        """
        if not path.exists():
            console.print(f"[red]{cls.__name__} file not found:[/red] {path}")
            raise typer.Exit(1)

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            cls._handle_yaml_error(e, path)

        if data is None:
            data = {}
        if not isinstance(data, dict):
            console.print(f"[red]Expected a mapping at the top of[/red] {path.name}")
            raise typer.Exit(1)

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            cls._handle_validation_error(e, path)

    @classmethod
    def from_yaml_optional(cls: type[T], path: Path | None) -> T | None:
        """Load a model from YAML if a path was given and exists."""
        if path and path.exists():
            return cls.from_yaml(path)
        return None

    @classmethod
    def load_or_default(cls: type[T], path: Path | None, **defaults: Any) -> T:
        """Load from YAML or build the model from keyword defaults."""
        if path and path.exists():
            return cls.from_yaml(path)
        return cls(**defaults)

    def to_yaml_string(self) -> str:
        """
        Convert the model to a YAML string using its wire aliases.

        Returns:
            YAML formatted string
        """
        return yaml.safe_dump(
            self.model_dump(by_alias=True, exclude_none=True),
            default_flow_style=False,
            sort_keys=False,
        )

    @classmethod
    def _handle_validation_error(cls, error: ValidationError, path: Path):
        """Pretty-print validation errors."""
        console.print(f"[red]Invalid {cls.__name__}:[/red] {path.name}\n")

        for err in error.errors():
            field_path = " → ".join(str(loc) for loc in err["loc"])
            if "missing" in err["type"]:
                console.print(f"  [yellow]Missing required field:[/yellow] {field_path}")
            else:
                console.print(f"  [yellow]{field_path}:[/yellow] {err['msg']}")

        console.print("\n[dim]Check the file format and required fields[/dim]")
        raise typer.Exit(1)

    @classmethod
    def _handle_yaml_error(cls, error: yaml.YAMLError, path: Path):
        """Handle YAML parsing errors."""
        console.print(f"[red]Invalid YAML syntax in:[/red] {path.name}")

        if hasattr(error, "problem_mark"):
            mark = error.problem_mark
            console.print(f"  Line {mark.line + 1}, Column {mark.column + 1}")

        console.print(f"\n[dim]{error}[/dim]")
        raise typer.Exit(1)

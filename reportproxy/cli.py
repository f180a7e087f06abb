"""
reportproxy CLI

Command-line tools for inspecting how a class will be proxied and for
validating exclusion files.
"""

import importlib
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from reportproxy.config import get_settings
from reportproxy.errors import ProxyConfigurationError
from reportproxy.logging_config import configure_logging
from reportproxy.proxy.classifier import build_interception_table
from reportproxy.proxy.models import Bucket, ExclusionConfig

app = typer.Typer(
    name="reportproxy",
    help="Transparent activity-reporting proxies",
    add_completion=False,
)

console = Console()

BUCKET_STYLES = {
    Bucket.METHOD: "green",
    Bucket.PROPERTY_SET: "green",
    Bucket.PROPERTY_GET: "cyan",
    Bucket.EXCLUDED: "yellow",
    Bucket.NON_OVERRIDABLE: "dim",
    Bucket.FOUNDATIONAL: "dim",
}


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    configure_logging(get_settings())


def resolve_type(reference: str) -> type:
    """
    Import a class from a 'module:QualName' reference.

    Raises:
        typer.BadParameter: If the reference is malformed or does not
            name a class.
    """
    module_name, sep, qualname = reference.partition(":")
    if not sep or not module_name or not qualname:
        raise typer.BadParameter(f"Expected 'module:QualName', got {reference!r}")

    # allow inspecting modules in the working directory
    if "" not in sys.path:
        sys.path.insert(0, "")

    try:
        target = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"Cannot import {reference}: {e}")

    if not isinstance(target, type):
        raise typer.BadParameter(f"{reference} is not a class")
    return target


@app.command()
def inspect(
    target: str = typer.Argument(..., help="Class to inspect, as module:QualName"),
    exclusions: str = typer.Option(None, "--exclusions", "-e", help="Exclusions YAML file"),
):
    """
    Show how each member of a class is intercepted.

    Examples:
        reportproxy inspect myapp.devices:Phone
        reportproxy inspect myapp.devices:Phone -e exclusions.yaml
    """
    proxied_type = resolve_type(target)

    try:
        config = ExclusionConfig.from_file(exclusions) if exclusions else ExclusionConfig()
        table = build_interception_table(proxied_type, config.excluded_members(proxied_type))
    except (FileNotFoundError, ProxyConfigurationError) as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(1)

    grid = Table(title=f"Interception table: {proxied_type.__qualname__}")
    grid.add_column("Member", style="cyan")
    grid.add_column("Kind")
    grid.add_column("Bucket")
    grid.add_column("Declared In")
    grid.add_column("Reported As")

    for spec in sorted(table.members.values(), key=lambda s: (s.name, s.kind.value)):
        style = BUCKET_STYLES.get(spec.bucket, "white")
        grid.add_row(
            spec.name,
            spec.kind.value,
            f"[{style}]{spec.bucket.value}[/{style}]",
            spec.declaring_type.__qualname__,
            spec.qualified_name if spec.reported else "-",
        )

    console.print(grid)
    console.print(
        f"\n[dim]{len(table.reported_members)} reported of {len(table.members)} members[/dim]"
    )


@app.command()
def validate(
    exclusions: str = typer.Option(..., "--exclusions", "-e", help="Exclusions YAML file to validate"),
):
    """Validate an exclusions file."""
    try:
        config = ExclusionConfig.from_file(Path(exclusions))
    except FileNotFoundError:
        console.print(f"[red]✗ {exclusions}: File not found[/red]")
        raise typer.Exit(1)
    except ProxyConfigurationError as e:
        console.print(f"[red]✗ {exclusions}: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    member_count = sum(len(entry.members) for entry in config.exclusions)
    console.print(Panel.fit(
        f"Name: [cyan]{config.name}[/cyan]\n"
        f"Version: {config.version}\n"
        f"Types: {len(config.exclusions)}\n"
        f"Excluded members: {member_count}",
        title="[green]✓ Valid exclusions file[/green]",
    ))


@app.command()
def version():
    """Show version information."""
    from reportproxy import __version__
    console.print(f"reportproxy v{__version__}")


if __name__ == "__main__":
    app()

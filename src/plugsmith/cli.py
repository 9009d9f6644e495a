"""
plugsmith CLI - command-line interface for loading and inspecting plugins.
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from plugsmith.logging_config import setup_logging

app = typer.Typer(
    name="plugsmith",
    help="plugsmith - dependency-aware plugin loader",
    no_args_is_help=True,
)

console = Console()


def _init_logging() -> None:
    # Fall back to console logging if file logging is not permitted
    try:
        setup_logging(context="cli")
    except PermissionError:
        logging.basicConfig(level=logging.INFO)


@app.command()
def load(
    root: Optional[Path] = typer.Option(None, help="Plugin root holding the category folders"),
    category: Optional[List[str]] = typer.Option(
        None, "--category", "-c", help="Category folder to scan (repeatable)"
    ),
    data_dir: Optional[Path] = typer.Option(None, help="Shared plugin data directory"),
    graylist: Optional[Path] = typer.Option(None, help="Graylist YAML file"),
    seed: Optional[int] = typer.Option(None, help="Seed for the scan-order shuffle"),
) -> None:
    """
    Load and enable plugins from the configured categories.

    Exits with status 1 if any plugin failed to load.
    """
    from plugsmith.config import settings
    from plugsmith.exceptions import PluginSystemError
    from plugsmith.startup import PluginStartupError, create_manager, start_plugins

    _init_logging()

    overrides = {"fail_on_load_errors": True}
    if root is not None:
        overrides["plugin_root"] = str(root)
    if category:
        overrides["categories"] = list(category)
    if data_dir is not None:
        overrides["plugin_data_dir"] = str(data_dir)
    if graylist is not None:
        overrides["graylist_file"] = str(graylist)
    if seed is not None:
        overrides["scan_seed"] = seed
    config = settings.model_copy(update=overrides)

    console.print(f"[bold blue]Loading plugins from:[/bold blue] {config.plugin_root}")
    console.print(f"  Categories: {', '.join(config.categories) or 'N/A'}")
    console.print()

    try:
        manager = create_manager(config)
    except PluginSystemError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    with manager:
        try:
            result = start_plugins(manager, config)
        except PluginStartupError as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            raise typer.Exit(1)

        table = Table(title="Loaded plugins")
        table.add_column("Name")
        table.add_column("Version")
        table.add_column("Source")
        for plugin in result.plugins.values():
            table.add_row(plugin.name, plugin.descriptor.version, plugin.source)
        console.print(table)

        if result.rejected:
            console.print(f"  Skipped by graylist: {', '.join(result.rejected)}")
        console.print(f"[green]✓ Loaded {len(result.plugins)} plugin(s)[/green]")


@app.command()
def inspect(
    path: Path = typer.Argument(..., help="Category folder or single plugin source"),
) -> None:
    """
    Describe the plugins found in a category path without activating them.
    """
    from plugsmith.exceptions import PluginLoadError
    from plugsmith.plugins.loaders import FolderSourceLoader, PyzSourceLoader, ZipSourceLoader
    from plugsmith.plugins.module_host import ModuleHost
    from plugsmith.plugins.registry import PluginRegistry
    from plugsmith.plugins.triage import TriageBuilder, TriageSet

    _init_logging()

    if not path.exists():
        console.print(f"[bold red]Error:[/bold red] Path not found: {path}")
        raise typer.Exit(1)

    # Describing sources never imports plugin code
    registry = PluginRegistry()
    module_host = ModuleHost()
    loaders = {
        loader.loader_id: loader
        for loader in (
            PyzSourceLoader(module_host, registry),
            FolderSourceLoader(module_host, registry),
            ZipSourceLoader(module_host, registry),
        )
    }
    triage = TriageSet()
    errors: List[PluginLoadError] = []
    TriageBuilder(registry).scan([path], triage, loaders, errors)

    table = Table(title=f"Plugins in {path}")
    table.add_column("Name")
    table.add_column("Version")
    table.add_column("Loader")
    table.add_column("Depends")
    table.add_column("Soft depends")
    for name in sorted(triage.plugins):
        entry = triage.plugins[name]
        descriptor = entry.descriptor
        table.add_row(
            name,
            descriptor.version,
            type(entry.loader).__name__,
            ", ".join(sorted(descriptor.hard_dependencies)) or "-",
            ", ".join(sorted(triage.soft_deps.get(name, ()))) or "-",
        )
    console.print(table)

    for error in errors:
        console.print(f"[bold red]✗[/bold red] {error}")
    if errors:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

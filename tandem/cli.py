from __future__ import annotations

import importlib.metadata as md
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from .config import TandemConfig, load_config, resolve_config_path
from .core.declaration import CapabilityKind, Role, parse_declaration
from .core.errors import TandemError
from .loader import DirectoryLoader
from .log import configure_logging

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="Tandem CLI")
console = Console()


@app.command()
def version() -> None:
    """Print version information."""
    try:
        dist_version = md.version("tandem")
        console.print(f"tandem {dist_version}")
    except md.PackageNotFoundError:
        from . import __version__
        console.print(f"tandem {__version__}")
    raise typer.Exit(code=0)


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/tandem.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg: TandemConfig = load_config(resolved)
    except (OSError, ValueError) as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- discovery timeout: {cfg.discovery.timeout}s")
    console.print(f"- log level: {cfg.logging.level}")


@app.command(name="config-which")
def config_which(path: Path = typer.Option(Path("configs/tandem.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(path)))


@app.command()
def inspect(
    root: Path = typer.Argument(..., help="Directory of component modules"),
    role: Role = typer.Option(Role.SERVICE, "--role", "-r", case_sensitive=False),
    config: Path = typer.Option(Path("configs/tandem.yml"), "--config", "-c"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Load and validate every component under ROOT and list its capabilities."""
    resolved = resolve_config_path(config)
    try:
        cfg = load_config(resolved) if resolved.exists() else TandemConfig()
    except ValueError as exc:
        console.print(f"[red]Config validation failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    if verbose:
        cfg.logging.level = "DEBUG"
    configure_logging(cfg.logging)

    try:
        modules = DirectoryLoader().load(root)
    except (OSError, ImportError) as exc:
        console.print(f"[red]Could not load {root}: {exc}[/red]")
        raise typer.Exit(code=1) from exc

    table = Table(title=f"{role.value.title()}s in {root}")
    table.add_column("name")
    for kind in CapabilityKind:
        table.add_column(kind.value)
    table.add_column("hooks")

    failures = 0
    seen: set[str] = set()
    for module in modules:
        try:
            declaration = parse_declaration(module.declaration, role)
        except TandemError as exc:
            failures += 1
            console.print(f"[red]{module.origin}: {exc}[/red]")
            continue
        if declaration.name in seen:
            failures += 1
            console.print(f"[red]{module.origin}: duplicate {role.value} {declaration.name}[/red]")
            continue
        seen.add(declaration.name)

        hooks = [hook for hook in ("init", "start") if getattr(declaration, hook) is not None]
        table.add_row(
            declaration.name,
            *(", ".join(sorted(declaration.names(kind))) for kind in CapabilityKind),
            ", ".join(hooks),
        )

    console.print(table)
    if failures:
        console.print(f"{failures} declaration(s) failed validation")
        raise typer.Exit(code=1)


def launch() -> None:
    """Entry point when executed as a module/script."""
    app()


if __name__ == "__main__":
    launch()

"""CLI commands for the figsetup settings file (~/.figsetup/config.yaml)."""

from __future__ import annotations

import typer
from rich.console import Console

from figsetup.errors import FigsetupError

console = Console()


def register(
    config_app: typer.Typer,
    get_config,
    save_config,
    get_config_value,
    set_config_value,
) -> None:
    """Register config commands on the config sub-app."""

    def _require_known(key: str):
        value = get_config_value(get_config(), key)
        if value is None:
            console.print(f"[red]Unknown config key:[/red] {key}")
            raise typer.Exit(1)
        return value

    @config_app.command("show")
    def config_show():
        """Print the effective configuration (file + FIGSETUP_* overrides) as JSON."""
        console.print_json(get_config().model_dump_json(indent=2))

    @config_app.command("get")
    def config_get(key: str = typer.Argument(..., help="Dotted key, e.g. bridge.timeout")):
        """Print one config value."""
        console.print(f"{key} = {_require_known(key)}")

    @config_app.command("set")
    def config_set(
        key: str = typer.Argument(..., help="Dotted key, e.g. bridge.timeout"),
        value: str = typer.Argument(...),
    ):
        """Store one config value in the settings file."""
        _require_known(key)
        try:
            updated = set_config_value(key, value)
        except FigsetupError as exc:
            console.print(f"[red]Error:[/red] {exc.message}")
            raise typer.Exit(1) from exc
        console.print(f"[green]Set[/green] {key} = {get_config_value(updated, key)}")

    @config_app.command("path")
    def config_path():
        """Print where the settings file lives."""
        from figsetup.config import get_config_path

        console.print(str(get_config_path()), soft_wrap=True)

    @config_app.command("init")
    def config_init(
        force: bool = typer.Option(False, "--force", help="Overwrite an existing config file."),
    ):
        """Write the default configuration to ~/.figsetup/config.yaml."""
        from figsetup.config import Config, get_config_path

        path = get_config_path()
        if path.exists() and not force:
            console.print(f"[yellow]{path} already exists[/yellow] (use --force to overwrite)")
            raise typer.Exit(1)
        save_config(Config(), path)
        console.print(f"[green]Wrote[/green] {path}")

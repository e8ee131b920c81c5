"""figsetup CLI - Configure Figma Console MCP across AI coding clients."""

from __future__ import annotations

import typer
from rich.console import Console

from figsetup.config import (
    Config,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from figsetup.errors import FigsetupError
from figsetup.logging_setup import new_correlation_id, setup_logging

app = typer.Typer(
    name="figsetup",
    help="Configure Figma Console MCP across AI coding clients",
    no_args_is_help=False,
)
config_app = typer.Typer(help="Manage configuration")

app.add_typer(config_app, name="config")

console = Console()

_config: Config | None = None


def _get_config() -> Config:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _set_config_value(key: str, value: str) -> Config:
    global _config
    _config = set_config_value(key, value)
    return _config


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
):
    """figsetup - run with no command to start the setup wizard."""
    global _config
    try:
        cfg = _get_config()
    except FigsetupError as exc:
        if ctx.invoked_subcommand != "config":
            console.print(f"[red]Error:[/red] {exc.message}")
            raise typer.Exit(1) from exc
        # config commands must still work so the settings can be repaired
        console.print(f"[yellow]Warning:[/yellow] {exc.message}; showing defaults")
        cfg = _config = Config()
    if verbose:
        cfg.logging.level = "INFO"
    setup_logging(cfg)
    new_correlation_id()

    if ctx.invoked_subcommand is None:
        from figsetup.setup.wizard import run_wizard
        _setup_mod.run_guarded(lambda: run_wizard(cfg), "Setup")


# Register commands from sub-modules
from figsetup.cli import config_cmd as _config_cmd_mod  # noqa: E402
from figsetup.cli import setup_cmd as _setup_mod  # noqa: E402

_setup_mod.register(app, _get_config)
_config_cmd_mod.register(config_app, _get_config, save_config, get_config_value, _set_config_value)

if __name__ == "__main__":
    app()

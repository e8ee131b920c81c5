"""CLI commands: setup, doctor, status, verify."""

from __future__ import annotations

import sys
from collections.abc import Callable

import typer
from rich.console import Console

from figsetup.errors import FigsetupError

console = Console()


def run_guarded(action: Callable[[], object], label: str) -> None:
    """Run a wizard entry point, mapping aborts and errors to exit codes."""
    from figsetup.setup.wizard import WizardAborted

    try:
        action()
    except (WizardAborted, KeyboardInterrupt):
        console.print(f"\n[dim]{label} cancelled.[/dim]\n")
    except FigsetupError as exc:
        console.print(f"\n[red]Error:[/red] {exc.message}\n")
        raise typer.Exit(1) from exc


def register(app: typer.Typer, get_config) -> None:  # noqa: ANN001
    """Register setup commands on the main Typer app."""

    @app.command()
    def setup():
        """Interactive wizard: configure clients and verify the Figma connection."""
        from figsetup.setup.wizard import run_wizard
        run_guarded(lambda: run_wizard(get_config()), "Setup")

    @app.command()
    def doctor():
        """Diagnose and manage existing integrations (update token, remove, add)."""
        from figsetup.setup.wizard import run_doctor
        run_guarded(lambda: run_doctor(get_config()), "Doctor")

    @app.command()
    def status():
        """Show which clients are detected and configured, without changing anything."""
        from figsetup.setup.wizard import run_status
        run_guarded(lambda: run_status(get_config()), "Status")

    @app.command()
    def verify(
        channel: str = typer.Option(
            "bridge",
            "--channel",
            "-c",
            help="Connection channel to check: 'bridge' or 'cdp'.",
        ),
    ):
        """Check that Figma is reachable over the chosen channel."""
        from figsetup.setup.connection import ConnectionChannel
        from figsetup.setup.verifier import VerificationOutcome
        from figsetup.setup.wizard import run_health_check

        try:
            selected = ConnectionChannel(channel)
        except ValueError:
            console.print(f"[red]Unknown channel:[/red] {channel} (expected 'bridge' or 'cdp')")
            raise typer.Exit(2)

        # without a terminal, report a single attempt instead of prompting
        interactive = sys.stdin.isatty()
        outcome: list[VerificationOutcome] = []
        run_guarded(lambda: outcome.append(run_health_check(get_config(), selected, interactive)), "Verify")
        if not outcome or outcome[0] != VerificationOutcome.CONNECTED:
            raise typer.Exit(1)

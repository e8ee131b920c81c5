"""Interactive setup wizard and doctor menu: rich display + questionary prompts."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import questionary
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from figsetup.config import expand_path
from figsetup.errors import ErrorCode, FigsetupError, ProvisionError
from figsetup.setup import config_store
from figsetup.setup.connection import (
    ConnectionChannel,
    bridge_import_steps,
    debug_launch_command,
    locate_bridge_manifest,
    manual_bridge_steps,
)
from figsetup.setup.install_method import InstallChoice, InstallMethod, InstallMethodResolver, OnDemand
from figsetup.setup.platform import get_platform
from figsetup.setup.provisioner import GitRepoProvisioner, is_existing_clone
from figsetup.setup.reconcile import BatchReport, ReconciliationEngine, existing_token
from figsetup.setup.registry import ClientRegistry
from figsetup.setup.system_check import run_system_check
from figsetup.setup.targets.claude_code import manual_command
from figsetup.setup.verifier import BridgeVerifier, DebugPortVerifier, VerificationOutcome

if TYPE_CHECKING:
    from figsetup.config import Config
    from figsetup.setup.registry import ScanResult

console = Console()

TOKEN_PREFIX = "figd_"
TOKEN_HELP_URL = (
    "https://developers.figma.com/docs/rest-api/authentication/#generate-a-personal-access-token"
)


class WizardAborted(Exception):
    """The user dismissed a prompt (Ctrl-C / Escape in questionary)."""


def _ask(question: questionary.Question):
    # questionary returns None if the user aborts
    answer = question.ask()
    if answer is None:
        raise WizardAborted()
    return answer


def mask_token(token: str) -> str:
    if len(token) <= 9:
        return token
    return f"{token[:5]}****{token[-4:]}"


def build_engine(config: Config) -> ReconciliationEngine:
    provisioner = GitRepoProvisioner(config.provisioning)
    resolver = InstallMethodResolver(provisioner, default_dir=expand_path(config.provisioning.clone_dir))
    return ReconciliationEngine(ClientRegistry(), resolver)


def _require_tty() -> None:
    if not sys.stdin.isatty():
        raise FigsetupError(ErrorCode.INVALID_INPUT, "This command needs an interactive terminal.")


# ── Setup wizard ────────────────────────────────────────────────────────────────


def run_wizard(config: Config) -> None:
    """Full setup: system check → token → clients → install method → configure → connect → verify."""
    _require_tty()
    engine = build_engine(config)

    console.print()
    console.print(
        Panel(
            "[bold cyan]Figma Console MCP — Setup Wizard[/bold cyan]\n"
            "[dim]Connect your AI clients to Figma[/dim]",
            expand=False,
        )
    )

    _run_system_check()
    token = prompt_for_token()

    with console.status("[bold green]Scanning for AI clients...[/bold green]", spinner="dots"):
        results = engine.scan()
    _display_scan_results(results, show_tokens=False)

    detected = [r for r in results if r.detected]
    if not detected:
        console.print("[yellow]No supported clients detected.[/yellow]\n")
        return
    if any(r.configured for r in detected):
        console.print(
            "[dim]Tip: to update the token or remove the integration from configured clients, "
            "quit and run:[/dim] [cyan]figsetup doctor[/cyan]\n"
        )

    selected = _ask(
        questionary.checkbox(
            "Select clients to configure:",
            choices=[questionary.Choice(title=r.target.name, value=r, checked=True) for r in detected],
        )
    )
    if not selected:
        console.print("[yellow]No clients selected. Exiting.[/yellow]\n")
        return

    report = _add_with_fallback(engine, config, selected, token, include_configured=True)
    if report is None:
        return
    if not report.succeeded:
        console.print("[yellow]No clients were configured. Exiting.[/yellow]\n")
        return

    channel = _setup_connection(config, report.method or OnDemand())
    outcome = run_health_check(config, channel)
    if outcome == VerificationOutcome.CONNECTED:
        _display_success([o.name for o in report.succeeded])


def _run_system_check() -> None:
    console.print("\n[bold]System Check[/bold]")
    for check in run_system_check():
        if check.ok:
            console.print(f"  [green]✓[/green] {check.message}")
        elif check.fatal:
            console.print(f"  [red]✗[/red] {check.message}")
            raise FigsetupError(ErrorCode.PREREQUISITE_MISSING, check.message)
        else:
            console.print(f"  [yellow]![/yellow] {check.message}")
    console.print()


def prompt_for_token() -> str:
    """Ask for a Figma personal access token until one with the right prefix is given."""
    console.print("[bold]Figma Authentication[/bold]")
    console.print(f"  Generate a Personal Access Token at:\n  [cyan]{TOKEN_HELP_URL}[/cyan]\n")
    while True:
        token = _ask(questionary.password("Paste your Figma Personal Access Token:")).strip()
        if token.startswith(TOKEN_PREFIX):
            console.print("  [green]✓[/green] Token accepted\n")
            return token
        console.print(f'  [red]✗[/red] Invalid token — must start with "{TOKEN_PREFIX}". Try again.\n')


def _select_install_method(config: Config) -> tuple[InstallChoice, Path | None]:
    choice = _ask(
        questionary.select(
            "How should the MCP server be installed?",
            choices=[
                questionary.Choice("NPX (Recommended) — auto-updates", value=InstallChoice.ON_DEMAND),
                questionary.Choice(
                    "Local Git Clone — for manual update control or contributing",
                    value=InstallChoice.LOCAL,
                ),
            ],
        )
    )
    if choice == InstallChoice.ON_DEMAND:
        return choice, None

    default_dir = expand_path(config.provisioning.clone_dir)
    if is_existing_clone(default_dir):
        console.print(f"  [dim]Existing clone found at {default_dir}[/dim]")
        return choice, default_dir

    answer = _ask(
        questionary.text(
            "Where should we clone figma-console-mcp?",
            default=str(default_dir),
            validate=lambda v: Path(v.strip()).expanduser().is_absolute() or "Path must be absolute",
        )
    )
    return choice, expand_path(answer.strip())


def _add_with_fallback(
    engine: ReconciliationEngine,
    config: Config,
    selected: list[ScanResult],
    token: str,
    include_configured: bool = False,
) -> BatchReport | None:
    """Run an add batch; on install failure show manual steps and return None."""
    choice, target_dir = _select_install_method(config)
    try:
        with console.status("[bold green]Configuring clients...[/bold green]", spinner="dots"):
            report = engine.add(selected, token, choice, target_dir, include_configured=include_configured)
    except ProvisionError as exc:
        console.print(f"\n  [red]✗[/red] {exc.message}")
        _display_manual_fallback(config)
        return None
    _display_report(report)
    return _retry_busy(engine, selected, token, report, include_configured)


def _retry_busy(
    engine: ReconciliationEngine,
    selected: list[ScanResult],
    token: str,
    report: BatchReport,
    include_configured: bool,
) -> BatchReport:
    """Offer to retry targets that refused the add because they were running."""
    while True:
        busy = [o for o in report.outcomes if o.code == ErrorCode.TARGET_BUSY]
        if not busy:
            return report
        names = ", ".join(o.name for o in busy)
        action = _ask(
            questionary.select(
                f"{names} must be closed before it can be configured.",
                choices=[
                    questionary.Choice(f"I've closed {names}, retry", value="retry"),
                    questionary.Choice("Skip", value="skip"),
                ],
            )
        )
        if action == "skip":
            console.print(f"\n  Register {names} later with:")
            console.print(f"    [cyan]{manual_command(report.method)}[/cyan]\n", soft_wrap=True)
            return report

        busy_ids = {o.target_id for o in busy}
        retried = engine.add_resolved(
            [r for r in selected if r.target.id in busy_ids], token, report.method, include_configured
        )
        _display_report(retried)
        by_id = {o.target_id: o for o in retried.outcomes}
        report.outcomes = [by_id.get(o.target_id, o) for o in report.outcomes]


def _setup_connection(config: Config, method: InstallMethod) -> ConnectionChannel:
    console.print("\n[bold]Figma Connection Method[/bold]")
    channel = _ask(
        questionary.select(
            "How do you want to connect to Figma?",
            choices=[
                questionary.Choice(
                    "Desktop Bridge Plugin (Recommended) — no restart needed",
                    value=ConnectionChannel.BRIDGE,
                ),
                questionary.Choice(
                    "CDP Debug Mode — relaunch Figma with remote debugging enabled",
                    value=ConnectionChannel.DEBUG_PORT,
                ),
            ],
        )
    )

    if channel == ConnectionChannel.BRIDGE:
        try:
            with console.status("[bold green]Preparing bridge plugin...[/bold green]", spinner="dots"):
                manifest = locate_bridge_manifest(
                    method,
                    expand_path(config.provisioning.clone_dir),
                    GitRepoProvisioner(config.provisioning),
                )
        except ProvisionError as exc:
            console.print(f"\n  [red]Error:[/red] {exc.message}")
            _print_steps("Automatic setup unavailable. Manual steps:", manual_bridge_steps(config.provisioning.repo_url))
        else:
            _print_steps("Next steps:", bridge_import_steps(manifest))
    else:
        console.print("\n  Close Figma if running, then relaunch with:\n")
        console.print(f"    [cyan]{debug_launch_command(get_platform(), config.debug_port.port)}[/cyan]\n")
        console.print("  [dim]Figma must be restarted with this flag each time you want CDP access.[/dim]")
    return channel


# ── Health check ──────────────────────────────────────────────────────────────


def run_health_check(config: Config, channel: ConnectionChannel, interactive: bool = True) -> VerificationOutcome:
    """Verify Figma is reachable over *channel*, offering retry on failure.

    With ``interactive=False`` nothing is prompted: one attempt is made and
    its outcome returned.
    """
    console.print("\n[bold]Health Check[/bold]\n")
    if channel == ConnectionChannel.DEBUG_PORT:
        return _check_debug_port(config, interactive)
    return _check_bridge(config, interactive)


def _retry_or_exit() -> bool:
    action = _ask(
        questionary.select(
            "What would you like to do?",
            choices=[
                questionary.Choice("Retry health check", value="retry"),
                questionary.Choice("Exit setup", value="exit"),
            ],
        )
    )
    if action == "exit":
        console.print("\n[yellow]Setup incomplete. Run the wizard again when ready.[/yellow]\n")
        return False
    return True


def _check_debug_port(config: Config, interactive: bool = True) -> VerificationOutcome:
    verifier = DebugPortVerifier(config.debug_port.url, config.debug_port.attempt_timeout)
    endpoint = f"{config.debug_port.host}:{config.debug_port.port}"

    if not interactive:
        if verifier.check():
            console.print(f"  [green]✓[/green] Figma CDP endpoint reachable ({endpoint})")
            return VerificationOutcome.CONNECTED
        console.print(f"  [red]✗[/red] Figma CDP endpoint not reachable ({endpoint})")
        return VerificationOutcome.TIMED_OUT

    ready = _ask(
        questionary.confirm("Have you relaunched Figma with the --remote-debugging-port flag?", default=True)
    )
    if not ready:
        console.print("\n[yellow]Complete the setup steps above, then run the wizard again.[/yellow]\n")
        return VerificationOutcome.CANCELLED

    def _should_retry() -> bool:
        console.print(
            "  [yellow]![/yellow] Figma CDP endpoint not reachable — "
            "launch Figma with the connection method you chose"
        )
        return _retry_or_exit()

    outcome = verifier.poll(_should_retry)
    if outcome == VerificationOutcome.CONNECTED:
        console.print(f"  [green]✓[/green] Figma CDP endpoint reachable ({endpoint})")
    return outcome


def _check_bridge(config: Config, interactive: bool = True) -> VerificationOutcome:
    while True:
        console.print("  [cyan]→ Start (or restart) the Figma Console Bridge plugin in Figma now.[/cyan]\n")
        verifier = BridgeVerifier(
            ports=config.bridge.ports,
            host=config.bridge.host,
            timeout=config.bridge.timeout,
            key_input=sys.stdin if interactive else None,
        )
        with console.status("Waiting for Bridge plugin... [dim](press Escape to cancel)[/dim]", spinner="dots"):
            outcome = asyncio.run(verifier.wait())

        if outcome == VerificationOutcome.CONNECTED:
            console.print("  [green]✓[/green] Bridge plugin connected")
            return outcome
        if outcome == VerificationOutcome.CANCELLED:
            console.print("\n[yellow]Setup cancelled. Run the wizard again when ready.[/yellow]\n")
            return outcome

        console.print(
            "  [yellow]![/yellow] Bridge plugin not detected — make sure you started/restarted "
            "the plugin after seeing this prompt"
        )
        if not interactive or not _retry_or_exit():
            return outcome
        console.print()


# ── Doctor ────────────────────────────────────────────────────────────────────


def run_doctor(config: Config) -> None:
    """Scan → act → re-scan loop for managing existing integrations."""
    _require_tty()
    engine = build_engine(config)

    console.print()
    console.print(Panel("[bold cyan]Figma Console MCP — Doctor[/bold cyan]", expand=False))

    while True:
        # never reuse results across actions; files and the CLI may have changed
        with console.status("[bold green]Scanning for AI clients...[/bold green]", spinner="dots"):
            results = engine.scan()
        _display_scan_results(results, show_tokens=True)

        choices: list[questionary.Choice] = []
        if any(r.configured for r in results):
            choices.append(questionary.Choice("Update Figma token", value="update"))
            choices.append(questionary.Choice("Remove integration", value="remove"))
        if any(r.detected and not r.configured for r in results):
            choices.append(questionary.Choice("Add to unconfigured clients", value="add"))
        choices.append(questionary.Choice("Done", value="done"))

        action = _ask(questionary.select("What would you like to do?", choices=choices))
        if action == "done":
            break
        if action == "update":
            token = prompt_for_token()
            _display_report(engine.update(results, token))
        elif action == "remove":
            _doctor_remove(engine, results)
        elif action == "add":
            _doctor_add(engine, config, results)


def _doctor_remove(engine: ReconciliationEngine, results: list[ScanResult]) -> None:
    configured = [r for r in results if r.configured]
    selected = _ask(
        questionary.checkbox(
            "Select clients to remove integration from:",
            choices=[questionary.Choice(title=r.target.name, value=r) for r in configured],
        )
    )
    if not selected:
        console.print("  [dim]No clients selected.[/dim]")
        return
    _display_report(engine.remove(selected))


def _doctor_add(engine: ReconciliationEngine, config: Config, results: list[ScanResult]) -> None:
    unconfigured = [r for r in results if r.detected and not r.configured]
    selected = _ask(
        questionary.checkbox(
            "Select clients to add integration to:",
            choices=[questionary.Choice(title=r.target.name, value=r) for r in unconfigured],
        )
    )
    if not selected:
        console.print("  [dim]No clients selected.[/dim]")
        return

    reusable = existing_token(results)
    if reusable and _ask(
        questionary.select(
            f"Use existing token ({mask_token(reusable)})?",
            choices=[
                questionary.Choice("Yes, reuse existing token", value=True),
                questionary.Choice("No, enter a new token", value=False),
            ],
        )
    ):
        token = reusable
    else:
        token = prompt_for_token()

    _add_with_fallback(engine, config, selected, token)


# ── Status ────────────────────────────────────────────────────────────────────


def run_status(config: Config) -> None:
    """Non-interactive scan of every client."""
    engine = build_engine(config)
    with console.status("[bold green]Scanning for AI clients...[/bold green]", spinner="dots"):
        results = engine.scan()
    _display_scan_results(results, show_tokens=True)


# ── Display helpers ───────────────────────────────────────────────────────────


def _display_scan_results(results: list[ScanResult], show_tokens: bool) -> None:
    """Render scan results as a rich table."""
    table = Table(title="Integration Status", show_lines=False, min_width=60)
    table.add_column("Status", justify="center", width=7)
    table.add_column("Client", style="bold")
    table.add_column("State")
    if show_tokens:
        table.add_column("Token")

    for result in results:
        if not result.detected:
            row = ["[dim]·[/dim]", result.target.name, "[dim]not detected[/dim]"]
        elif not result.configured:
            row = ["[yellow]·[/yellow]", result.target.name, "not configured"]
        else:
            row = ["[green]✓[/green]", result.target.name, "[green]configured[/green]"]

        if show_tokens:
            if not result.configured:
                row.append("[dim]-[/dim]")
            elif result.token:
                row.append(mask_token(result.token))
            elif result.target.cli_managed:
                row.append("[dim]managed by CLI[/dim]")
            else:
                row.append("[dim]no token[/dim]")
        table.add_row(*row)

    console.print(table)


def _display_report(report: BatchReport) -> None:
    if not report.outcomes:
        console.print("  [dim]Nothing to do.[/dim]")
        return
    for outcome in report.outcomes:
        icon = "[green]✓[/green]" if outcome.success else "[red]✗[/red]"
        console.print(f"  {icon} {outcome.message}")
    console.print()


def _print_steps(title: str, steps: list[str]) -> None:
    console.print(f"\n  [bold]{title}[/bold]\n")
    for i, step in enumerate(steps, start=1):
        console.print(f"  {i}. {step}")
    console.print()


def _display_manual_fallback(config: Config) -> None:
    snippet = json.dumps(
        config_store.merge({}, "<token>", OnDemand()),
        indent=2,
    )
    console.print("\n[yellow]Automatic install unavailable. Configure manually:[/yellow]\n")
    console.print("  [bold]Claude Code[/bold]")
    console.print(f"    [cyan]{manual_command()}[/cyan]\n")
    console.print("  [bold]Claude Desktop / Cursor / Windsurf[/bold] — add to the client's MCP config:")
    console.print(snippet, highlight=False)
    console.print(f"\n  [dim]Or clone {config.provisioning.repo_url} and build it yourself.[/dim]\n")


def _display_success(client_names: list[str]) -> None:
    lines = ["[bold]Configured clients:[/bold]"]
    lines += [f"  [green]•[/green] {name}" for name in client_names]
    lines += [
        "",
        "[bold]Try these prompts in your AI client:[/bold]",
        '  [dim]"Take a screenshot of the current Figma file"[/dim]',
        '  [dim]"List all components in the design system"[/dim]',
        '  [dim]"Create a 400×300 frame with a blue background"[/dim]',
    ]
    console.print()
    console.print(Panel("\n".join(lines), title="[bold green]Setup Complete[/bold green]", expand=False))
    console.print()

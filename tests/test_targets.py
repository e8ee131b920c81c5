"""Tests for the file-backed and CLI-managed targets."""

from __future__ import annotations

import pytest

from figsetup.errors import ExternalToolError, TargetBusyError
from figsetup.setup import config_store
from figsetup.setup.install_method import LocalPath, OnDemand, infer_install_method
from figsetup.setup.process import CommandResult
from figsetup.setup.reconcile import ReconciliationEngine
from figsetup.setup.registry import ScanResult
from figsetup.setup.targets import ClaudeCodeTarget, IntegrationTarget
from figsetup.setup.targets import claude_code as claude_code_mod
from figsetup.setup.targets.claude_code import add_command, manual_command

from conftest import SAMPLE_TOKEN


def test_targets_satisfy_protocol(make_json_target):
    assert isinstance(make_json_target(), IntegrationTarget)
    assert isinstance(ClaudeCodeTarget(), IntegrationTarget)


# --- JsonFileTarget ---


def test_json_add_then_remove_preserves_foreign_keys(make_json_target, foreign_config):
    target = make_json_target(config=foreign_config)

    target.add(SAMPLE_TOKEN, LocalPath("/r/dist/local.js"))
    assert target.is_configured()
    assert target.read_entry()["args"] == ["/r/dist/local.js"]

    target.remove()
    assert not target.is_configured()
    assert config_store.read(target.config_path) == foreign_config


def test_json_remove_without_entry_leaves_file_untouched(make_json_target, foreign_config):
    target = make_json_target(config=foreign_config)
    before = target.config_path.read_bytes()

    target.remove()

    assert target.config_path.read_bytes() == before


def test_json_detect_requires_file(make_json_target):
    assert make_json_target().detect() is False
    assert make_json_target(id="x", config={}).detect() is True


# --- ClaudeCodeTarget ---


@pytest.fixture
def claude_cli(monkeypatch):
    """Fake `claude`/`pgrep` tooling; returns the list of mutating commands run."""
    state = {"running": False, "listed": "", "details": None}
    calls: list[list[str]] = []

    def _try_command(command, timeout=5):
        if command[0] == "pgrep":
            return CommandResult(0 if state["running"] else 1, "", "")
        if command[:3] == ["claude", "mcp", "list"]:
            return CommandResult(0, state["listed"], "")
        if command[:3] == ["claude", "mcp", "get"]:
            if state["details"] is None:
                return CommandResult(1, "", "No MCP server found with name: figma-console")
            return CommandResult(0, state["details"], "")
        return None

    def _run(command, cwd=None, timeout=None, retries=0):
        calls.append(command)
        if state.get("fail"):
            raise ExternalToolError(command, 1, state["fail"])
        return CommandResult(0, "", "")

    monkeypatch.setattr(claude_code_mod, "try_command", _try_command)
    monkeypatch.setattr(claude_code_mod, "run_command", _run)
    monkeypatch.setattr(claude_code_mod, "get_platform", lambda: "linux")
    return state, calls


def test_add_command_shape():
    assert add_command(SAMPLE_TOKEN, OnDemand()) == [
        "claude", "mcp", "add", "figma-console", "-s", "user",
        "-e", f"FIGMA_ACCESS_TOKEN={SAMPLE_TOKEN}",
        "-e", "ENABLE_MCP_APPS=true",
        "--", "npx", "-y", "figma-console-mcp@latest",
    ]
    assert add_command(SAMPLE_TOKEN, LocalPath("/r/dist/local.js"))[-3:] == ["--", "node", "/r/dist/local.js"]


def test_manual_command_uses_placeholder():
    assert "FIGMA_ACCESS_TOKEN=<token>" in manual_command()


def test_cli_add_fresh(claude_cli):
    _, calls = claude_cli
    ClaudeCodeTarget().add(SAMPLE_TOKEN, OnDemand())
    assert calls == [add_command(SAMPLE_TOKEN, OnDemand())]


def test_cli_add_replaces_existing(claude_cli):
    state, calls = claude_cli
    state["listed"] = "figma-console: npx -y figma-console-mcp@latest\n"

    ClaudeCodeTarget().update(SAMPLE_TOKEN, OnDemand())

    assert calls[0] == ["claude", "mcp", "remove", "figma-console", "-s", "user"]
    assert calls[1][:4] == ["claude", "mcp", "add", "figma-console"]


def test_cli_add_refuses_while_running(claude_cli):
    state, calls = claude_cli
    state["running"] = True

    with pytest.raises(TargetBusyError):
        ClaudeCodeTarget().add(SAMPLE_TOKEN, OnDemand())
    assert calls == []


def test_cli_failure_surfaces_stderr_verbatim(claude_cli):
    state, _ = claude_cli
    state["fail"] = "Error: config locked by another process"

    with pytest.raises(ExternalToolError) as exc_info:
        ClaudeCodeTarget().remove()
    assert exc_info.value.stderr == "Error: config locked by another process"


def test_cli_configured_by_substring(claude_cli):
    state, _ = claude_cli
    target = ClaudeCodeTarget()
    assert target.is_configured() is False
    state["listed"] = "github: npx server-github\nfigma-console: node /r/dist/local.js\n"
    assert target.is_configured() is True
    assert target.read_entry() is None


LOCAL_DETAILS = """figma-console:
  Scope: User config (available in all your projects)
  Status: ✓ Connected
  Type: stdio
  Command: node
  Args: /r/dist/local.js
  Environment:
    FIGMA_ACCESS_TOKEN=figd_secret
"""


def test_cli_read_entry_parses_launch_command(claude_cli):
    state, _ = claude_cli
    state["details"] = LOCAL_DETAILS

    entry = ClaudeCodeTarget().read_entry()

    assert entry == {"command": "node", "args": ["/r/dist/local.js"]}
    assert infer_install_method(entry) == LocalPath("/r/dist/local.js")


def test_cli_read_entry_on_demand_args(claude_cli):
    state, _ = claude_cli
    state["details"] = "figma-console:\n  Command: npx\n  Args: -y figma-console-mcp@latest\n"
    entry = ClaudeCodeTarget().read_entry()
    assert entry == {"command": "npx", "args": ["-y", "figma-console-mcp@latest"]}


def test_cli_read_entry_without_command_line(claude_cli):
    state, _ = claude_cli
    state["details"] = "figma-console:\n  Type: sse\n  URL: http://localhost:3845/sse\n"
    assert ClaudeCodeTarget().read_entry() is None


def test_cli_update_keeps_local_install(claude_cli):
    state, calls = claude_cli
    state["listed"] = "figma-console: node /r/dist/local.js - ✓ Connected\n"
    state["details"] = LOCAL_DETAILS
    target = ClaudeCodeTarget()

    report = ReconciliationEngine().update([ScanResult(target, True, True)], SAMPLE_TOKEN)

    assert report.all_ok
    assert calls[-1] == add_command(SAMPLE_TOKEN, LocalPath("/r/dist/local.js"))

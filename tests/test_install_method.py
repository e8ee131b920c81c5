"""Tests for install method resolution, inference and the git provisioner."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from figsetup.config import ProvisioningConfig
from figsetup.errors import ErrorCode, ExternalToolError, FigsetupError, ProvisionError
from figsetup.setup import config_store
from figsetup.setup import provisioner as provisioner_mod
from figsetup.setup.install_method import (
    InstallChoice,
    InstallMethodResolver,
    LocalPath,
    OnDemand,
    infer_install_method,
)
from figsetup.setup.process import CommandResult
from figsetup.setup.provisioner import GitRepoProvisioner

from conftest import SAMPLE_TOKEN


# --- infer ---


@pytest.mark.parametrize("method", [OnDemand(), LocalPath("/home/u/figma-console-mcp/dist/local.js")])
def test_infer_round_trips_through_merge(foreign_config, method):
    merged = config_store.merge(foreign_config, SAMPLE_TOKEN, method)
    assert infer_install_method(config_store.get_entry(merged)) == method


@pytest.mark.parametrize(
    "entry",
    [
        None,
        {},
        {"command": "npx", "args": ["-y", "figma-console-mcp@latest"]},
        {"command": "node"},
        {"command": "node", "args": []},
        {"command": "node", "args": [""]},
        {"command": "node", "args": "not-a-list"},
    ],
)
def test_infer_falls_back_to_on_demand(entry):
    assert infer_install_method(entry) == OnDemand()


def test_resolver_infer_delegates():
    resolver = InstallMethodResolver(provisioner=MagicMock())
    assert resolver.infer({"command": "node", "args": ["/x/dist/local.js"]}) == LocalPath("/x/dist/local.js")


# --- resolve ---


def test_resolve_on_demand_never_provisions():
    provisioner = MagicMock()
    resolver = InstallMethodResolver(provisioner=provisioner)

    assert resolver.resolve(InstallChoice.ON_DEMAND) == OnDemand()
    provisioner.provision.assert_not_called()


def test_resolve_local_uses_provisioner_entry_point(tmp_path):
    provisioner = MagicMock()
    provisioner.provision.return_value = tmp_path / "repo" / "dist" / "local.js"
    resolver = InstallMethodResolver(provisioner=provisioner)

    method = resolver.resolve(InstallChoice.LOCAL, tmp_path / "repo")

    provisioner.provision.assert_called_once_with(tmp_path / "repo")
    assert method == LocalPath(str(tmp_path / "repo" / "dist" / "local.js"))


def test_resolve_local_defaults_to_default_dir(tmp_path):
    provisioner = MagicMock()
    provisioner.provision.return_value = tmp_path / "dist" / "local.js"
    resolver = InstallMethodResolver(provisioner=provisioner, default_dir=tmp_path)

    resolver.resolve(InstallChoice.LOCAL)

    provisioner.provision.assert_called_once_with(tmp_path)


def test_resolve_local_rejects_relative_path():
    resolver = InstallMethodResolver(provisioner=MagicMock())
    with pytest.raises(FigsetupError) as exc_info:
        resolver.resolve(InstallChoice.LOCAL, "relative/dir")
    assert exc_info.value.code == ErrorCode.INVALID_INPUT


def test_resolve_local_propagates_provision_error(tmp_path):
    provisioner = MagicMock()
    provisioner.provision.side_effect = ProvisionError("npm install", "ERR! network")
    resolver = InstallMethodResolver(provisioner=provisioner)

    with pytest.raises(ProvisionError) as exc_info:
        resolver.resolve(InstallChoice.LOCAL, tmp_path)
    assert exc_info.value.step == "npm install"
    assert "ERR! network" in exc_info.value.message


# --- GitRepoProvisioner ---


@pytest.fixture
def fake_tools(monkeypatch):
    """Record provisioner commands; individual commands can be made to fail."""
    calls: list[list[str]] = []
    failures: dict[str, str] = {}

    def _run(command, cwd=None, timeout=None, retries=0):
        calls.append(command)
        joined = " ".join(command)
        for needle, stderr in failures.items():
            if needle in joined:
                raise ExternalToolError(command, 1, stderr)
        if command[:2] == ["git", "clone"]:
            target = Path(command[3])
            (target / "dist").mkdir(parents=True)
        if command[:3] == ["npm", "run", "build"]:
            (Path(cwd) / "dist" / "local.js").write_text("// built")
        return CommandResult(0, "", "")

    monkeypatch.setattr(provisioner_mod, "run_command", _run)
    monkeypatch.setattr(provisioner_mod, "command_available", lambda name: True)
    monkeypatch.setattr(provisioner_mod, "try_command", lambda *a, **k: CommandResult(0, "https://github.com/x/figma-console-mcp.git\n", ""))
    return calls, failures


def test_provision_clones_installs_and_builds(tmp_path, fake_tools):
    calls, _ = fake_tools
    target = tmp_path / "repo"

    entry = GitRepoProvisioner(ProvisioningConfig(repo_url="https://example.test/figma-console-mcp.git")).provision(target)

    assert entry == target / "dist" / "local.js"
    assert calls[0] == ["git", "clone", "https://example.test/figma-console-mcp.git", str(target)]
    assert calls[1] == ["npm", "install"]
    assert calls[2] == ["npm", "run", "build"]


def test_provision_pulls_existing_clone(tmp_path, fake_tools):
    calls, failures = fake_tools
    target = tmp_path / "repo"
    (target / ".git").mkdir(parents=True)
    (target / "dist").mkdir()
    failures["pull"] = "no network"  # pull failure is tolerated

    entry = GitRepoProvisioner().provision(target)

    assert entry.exists()
    assert calls[0] == ["git", "-C", str(target), "pull"]
    assert ["npm", "install"] in calls


def test_provision_refuses_foreign_directory(tmp_path, fake_tools):
    target = tmp_path / "something-else"
    target.mkdir()

    with pytest.raises(ProvisionError) as exc_info:
        GitRepoProvisioner().provision(target)
    assert exc_info.value.step == "git clone"
    assert "not the figma-console-mcp repo" in exc_info.value.message


@pytest.mark.parametrize("needle,step", [("clone", "git clone"), ("install", "npm install"), ("build", "npm run build")])
def test_provision_names_failed_step_with_stderr(tmp_path, fake_tools, needle, step):
    _, failures = fake_tools
    failures[needle] = f"{needle} exploded"

    with pytest.raises(ProvisionError) as exc_info:
        GitRepoProvisioner().provision(tmp_path / "repo")

    assert exc_info.value.step == step
    assert exc_info.value.output == f"{needle} exploded"


def test_provision_requires_entry_point(tmp_path, fake_tools, monkeypatch):
    calls, _ = fake_tools

    def _run_without_build_output(command, cwd=None, timeout=None, retries=0):
        calls.append(command)
        if command[:2] == ["git", "clone"]:
            Path(command[3]).mkdir(parents=True)
        return CommandResult(0, "", "")

    monkeypatch.setattr(provisioner_mod, "run_command", _run_without_build_output)

    with pytest.raises(ProvisionError) as exc_info:
        GitRepoProvisioner().provision(tmp_path / "repo")
    assert exc_info.value.step == "verify"


def test_provision_requires_git(tmp_path, monkeypatch):
    monkeypatch.setattr(provisioner_mod, "command_available", lambda name: False)
    with pytest.raises(ProvisionError) as exc_info:
        GitRepoProvisioner().provision(tmp_path / "repo")
    assert exc_info.value.step == "git"

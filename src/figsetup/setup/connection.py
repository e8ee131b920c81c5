"""Preparing Figma for a connection: the Desktop Bridge plugin or debug mode."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from figsetup.errors import ProvisionError
from figsetup.setup.install_method import InstallMethod, LocalPath
from figsetup.setup.process import command_available
from figsetup.setup.provisioner import GitRepoProvisioner
from figsetup.setup.verifier import DEBUG_PORT

logger = logging.getLogger("figsetup.connection")

BRIDGE_MANIFEST = Path("figma-desktop-bridge") / "manifest.json"


class ConnectionChannel(str, Enum):
    BRIDGE = "bridge"
    DEBUG_PORT = "cdp"


def repo_dir_for(method: InstallMethod) -> Path | None:
    """Checkout root of a local install (``<repo>/dist/local.js`` → ``<repo>``)."""
    if isinstance(method, LocalPath):
        return Path(method.path).parent.parent
    return None


def locate_bridge_manifest(
    method: InstallMethod,
    clone_dir: Path,
    provisioner: GitRepoProvisioner | None = None,
) -> Path:
    """Return the bridge plugin manifest, cloning the repo if needed.

    A local install already has the plugin next to the server.  Otherwise the
    repository is cloned (or pulled) into *clone_dir*.  Raises ProvisionError.
    """
    repo = repo_dir_for(method)
    if repo is not None:
        manifest = repo / BRIDGE_MANIFEST
        if not manifest.exists():
            raise ProvisionError("locate manifest", f"Bridge manifest not found at: {manifest}")
        return manifest

    if not command_available("git"):
        raise ProvisionError("git", "git is not installed or not on PATH")

    provisioner = provisioner or GitRepoProvisioner()
    provisioner.clone_or_update(clone_dir)
    manifest = clone_dir / BRIDGE_MANIFEST
    if not manifest.exists():
        raise ProvisionError("git clone", f"Clone succeeded but manifest not found at: {manifest}")
    logger.info("Bridge manifest at %s", manifest)
    return manifest


def bridge_import_steps(manifest: Path | str) -> list[str]:
    return [
        "Open Figma Desktop",
        "Go to Plugins → Development → Import plugin from manifest…",
        f"Select: {manifest}",
        "Run the plugin: Plugins → Development → Figma Console Bridge",
    ]


def manual_bridge_steps(repo_url: str) -> list[str]:
    return [
        f"Clone the repo manually: git clone {repo_url}",
        *bridge_import_steps("<clone-dir>/figma-desktop-bridge/manifest.json"),
    ]


def debug_launch_command(platform: str, port: int = DEBUG_PORT) -> str:
    """Command that relaunches Figma with remote debugging enabled."""
    flag = f"--remote-debugging-port={port}"
    if platform == "macos":
        return f"open -a Figma --args {flag}"
    if platform == "windows":
        return f'"%LOCALAPPDATA%\\Figma\\Figma.exe" {flag}'
    return f"figma {flag}"

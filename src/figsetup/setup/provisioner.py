"""Repository provisioner for the local install method: clone-or-pull, npm install, build."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from figsetup.config import ProvisioningConfig
from figsetup.errors import ExternalToolError, ProvisionError
from figsetup.setup.process import command_available, try_command, run_command

logger = logging.getLogger("figsetup.provisioner")

REPO_NAME = "figma-console-mcp"
ENTRY_POINT = Path("dist") / "local.js"


class RepoProvisioner(Protocol):
    def provision(self, target_dir: Path) -> Path:
        """Make *target_dir* hold a built checkout; return its runnable entry point."""
        ...


def is_existing_clone(directory: Path) -> bool:
    """True if *directory* is a git checkout whose origin is the server repo."""
    if not (directory / ".git").exists():
        return False
    result = try_command(["git", "-C", str(directory), "remote", "get-url", "origin"])
    if result is None or not result.ok:
        return False
    return REPO_NAME in result.stdout.strip()


class GitRepoProvisioner:
    """Provision the server from its git repository with npm."""

    def __init__(self, config: ProvisioningConfig | None = None) -> None:
        self.config = config or ProvisioningConfig()

    def provision(self, target_dir: Path) -> Path:
        if not command_available("git"):
            raise ProvisionError("git", "git is not installed or not on PATH")

        self.clone_or_update(target_dir)
        self._step("npm install", ["npm", "install"], target_dir, self.config.install_timeout)
        self._step("npm run build", ["npm", "run", "build"], target_dir, self.config.build_timeout)

        entry_point = target_dir / ENTRY_POINT
        if not entry_point.exists():
            raise ProvisionError("verify", f"Build succeeded but {ENTRY_POINT} not found at: {entry_point}")
        return entry_point

    def clone_or_update(self, target_dir: Path) -> None:
        """Clone into *target_dir*, or pull if it already holds the repo."""
        if is_existing_clone(target_dir):
            logger.info("Existing clone at %s, pulling latest", target_dir)
            try:
                run_command(["git", "-C", str(target_dir), "pull"], timeout=self.config.pull_timeout)
            except ExternalToolError as exc:
                # an out-of-date clone still builds
                logger.warning("git pull failed in %s: %s", target_dir, exc.message)
            return

        if target_dir.exists():
            raise ProvisionError(
                "git clone",
                f"Directory already exists but is not the {REPO_NAME} repo: {target_dir}",
            )

        logger.info("Cloning %s into %s", self.config.repo_url, target_dir)
        self._step(
            "git clone",
            ["git", "clone", self.config.repo_url, str(target_dir)],
            None,
            self.config.clone_timeout,
        )

    def _step(self, step: str, command: list[str], cwd: Path | None, timeout: int) -> None:
        try:
            run_command(command, cwd=cwd, timeout=timeout)
        except ExternalToolError as exc:
            raise ProvisionError(step, exc.stderr or exc.message) from exc

"""Install methods: how a client launches the MCP server.

Two methods exist.  ``OnDemand`` runs the published package through npx on
every launch; ``LocalPath`` runs a pre-built checkout with node.  The method is
written into a client's config as ``command``/``args`` and must be recoverable
from them, so that re-writing an entry (e.g. a token update) keeps the user's
original choice without asking again.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Union

from figsetup.errors import ErrorCode, FigsetupError

if TYPE_CHECKING:
    from figsetup.setup.provisioner import RepoProvisioner

logger = logging.getLogger("figsetup.install_method")

NPX_PACKAGE = "figma-console-mcp@latest"
LOCAL_COMMAND = "node"


@dataclass(frozen=True)
class OnDemand:
    """Fetch-and-run the published package on every launch."""

    def launch(self) -> tuple[str, list[str]]:
        return "npx", ["-y", NPX_PACKAGE]


@dataclass(frozen=True)
class LocalPath:
    """Run a locally built entry point (``dist/local.js`` of a clone)."""

    path: str

    def launch(self) -> tuple[str, list[str]]:
        return LOCAL_COMMAND, [self.path]


InstallMethod = Union[OnDemand, LocalPath]


class InstallChoice(str, Enum):
    ON_DEMAND = "npx"
    LOCAL = "local"


def infer_install_method(entry: Mapping | None) -> InstallMethod:
    """Reconstruct the install method from a persisted server entry.

    ``command == "node"`` with a first argument means a local install; anything
    else, including a missing or malformed entry, is treated as on-demand.
    """
    if isinstance(entry, Mapping) and entry.get("command") == LOCAL_COMMAND:
        args = entry.get("args")
        if isinstance(args, list) and args and isinstance(args[0], str) and args[0]:
            return LocalPath(args[0])
    return OnDemand()


class InstallMethodResolver:
    """Turns the user's install choice into a ready-to-run InstallMethod."""

    def __init__(
        self,
        provisioner: RepoProvisioner | None = None,
        default_dir: Path | str = "~/figma-console-mcp",
    ) -> None:
        self._provisioner = provisioner
        self.default_dir = Path(default_dir).expanduser()

    def resolve(self, choice: InstallChoice, target_dir: Path | str | None = None) -> InstallMethod:
        """Return the launch method for *choice*.

        For a local install this clones (or pulls), installs and builds the
        server, which may raise ProvisionError naming the failed step.
        """
        if choice == InstallChoice.ON_DEMAND:
            return OnDemand()

        directory = Path(target_dir).expanduser() if target_dir else self.default_dir
        if not directory.is_absolute():
            raise FigsetupError(
                ErrorCode.INVALID_INPUT,
                f"Install directory must be an absolute path: {directory}",
            )
        if self._provisioner is None:
            from figsetup.setup.provisioner import GitRepoProvisioner
            self._provisioner = GitRepoProvisioner()

        entry_point = self._provisioner.provision(directory)
        logger.info("Local install ready at %s", entry_point)
        return LocalPath(str(entry_point))

    def infer(self, entry: Mapping | None) -> InstallMethod:
        return infer_install_method(entry)

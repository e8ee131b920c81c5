"""Capability interface shared by every install target."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from figsetup.setup.install_method import InstallMethod


@runtime_checkable
class IntegrationTarget(Protocol):
    """A client the MCP server can be registered with.

    Implementations declare:
        id          machine name, e.g. "claude-code"
        name        human label, e.g. "Claude Code"
        cli_managed True when state lives in an external tool, not a file

    ``detect`` and ``is_configured`` never raise; ``add``, ``update`` and
    ``remove`` raise FigsetupError (or OSError) on failure.
    """

    id: str
    name: str
    cli_managed: bool

    def detect(self) -> bool:
        """Return True if the client application is present."""
        ...

    def is_configured(self) -> bool:
        """Return True if the figma-console entry is already registered."""
        ...

    def read_entry(self) -> dict | None:
        """Return the persisted server entry, or None if it cannot be read."""
        ...

    def add(self, token: str, method: InstallMethod) -> None: ...

    def update(self, token: str, method: InstallMethod) -> None: ...

    def remove(self) -> None: ...

"""CLI-managed target: Claude Code keeps MCP servers in its own store, edited via `claude mcp`."""

from __future__ import annotations

import logging

from figsetup.errors import TargetBusyError
from figsetup.setup import config_store
from figsetup.setup.install_method import InstallMethod, OnDemand
from figsetup.setup.platform import get_platform
from figsetup.setup.process import command_available, try_command, run_command

logger = logging.getLogger("figsetup.targets")

_BINARY = "claude"
_SCOPE = ["-s", "user"]
_LIST_TIMEOUT = 15
_MUTATE_TIMEOUT = 30


def add_command(token: str, method: InstallMethod) -> list[str]:
    """Build the `claude mcp add` invocation registering the server."""
    command, args = method.launch()
    env_flags: list[str] = ["-e", f"{config_store.TOKEN_ENV}={token}"]
    for key, value in config_store.FEATURE_FLAGS.items():
        env_flags += ["-e", f"{key}={value}"]
    return [_BINARY, "mcp", "add", config_store.SERVER_KEY, *_SCOPE, *env_flags, "--", command, *args]


def manual_command(method: InstallMethod | None = None) -> str:
    """Copy-pasteable add command with a token placeholder."""
    return " ".join(add_command("<token>", method or OnDemand()))


class ClaudeCodeTarget:
    """Claude Code. No file is touched; every operation shells out to the `claude` CLI."""

    id = "claude-code"
    name = "Claude Code"
    cli_managed = True

    def __repr__(self) -> str:
        return "ClaudeCodeTarget()"

    def detect(self) -> bool:
        return command_available(_BINARY)

    def is_configured(self) -> bool:
        result = try_command([_BINARY, "mcp", "list"], timeout=_LIST_TIMEOUT)
        if result is None or not result.ok:
            return False
        return config_store.SERVER_KEY in result.stdout

    def read_entry(self) -> dict | None:
        """Launch command of the registered server, parsed from `claude mcp get`.

        Only ``command`` and ``args`` are returned; the env (and with it the
        token) stays inside Claude Code.  None when the server is not
        registered or the output has no ``Command:`` line.
        """
        result = try_command([_BINARY, "mcp", "get", config_store.SERVER_KEY], timeout=_LIST_TIMEOUT)
        if result is None or not result.ok:
            return None
        fields: dict[str, str] = {}
        for line in result.stdout.splitlines():
            label, sep, value = line.strip().partition(":")
            if sep and label in ("Command", "Args"):
                fields[label] = value.strip()
        if not fields.get("Command"):
            return None
        return {"command": fields["Command"], "args": fields.get("Args", "").split()}

    def is_running(self) -> bool:
        """True if a Claude Code process is alive (it locks its store against `mcp add`)."""
        if get_platform() == "windows":
            result = try_command(["tasklist", "/FI", "IMAGENAME eq claude.exe", "/NH"])
            return result is not None and "claude.exe" in result.stdout
        result = try_command(["pgrep", "-x", _BINARY])
        # pgrep exits 0 only when a process matched
        return result is not None and result.ok

    def add(self, token: str, method: InstallMethod) -> None:
        if self.is_running():
            raise TargetBusyError(self.name, "it holds a lock that prevents `claude mcp add`")
        if self.is_configured():
            self._remove()
        run_command(add_command(token, method), timeout=_MUTATE_TIMEOUT)
        logger.info("Registered %s with Claude Code", config_store.SERVER_KEY)

    def update(self, token: str, method: InstallMethod) -> None:
        self.add(token, method)

    def remove(self) -> None:
        self._remove()
        logger.info("Removed %s from Claude Code", config_store.SERVER_KEY)

    def _remove(self) -> None:
        run_command([_BINARY, "mcp", "remove", config_store.SERVER_KEY, *_SCOPE], timeout=_MUTATE_TIMEOUT)

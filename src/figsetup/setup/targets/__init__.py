"""Install target registry.

The set of clients is fixed.  Order here is the order of every scan and of
every batch, so keep Claude Code first as the most common client.
"""

from __future__ import annotations

from figsetup.setup import platform
from figsetup.setup.targets.base import IntegrationTarget
from figsetup.setup.targets.claude_code import ClaudeCodeTarget
from figsetup.setup.targets.json_file import JsonFileTarget


def get_all_targets() -> list[IntegrationTarget]:
    """Instantiate every known target, in registration order."""
    return [
        ClaudeCodeTarget(),
        JsonFileTarget("claude-desktop", "Claude Desktop", platform.claude_desktop_config_path()),
        JsonFileTarget("cursor", "Cursor", platform.cursor_config_path()),
        JsonFileTarget("windsurf", "Windsurf", platform.windsurf_config_path()),
    ]


__all__ = [
    "ClaudeCodeTarget",
    "IntegrationTarget",
    "JsonFileTarget",
    "get_all_targets",
]

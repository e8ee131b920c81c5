"""Pre-flight checks: Node.js runtime and Figma Desktop."""

from __future__ import annotations

import re
from dataclasses import dataclass

from figsetup.setup.platform import figma_desktop_path
from figsetup.setup.process import try_command

MIN_NODE_MAJOR = 18

_NODE_VERSION = re.compile(r"v?(\d+)\.(\d+)")


@dataclass
class CheckResult:
    name: str
    ok: bool
    message: str
    fatal: bool = False  # a failed fatal check stops the wizard


def check_node(min_major: int = MIN_NODE_MAJOR) -> CheckResult:
    result = try_command(["node", "--version"])
    if result is None or not result.ok:
        return CheckResult("node", False, f"Node.js not found, version {min_major}+ required", fatal=True)

    version = result.stdout.strip()
    match = _NODE_VERSION.match(version)
    if match is None:
        return CheckResult("node", False, f"Unrecognised Node.js version {version!r}", fatal=True)
    if int(match.group(1)) < min_major:
        return CheckResult("node", False, f"Node.js {version} found, version {min_major}+ required", fatal=True)
    return CheckResult("node", True, f"Node.js {version}")


def check_figma_desktop() -> CheckResult:
    path = figma_desktop_path()
    if path is not None and path.exists():
        return CheckResult("figma", True, "Figma Desktop detected")
    return CheckResult(
        "figma",
        False,
        "Figma Desktop not found, install from https://figma.com/downloads",
    )


def run_system_check() -> list[CheckResult]:
    return [check_node(), check_figma_desktop()]

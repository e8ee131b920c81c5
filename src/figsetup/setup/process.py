"""Thin wrapper around subprocess for the external tools the setup flow drives (git, npm, claude)."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from figsetup.errors import ExternalToolError

logger = logging.getLogger("figsetup.process")


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def command_available(name: str) -> bool:
    """Return True if *name* resolves to an executable on PATH."""
    return shutil.which(name) is not None


def run_command(
    command: list[str],
    *,
    cwd: Path | str | None = None,
    timeout: float | None = None,
    retries: int = 0,
) -> CommandResult:
    """Run *command* and return its captured output.

    Raises ExternalToolError on a non-zero exit, a timeout, or a missing
    executable, after ``retries`` additional attempts.  stderr is kept verbatim.
    """
    attempt = 0
    while True:
        try:
            return _run_once(command, cwd=cwd, timeout=timeout)
        except ExternalToolError:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("Retry %d/%d: %s", attempt, retries, " ".join(command))


def _run_once(command: list[str], *, cwd, timeout) -> CommandResult:
    logger.debug("Running %s (cwd=%s)", " ".join(command), cwd)
    try:
        proc = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as exc:
        raise ExternalToolError(
            command,
            None,
            _as_text(exc.stderr),
            message=f"{command[0]} timed out after {timeout}s",
        ) from exc
    except OSError as exc:
        raise ExternalToolError(command, None, str(exc), message=f"{command[0]}: {exc}") from exc

    result = CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")
    if not result.ok:
        raise ExternalToolError(command, result.returncode, result.stderr)
    return result


def try_command(command: list[str], timeout: float = 5) -> CommandResult | None:
    """Run a detection command; never raises.

    Returns the result (whatever its exit code), or None when the command could
    not be started or timed out.  Undecodable output bytes are replaced.
    """
    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Probe %s failed: %s", " ".join(command), exc)
        return None
    return CommandResult(proc.returncode, proc.stdout or "", proc.stderr or "")


def _as_text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data

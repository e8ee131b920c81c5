"""Structured error codes and exception classes for figsetup."""

from __future__ import annotations

__all__ = [
    "ErrorCode",
    "FigsetupError",
    "ConfigWriteError",
    "ExternalToolError",
    "ProvisionError",
    "TargetBusyError",
]

from enum import Enum


class ErrorCode(str, Enum):
    CONFIG_WRITE_FAILED = "CONFIG_WRITE_FAILED"
    EXTERNAL_TOOL_FAILED = "EXTERNAL_TOOL_FAILED"
    PROVISION_FAILED = "PROVISION_FAILED"
    TARGET_BUSY = "TARGET_BUSY"
    INVALID_INPUT = "INVALID_INPUT"
    PREREQUISITE_MISSING = "PREREQUISITE_MISSING"


class FigsetupError(Exception):
    """Structured application error rendered as a one-line status by the CLI."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict = details or {}


class ConfigWriteError(FigsetupError):
    """A target's config file could not be written."""

    def __init__(self, path, reason: str) -> None:
        super().__init__(
            ErrorCode.CONFIG_WRITE_FAILED,
            f"Could not write {path}: {reason}",
            {"path": str(path)},
        )
        self.path = path


class ExternalToolError(FigsetupError):
    """An external command exited non-zero or timed out.

    ``stderr`` is kept verbatim so callers can surface it as-is.
    """

    def __init__(
        self,
        command: list[str],
        returncode: int | None,
        stderr: str,
        message: str | None = None,
    ) -> None:
        if message is None:
            message = f"Command failed with code {returncode}: {stderr.strip() or 'unknown error'}"
        super().__init__(
            ErrorCode.EXTERNAL_TOOL_FAILED,
            message,
            {"command": command, "returncode": returncode},
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


class ProvisionError(FigsetupError):
    """A step of the local-install pipeline failed (clone, install, build, verify)."""

    def __init__(self, step: str, output: str) -> None:
        super().__init__(
            ErrorCode.PROVISION_FAILED,
            f"{step} failed: {output.strip() or 'unknown error'}",
            {"step": step},
        )
        self.step = step
        self.output = output


class TargetBusyError(FigsetupError):
    """The target application is running and holds a lock on its own store."""

    def __init__(self, name: str, hint: str = "") -> None:
        message = f"{name} appears to be running; quit it and retry"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(ErrorCode.TARGET_BUSY, message, {"target": name})

"""OS-specific locations of client config files and the Figma desktop app."""

from __future__ import annotations

import os
import sys
from pathlib import Path


def get_platform() -> str:
    """Return "macos", "windows" or "linux"."""
    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("win"):
        return "windows"
    return "linux"


def app_data_path() -> Path:
    platform = get_platform()
    if platform == "windows":
        appdata = os.environ.get("APPDATA")
        return Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    if platform == "macos":
        return Path.home() / "Library" / "Application Support"
    return Path.home() / ".config"


def local_app_data_path() -> Path:
    local = os.environ.get("LOCALAPPDATA")
    return Path(local) if local else Path.home() / "AppData" / "Local"


def claude_desktop_config_path() -> Path:
    return app_data_path() / "Claude" / "claude_desktop_config.json"


def cursor_config_path() -> Path:
    return Path.home() / ".cursor" / "mcp.json"


def windsurf_config_path() -> Path:
    return Path.home() / ".codeium" / "windsurf" / "mcp_config.json"


def figma_desktop_path() -> Path | None:
    """Where Figma Desktop is installed on this platform, or None if unknown (Linux)."""
    platform = get_platform()
    if platform == "macos":
        return Path("/Applications/Figma.app")
    if platform == "windows":
        return local_app_data_path() / "Figma" / "Figma.exe"
    return None

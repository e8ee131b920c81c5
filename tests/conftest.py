"""Shared pytest fixtures for figsetup test suite."""

from __future__ import annotations

import json
import socket

import pytest

from figsetup.setup.targets import JsonFileTarget

SAMPLE_TOKEN = "figd_abcdefghijklmnop1234"


def free_port() -> int:
    """Return a localhost port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def write_json(path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


@pytest.fixture
def foreign_config() -> dict:
    """Client config with unrelated keys and a sibling MCP server."""
    return {
        "theme": "dark",
        "globalShortcut": "Ctrl+Space",
        "mcpServers": {
            "github": {
                "command": "npx",
                "args": ["-y", "@modelcontextprotocol/server-github"],
                "env": {"GITHUB_TOKEN": "ghp_x"},
            },
        },
        "nested": {"a": [1, 2, {"b": None}]},
    }


@pytest.fixture
def make_json_target(tmp_path):
    """Factory for file-backed targets living under tmp_path."""

    def _make(id: str = "cursor", name: str = "Cursor", config: dict | None = None) -> JsonFileTarget:
        path = tmp_path / id / "mcp.json"
        if config is not None:
            write_json(path, config)
        return JsonFileTarget(id, name, path)

    return _make


@pytest.fixture
def isolated_home(tmp_path, monkeypatch):
    """Point Path.home() at a temp dir so nothing touches the real home."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home

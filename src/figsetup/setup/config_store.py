"""Read/merge/write of MCP JSON configs that use the mcpServers layout.

Shared by every file-backed client (Claude Desktop, Cursor, Windsurf).  Only
the ``figma-console`` entry under ``mcpServers`` is ever touched; every other
key in the file is foreign and round-trips unchanged.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path

from figsetup.errors import ConfigWriteError
from figsetup.setup.install_method import InstallMethod, OnDemand

logger = logging.getLogger("figsetup.config_store")

COLLECTION_KEY = "mcpServers"
SERVER_KEY = "figma-console"
TOKEN_ENV = "FIGMA_ACCESS_TOKEN"
FEATURE_FLAGS: dict[str, str] = {"ENABLE_MCP_APPS": "true"}


def read(path: Path) -> dict:
    """Read an MCP JSON config, or return {} if it is missing or unreadable."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        logger.debug("Treating unreadable config %s as empty: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.debug("Treating non-object config %s as empty", path)
        return {}
    return data


def write(path: Path, config: dict) -> None:
    """Write *config* to *path*, creating parent dirs. Raises ConfigWriteError."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigWriteError(path, exc.strerror or str(exc)) from exc


def build_entry(token: str, method: InstallMethod) -> dict:
    """Build the server entry for *token* launched via *method*."""
    command, args = method.launch()
    return {
        "command": command,
        "args": list(args),
        "env": {TOKEN_ENV: token, **FEATURE_FLAGS},
    }


def get_entry(config: dict) -> dict | None:
    servers = config.get(COLLECTION_KEY)
    if not isinstance(servers, dict):
        return None
    entry = servers.get(SERVER_KEY)
    return entry if isinstance(entry, dict) else None


def has_entry(config: dict) -> bool:
    servers = config.get(COLLECTION_KEY)
    return isinstance(servers, dict) and SERVER_KEY in servers


def extract_token(entry: dict | None) -> str | None:
    """Return the access token stored in *entry*'s env map, if any."""
    if not entry:
        return None
    env = entry.get("env")
    if not isinstance(env, dict):
        return None
    token = env.get(TOKEN_ENV)
    return token if isinstance(token, str) and token else None


def merge(existing: dict, token: str, method: InstallMethod | None = None) -> dict:
    """Return a copy of *existing* with the server entry replaced wholesale.

    Pure and idempotent; *existing* is not modified.
    """
    merged = copy.deepcopy(existing)
    servers = merged.get(COLLECTION_KEY)
    if not isinstance(servers, dict):
        servers = {}
    servers[SERVER_KEY] = build_entry(token, method or OnDemand())
    merged[COLLECTION_KEY] = servers
    return merged


def remove_entry(existing: dict) -> dict:
    """Return a copy of *existing* without the server entry. Absent entry is a no-op."""
    result = copy.deepcopy(existing)
    servers = result.get(COLLECTION_KEY)
    if isinstance(servers, dict):
        servers.pop(SERVER_KEY, None)
    return result

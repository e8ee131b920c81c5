"""File-backed target: a client whose MCP servers live in a JSON config file."""

from __future__ import annotations

import logging
from pathlib import Path

from figsetup.setup import config_store
from figsetup.setup.install_method import InstallMethod

logger = logging.getLogger("figsetup.targets")


class JsonFileTarget:
    """Client configured through an ``mcpServers`` JSON file (Claude Desktop, Cursor, Windsurf)."""

    cli_managed = False

    def __init__(self, id: str, name: str, config_path: Path) -> None:
        self.id = id
        self.name = name
        self.config_path = Path(config_path)

    def __repr__(self) -> str:
        return f"JsonFileTarget({self.id!r}, {str(self.config_path)!r})"

    def detect(self) -> bool:
        # The client creates its config file on first launch
        try:
            return self.config_path.is_file()
        except OSError:
            return False

    def is_configured(self) -> bool:
        return config_store.has_entry(config_store.read(self.config_path))

    def read_entry(self) -> dict | None:
        return config_store.get_entry(config_store.read(self.config_path))

    def add(self, token: str, method: InstallMethod) -> None:
        existing = config_store.read(self.config_path)
        config_store.write(self.config_path, config_store.merge(existing, token, method))
        logger.info("Wrote %s entry to %s", config_store.SERVER_KEY, self.config_path)

    def update(self, token: str, method: InstallMethod) -> None:
        self.add(token, method)

    def remove(self) -> None:
        existing = config_store.read(self.config_path)
        if not config_store.has_entry(existing):
            logger.info("No %s entry in %s, nothing to remove", config_store.SERVER_KEY, self.config_path)
            return
        config_store.write(self.config_path, config_store.remove_entry(existing))
        logger.info("Removed %s entry from %s", config_store.SERVER_KEY, self.config_path)

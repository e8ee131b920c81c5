"""Configuration system for figsetup. YAML-based with env var expansion and env var overlay."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from figsetup.errors import ErrorCode, FigsetupError


# --- Config Models ---


class LoggingConfig(BaseModel):
    """Logging configuration."""
    format: str = "text"   # "text" or "json"
    level: str = "WARNING"


class BridgeConfig(BaseModel):
    host: str = "127.0.0.1"
    first_port: int = 9223
    port_count: int = 10
    timeout: float = 60.0  # seconds to wait for the plugin handshake

    @property
    def ports(self) -> list[int]:
        return list(range(self.first_port, self.first_port + self.port_count))


class DebugPortConfig(BaseModel):
    host: str = "localhost"
    port: int = 9222
    attempt_timeout: float = 3.0

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class ProvisioningConfig(BaseModel):
    """Local git-clone install: source location and step timeouts (seconds)."""
    repo_url: str = "https://github.com/southleft/figma-console-mcp.git"
    clone_dir: str = "~/figma-console-mcp"
    clone_timeout: int = 60
    pull_timeout: int = 30
    install_timeout: int = 120
    build_timeout: int = 60


class Config(BaseModel):
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    bridge: BridgeConfig = Field(default_factory=BridgeConfig)
    debug_port: DebugPortConfig = Field(default_factory=DebugPortConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)


# --- Loading and saving ---

_ENV_REF = re.compile(r"\$\{(\w+)\}")

# FIGSETUP_<suffix> -> (section, field). Only fields listed here can be set from the environment.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "LOG_FORMAT": ("logging", "format"),
    "LOG_LEVEL": ("logging", "level"),
    "BRIDGE_HOST": ("bridge", "host"),
    "BRIDGE_FIRST_PORT": ("bridge", "first_port"),
    "BRIDGE_TIMEOUT": ("bridge", "timeout"),
    "DEBUG_HOST": ("debug_port", "host"),
    "DEBUG_PORT": ("debug_port", "port"),
    "REPO_URL": ("provisioning", "repo_url"),
    "CLONE_DIR": ("provisioning", "clone_dir"),
}


def get_config_dir() -> Path:
    """~/.figsetup, created on first use."""
    path = Path.home() / ".figsetup"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    return get_config_dir() / "config.yaml"


def expand_path(path: str) -> Path:
    """Expand ~ and env vars in path string."""
    return Path(os.path.expanduser(os.path.expandvars(path)))


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} references in every string of a parsed YAML tree.

    Unset variables are left as written.
    """
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    if isinstance(value, list):
        return [_substitute_env(item) for item in value]
    if isinstance(value, dict):
        return {key: _substitute_env(item) for key, item in value.items()}
    return value


def _coerce(section: str, field: str, raw: str) -> Any:
    """Convert an env var string to the annotated type of ``Config.<section>.<field>``."""
    section_field = Config.model_fields.get(section)
    model = section_field.annotation if section_field else None
    info = model.model_fields.get(field) if model else None
    target = info.annotation if info else str
    try:
        if target is bool:
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if target in (int, float):
            return target(raw)
    except ValueError:
        pass  # left as a string so pydantic reports the field
    return raw


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    for suffix, (section, field) in _ENV_OVERRIDES.items():
        raw = os.environ.get(f"FIGSETUP_{suffix}")
        if raw is None:
            continue
        if not isinstance(data.get(section), dict):
            data[section] = {}
        data[section][field] = _coerce(section, field, raw)
    return data


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise FigsetupError(ErrorCode.INVALID_INPUT, f"Could not parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise FigsetupError(ErrorCode.INVALID_INPUT, f"{path} must hold a mapping of settings")
    return data


def _build_config(raw: dict[str, Any]) -> Config:
    """Validate file data plus FIGSETUP_* overrides. Raises FigsetupError(INVALID_INPUT)."""
    try:
        return Config(**_apply_env_overrides(_substitute_env(raw)))
    except ValidationError as exc:
        first = exc.errors()[0]
        key = ".".join(str(part) for part in first["loc"])
        more = f" (+{exc.error_count() - 1} more)" if exc.error_count() > 1 else ""
        raise FigsetupError(
            ErrorCode.INVALID_INPUT,
            f"Invalid setting {key}: {first['msg']}{more}",
            {"key": key},
        ) from exc


def _write_yaml(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_config(path: Path | None = None) -> Config:
    """Settings file (with ${VAR} expansion), then FIGSETUP_* overrides, then defaults."""
    return _build_config(_read_yaml(path or get_config_path()))


def save_config(config: Config, path: Path | None = None) -> None:
    _write_yaml(path or get_config_path(), config.model_dump())


def get_config_value(config: Config, key_path: str) -> Any:
    """Look up a dotted key such as ``bridge.timeout``; None if any part is missing."""
    node: Any = config
    for part in key_path.split("."):
        if isinstance(node, BaseModel):
            node = getattr(node, part, None)
        elif isinstance(node, dict):
            node = node.get(part)
        else:
            return None
    return node


def set_config_value(key_path: str, value: str) -> Config:
    """Write one dotted key to the settings file and return the resulting config.

    Only the raw file is edited, so keys the user never set stay unset and
    keep following the defaults.  The edited settings are validated first; an
    invalid value raises FigsetupError and the file is left as it was.
    """
    config_path = get_config_path()
    raw = _read_yaml(config_path)

    *parents, leaf = key_path.split(".")
    node = raw
    for part in parents:
        if not isinstance(node.get(part), dict):
            node[part] = {}
        node = node[part]
    node[leaf] = value

    config = _build_config(raw)
    _write_yaml(config_path, raw)
    return config

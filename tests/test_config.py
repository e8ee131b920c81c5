"""Tests for figsetup config loading, saving, and dot-notation access."""

from __future__ import annotations

import json
import logging

import pytest

from figsetup.config import (
    Config,
    expand_path,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)
from figsetup.errors import ErrorCode, FigsetupError
from figsetup.logging_setup import StructuredFormatter, correlation_id, new_correlation_id, setup_logging


def test_load_default_config(tmp_path):
    """Non-existent config path returns Config() defaults."""
    config = load_config(tmp_path / "nonexistent.yaml")
    assert config == Config()
    assert config.bridge.ports == list(range(9223, 9233))
    assert config.debug_port.url == "http://localhost:9222"


def test_expand_env_vars(tmp_path, monkeypatch):
    """${VAR} in config values is expanded from environment."""
    monkeypatch.setenv("TEST_MIRROR", "https://git.example.test/figma-console-mcp.git")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("provisioning:\n  repo_url: ${TEST_MIRROR}\n")
    config = load_config(config_file)
    assert config.provisioning.repo_url == "https://git.example.test/figma-console-mcp.git"


def test_unknown_env_var_left_verbatim(tmp_path, monkeypatch):
    monkeypatch.delenv("FIGSETUP_SURELY_UNSET", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("provisioning:\n  clone_dir: ${FIGSETUP_SURELY_UNSET}/x\n")
    assert load_config(config_file).provisioning.clone_dir == "${FIGSETUP_SURELY_UNSET}/x"


def test_env_overlay_coerces_types(tmp_path, monkeypatch):
    """FIGSETUP_* env vars override YAML with the field's type."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("bridge:\n  timeout: 10\n")
    monkeypatch.setenv("FIGSETUP_BRIDGE_TIMEOUT", "2.5")
    monkeypatch.setenv("FIGSETUP_BRIDGE_FIRST_PORT", "9300")
    monkeypatch.setenv("FIGSETUP_LOG_LEVEL", "DEBUG")

    config = load_config(config_file)

    assert config.bridge.timeout == 2.5
    assert config.bridge.ports[0] == 9300
    assert config.logging.level == "DEBUG"


def test_save_and_load_config(tmp_path):
    """Round-trip: save then load returns identical config."""
    config = Config()
    config.bridge.timeout = 15.0
    config.debug_port.port = 9333

    config_file = tmp_path / "config.yaml"
    save_config(config, config_file)
    loaded = load_config(config_file)

    assert loaded.bridge.timeout == 15.0
    assert loaded.debug_port.port == 9333


def test_get_set_config_value(tmp_path, monkeypatch):
    """Dot-notation get/set reads and writes nested config values."""
    config_file = tmp_path / "config.yaml"
    monkeypatch.setattr("figsetup.config.get_config_path", lambda: config_file)

    updated = set_config_value("bridge.timeout", "30")
    assert get_config_value(updated, "bridge.timeout") == 30.0
    assert get_config_value(updated, "debug_port.port") == 9222  # default unchanged
    assert get_config_value(updated, "bridge.nope") is None


def test_expand_path(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("FIGSETUP_TEST_SUB", "clones")
    assert expand_path("~/$FIGSETUP_TEST_SUB/repo") == tmp_path / "clones" / "repo"


# --- logging ---


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_json(restore_root_logger):
    config = Config()
    config.logging.format = "json"
    config.logging.level = "info"

    setup_logging(config)

    [handler] = restore_root_logger.handlers
    assert isinstance(handler.formatter, StructuredFormatter)
    assert restore_root_logger.level == logging.INFO
    assert logging.getLogger("httpx").level == logging.ERROR


def test_structured_formatter_carries_correlation_id():
    cid = new_correlation_id()
    record = logging.LogRecord("figsetup.reconcile", logging.INFO, __file__, 1, "Cursor %s", ("configured",), None)
    record.correlation_id = correlation_id.get()

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["message"] == "Cursor configured"
    assert payload["module"] == "figsetup.reconcile"
    assert payload["correlation_id"] == cid


# --- invalid settings ---


def test_set_config_value_rejects_invalid_value_without_writing(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("debug_port:\n  port: 9333\n")
    before = config_file.read_text()
    monkeypatch.setattr("figsetup.config.get_config_path", lambda: config_file)

    with pytest.raises(FigsetupError) as exc_info:
        set_config_value("bridge.timeout", "soon")

    assert exc_info.value.code == ErrorCode.INVALID_INPUT
    assert "bridge.timeout" in exc_info.value.message
    assert config_file.read_text() == before


def test_invalid_file_value_raises_structured_error(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("bridge:\n  timeout: soon\n")
    with pytest.raises(FigsetupError) as exc_info:
        load_config(config_file)
    assert exc_info.value.details == {"key": "bridge.timeout"}


def test_invalid_env_override_raises_structured_error(tmp_path, monkeypatch):
    monkeypatch.setenv("FIGSETUP_DEBUG_PORT", "ninety")
    with pytest.raises(FigsetupError) as exc_info:
        load_config(tmp_path / "missing.yaml")
    assert "debug_port.port" in exc_info.value.message


@pytest.mark.parametrize("content", ["bridge: [unclosed\n", "- just\n- a list\n"])
def test_unparseable_file_raises_structured_error(tmp_path, content):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content)
    with pytest.raises(FigsetupError) as exc_info:
        load_config(config_file)
    assert exc_info.value.code == ErrorCode.INVALID_INPUT

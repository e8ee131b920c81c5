"""Logging for figsetup.

Log records go to stderr so the rich UI on stdout stays clean.  Each CLI
invocation gets a short run id that is attached to every record, which lets
one wizard run be picked out of JSON logs.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from figsetup.config import Config

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

TEXT_FORMAT = "%(levelname)s %(name)s: %(message)s"

# Libraries whose INFO/DEBUG chatter would drown out ours
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio")


class _RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id.get()  # type: ignore[attr-defined]
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="seconds"),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
        }
        run_id = getattr(record, "correlation_id", "")
        if run_id:
            entry["correlation_id"] = run_id
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _build_handler(fmt: str, level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.addFilter(_RunIdFilter())
    if fmt == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    return handler


def setup_logging(config: "Config") -> None:
    """Install a single stderr handler on the root logger per ``config.logging``.

    Unknown level names fall back to WARNING.  Calling this again replaces the
    previous handler instead of stacking a second one.
    """
    level = getattr(logging, config.logging.level.upper(), logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_build_handler(config.logging.format.lower(), level))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def new_correlation_id() -> str:
    """Start a new run id for the current context and return it."""
    run_id = uuid.uuid4().hex[:12]
    correlation_id.set(run_id)
    return run_id

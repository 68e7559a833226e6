"""
Structured Logger
=================

Structured logging with automatic coordination-context injection.

Design:
  - One event name per log call, details as keyword fields
  - JSON lines outside development, a single readable line in development
  - ``log_context`` binds collaboration / agent / action ids for a block so
    every record emitted inside it carries them (async-safe via contextvars)

Every module in the package logs through ``get_logger(__name__)``:

    log = get_logger(__name__)
    log.info("agent_registered", agent_id="glm-45-primary", agent_type="primary")

Field names must not collide with ``logging.LogRecord`` attributes
(``name``, ``message``, ``module``, ...); the stdlib rejects them.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# ── Coordination context ───────────────────────────────────────────

_CONTEXT: dict[str, ContextVar[str | None]] = {
    key: ContextVar(key, default=None)
    for key in ("collaboration_id", "agent_id", "action_id")
}

@contextmanager
def log_context(**fields: str | None) -> Iterator[None]:
    """Bind context fields for the duration of a block, then restore them."""
    tokens = [
        (_CONTEXT[key], _CONTEXT[key].set(value))
        for key, value in fields.items()
        if key in _CONTEXT and value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)

def current_context() -> dict[str, str]:
    """The coordination ids bound in the current task, omitting unset ones."""
    return {key: var.get() for key, var in _CONTEXT.items() if var.get() is not None}

# ── Formatter ──────────────────────────────────────────────────────

_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime",
}
_JSON_SAFE = (str, int, float, bool, type(None))

class StructuredFormatter(logging.Formatter):
    """Renders a record as a JSON line or as ``time | level | ids | event | fields``."""

    def __init__(self, *, json_output: bool = True, include_traceback: bool = True):
        super().__init__()
        self._json = json_output
        self._include_tb = include_traceback
        self._pid = os.getpid()

    @staticmethod
    def _fields(record: logging.LogRecord) -> dict[str, Any]:
        return {
            key: val if isinstance(val, _JSON_SAFE) else str(val)
            for key, val in record.__dict__.items()
            if not key.startswith("_") and key not in _RESERVED
        }

    def _exception(self, record: logging.LogRecord) -> dict[str, Any] | None:
        if not (record.exc_info and self._include_tb):
            return None
        exc_type, exc, tb = record.exc_info
        return {
            "type": exc_type.__name__ if exc_type else None,
            "message": str(exc) if exc else None,
            "traceback": traceback.format_exception(exc_type, exc, tb) if tb else None,
        }

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=UTC).isoformat()
        context = current_context()
        fields = self._fields(record)
        exception = self._exception(record)

        if self._json:
            entry: dict[str, Any] = {
                "timestamp": timestamp,
                "level": record.levelname,
                "logger": record.name,
                "event": record.getMessage(),
                "line": record.lineno,
                "pid": self._pid,
            }
            if context:
                entry["context"] = context
            if fields:
                entry["data"] = fields
            if exception:
                entry["exception"] = exception
            return json.dumps(entry, default=str, ensure_ascii=False)

        ids = "/".join(context.get(k, "-") for k in ("collaboration_id", "agent_id"))
        parts = [timestamp, f"{record.levelname:8s}", ids, f"{record.name}:{record.lineno}",
                 record.getMessage()]
        if fields:
            parts.append(" ".join(f"{k}={v}" for k, v in fields.items()))
        line = " | ".join(parts)
        if exception and exception["traceback"]:
            line += "\n" + "".join(exception["traceback"])
        return line

# ── Structured Logger ─────────────────────────────────────────────

class StructuredLogger:
    """
    Thin wrapper over a stdlib logger: event name plus keyword fields.

    Usage:
        log = StructuredLogger("agentmesh.collaboration.bus")
        log.info("message_processed", msg_type="request", latency_ms=1.2)
    """

    __slots__ = ("_logger",)

    def __init__(self, name: str):
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, event: str, exc: BaseException | None = None, **fields: Any) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, event, extra=fields, exc_info=exc, stacklevel=3)

    def debug(self, event: str, **fields: Any) -> None:
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields: Any) -> None:
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, exc: BaseException | None = None, **fields: Any) -> None:
        self._log(logging.ERROR, event, exc=exc, **fields)

# ── Setup ──────────────────────────────────────────────────────────

_initialized = False

def _rotating(path: Path, max_mb: int, backups: int, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups, encoding="utf-8"
    )
    handler.setFormatter(StructuredFormatter(json_output=True))
    handler.setLevel(level)
    return handler

def setup_logging(
    *,
    level: str = "INFO",
    json_output: bool | None = None,
    log_dir: str | Path | None = None,
    force: bool = False,
) -> None:
    """
    Initialize the logging system. Call once at application startup.

    Args:
        level: Root log level
        json_output: Force JSON output. Auto-detects if None (JSON outside development)
        log_dir: Directory for ``agentmesh.log`` / ``errors.log``. None = stdout only.
        force: Reconfigure even if logging was already set up.
    """
    global _initialized
    if _initialized and not force:
        return
    _initialized = True

    if json_output is None:
        json_output = os.getenv("AGENTMESH_ENVIRONMENT", "development") != "development"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(json_output=json_output))
    root.addHandler(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        root.addHandler(_rotating(log_path / "agentmesh.log", 50, 5, logging.DEBUG))
        root.addHandler(_rotating(log_path / "errors.log", 20, 3, logging.ERROR))

    for noisy in ("asyncio", "uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
